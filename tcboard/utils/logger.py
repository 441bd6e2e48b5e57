import logging
import sys
from pathlib import Path
from typing import Optional

from tcboard.config import Config
from tcboard.constants import PrivacyConstants
from tcboard.utils.time_utils import utc_now

PACKAGE_LOGGER = 'tcboard'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logger(name: str = PACKAGE_LOGGER, log_dir: Optional[str] = None) -> logging.Logger:
    """
    Attach console and daily file handlers to a logger, once.

    Module loggers under ``tcboard.`` propagate to the package logger, so
    configuring it once covers the whole engine.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = logging.DEBUG if Config.DEBUG else logging.INFO
    logger.setLevel(log_level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # One file per UTC day, always at DEBUG
    directory = Path(log_dir or Config.LOG_DIR)
    directory.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(
        directory / f'tc_stats_{utc_now().strftime("%Y%m%d")}.log',
        encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger


def mask_passkey(passkey: str) -> str:
    """Mask a passkey for logging, keeping only its first few characters."""
    if not passkey:
        return ""
    visible = PrivacyConstants.PASSKEY_VISIBLE_CHARS
    if len(passkey) <= visible:
        return PrivacyConstants.PASSKEY_MASK_CHAR * len(passkey)
    return passkey[:visible] + PrivacyConstants.PASSKEY_MASK_CHAR * (len(passkey) - visible)
