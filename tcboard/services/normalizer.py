"""
Points normalization: raw counters to competition-scoped stats for one user.
"""

import logging
import math
import warnings
from typing import Optional

from tcboard.constants import StatsConstants
from tcboard.data_models.competition import Hardware, User
from tcboard.data_models.stats import BaselineStats, OffsetAdjustment, RawStats, UserCompetitionStats
from tcboard.utils.exceptions import AnomalousInputWarning, ConfigurationError

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class PointsNormalizer:
    """Applies baseline subtraction, offset and hardware multiplier."""

    def normalize(
        self,
        user: User,
        raw: RawStats,
        baseline: Optional[BaselineStats],
        offset: Optional[OffsetAdjustment],
        hardware: Optional[Hardware],
        report_anomalies: bool = True
    ) -> UserCompetitionStats:
        """
        Calculate a user's competition stats.

        Args:
            user: User being normalized
            raw: Latest raw counters for the user
            baseline: Counters captured when tracking began, zero if missing
            offset: Manual correction, none if missing
            hardware: Hardware resolved for the user
            report_anomalies: Warn about clamped values, off when re-normalizing
                stats that were already reported

        Returns:
            UserCompetitionStats with points and units clamped to zero

        Raises:
            ConfigurationError: If the user does not resolve to its hardware
        """
        if hardware is None:
            raise ConfigurationError(user.id, f"no hardware found with ID {user.hardware_id}")
        if hardware.id != user.hardware_id:
            raise ConfigurationError(
                user.id, f"hardware ID {hardware.id} does not match configured ID {user.hardware_id}"
            )

        baseline = baseline or BaselineStats.zero(user.id)
        offset = offset or OffsetAdjustment.empty()

        points = self._delta(user, "points", raw.points, baseline.points, offset.points, report_anomalies)
        units = self._delta(user, "units", raw.units, baseline.units, offset.units, report_anomalies)
        multiplied_points = round_half_up(points * hardware.multiplier)

        if multiplied_points != StatsConstants.DEFAULT_MULTIPLIED_POINTS:
            logger.debug(
                f"{user.display_name} (ID: {user.id}): {points:,} TC points | "
                f"{multiplied_points:,} TC multiplied points | {units:,} TC units"
            )
        return UserCompetitionStats(
            user_id=user.id,
            points=points,
            multiplied_points=multiplied_points,
            units=units,
        )

    @staticmethod
    def _delta(user: User, name: str, raw: int, baseline: int, offset: int, report: bool) -> int:
        delta = raw - baseline
        if delta < 0:
            if report:
                _anomaly(f"{user.display_name} (ID: {user.id}): raw {name} {raw:,} below baseline {baseline:,}, clamping to 0")
            delta = 0

        total = delta + offset
        if total < 0:
            if report:
                _anomaly(f"{user.display_name} (ID: {user.id}): offset {offset:,} takes {name} below 0, clamping to 0")
            total = 0
        return total


def _anomaly(message: str):
    logger.warning(message)
    warnings.warn(message, AnomalousInputWarning, stacklevel=3)
