"""
Time bucketing utilities for hourly, daily and monthly stats.

All timestamps handled by the engine are UTC. Stats are stored per hour, and
historic views roll them up to a day or a month.
"""

from datetime import datetime, timezone
from enum import Enum


class Granularity(Enum):
    HOUR = "hour"
    DAY = "day"
    MONTH = "month"


def utc_now() -> datetime:
    """Current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def truncate_to_hour(value: datetime) -> datetime:
    """Drop minutes, seconds and microseconds."""
    return value.replace(minute=0, second=0, microsecond=0)


def truncate(value: datetime, granularity: Granularity = Granularity.HOUR) -> datetime:
    """
    Truncate a timestamp to the start of its bucket.
    
    Args:
        value: Timestamp to truncate
        granularity: Bucket size
        
    Returns:
        The first instant of the bucket containing ``value``
    """
    hour = truncate_to_hour(value)
    if granularity == Granularity.HOUR:
        return hour
    if granularity == Granularity.DAY:
        return hour.replace(hour=0)
    if granularity == Granularity.MONTH:
        return hour.replace(day=1, hour=0)
    raise ValueError(f"Unsupported granularity: {granularity}")
