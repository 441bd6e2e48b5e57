"""
Stats data models for the team competition engine.

Immutable value objects for raw counters, baselines, offsets and the derived
competition stats. Derived values are never persisted as input: they are
recomputed from raw stats, baseline and offset on every pass.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from tcboard.constants import StatsConstants
from tcboard.utils.exceptions import ValidationError
from tcboard.utils.time_utils import truncate_to_hour, utc_now


@dataclass(frozen=True)
class RawStats:
    """Monotonically non-decreasing counters pulled from the upstream source."""
    points: int = StatsConstants.DEFAULT_POINTS
    units: int = StatsConstants.DEFAULT_UNITS

    def __post_init__(self):
        if self.points < 0:
            raise ValidationError("points", f"raw points must not be negative, got {self.points}")
        if self.units < 0:
            raise ValidationError("units", f"raw units must not be negative, got {self.units}")

    @classmethod
    def empty(cls) -> "RawStats":
        return cls()


@dataclass(frozen=True)
class BaselineStats:
    """Raw stats captured when a user starts being tracked; the zero-point for scoring."""
    user_id: int
    points: int = StatsConstants.DEFAULT_POINTS
    units: int = StatsConstants.DEFAULT_UNITS
    captured_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_raw(cls, user_id: int, raw: RawStats, captured_at: Optional[datetime] = None) -> "BaselineStats":
        return cls(user_id=user_id, points=raw.points, units=raw.units, captured_at=captured_at or utc_now())

    @classmethod
    def zero(cls, user_id: int) -> "BaselineStats":
        return cls(user_id=user_id)


@dataclass(frozen=True)
class OffsetAdjustment:
    """Signed manual correction applied after baseline subtraction."""
    points: int = StatsConstants.DEFAULT_POINTS
    units: int = StatsConstants.DEFAULT_UNITS

    def is_empty(self) -> bool:
        return self.points == StatsConstants.DEFAULT_POINTS and self.units == StatsConstants.DEFAULT_UNITS

    @classmethod
    def empty(cls) -> "OffsetAdjustment":
        return cls()


@dataclass(frozen=True)
class UserCompetitionStats:
    """Competition-scoped stats for a single user."""
    user_id: int
    points: int = StatsConstants.DEFAULT_POINTS
    multiplied_points: int = StatsConstants.DEFAULT_MULTIPLIED_POINTS
    units: int = StatsConstants.DEFAULT_UNITS

    def is_empty(self) -> bool:
        return (
            self.points == StatsConstants.DEFAULT_POINTS
            and self.multiplied_points == StatsConstants.DEFAULT_MULTIPLIED_POINTS
            and self.units == StatsConstants.DEFAULT_UNITS
        )

    @classmethod
    def empty(cls, user_id: int) -> "UserCompetitionStats":
        return cls(user_id=user_id)


@dataclass(frozen=True)
class RetiredUserCompetitionStats:
    """
    Frozen contribution of a user removed from a team.

    Created once at removal time and never re-derived from live raw stats.
    """
    retired_id: int
    team_id: int
    display_name: str
    user_id: int
    points: int
    multiplied_points: int
    units: int
    retired_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if not self.display_name or not self.display_name.strip():
            raise ValidationError("display_name", "'display_name' must not be null or blank")

    @classmethod
    def from_stats(
        cls,
        retired_id: int,
        team_id: int,
        display_name: str,
        stats: UserCompetitionStats,
        retired_at: Optional[datetime] = None
    ) -> "RetiredUserCompetitionStats":
        return cls(
            retired_id=retired_id,
            team_id=team_id,
            display_name=display_name,
            user_id=stats.user_id,
            points=stats.points,
            multiplied_points=stats.multiplied_points,
            units=stats.units,
            retired_at=retired_at or utc_now(),
        )


@dataclass(frozen=True)
class HistoricStatsPoint:
    """Stats for one hourly bucket, for a single user or the sum of several."""
    timestamp: datetime
    points: int = StatsConstants.DEFAULT_POINTS
    multiplied_points: int = StatsConstants.DEFAULT_MULTIPLIED_POINTS
    units: int = StatsConstants.DEFAULT_UNITS

    @classmethod
    def create(cls, timestamp: datetime, points: int, multiplied_points: int, units: int) -> "HistoricStatsPoint":
        """Create a point with its timestamp truncated to the hour."""
        return cls(truncate_to_hour(timestamp), points, multiplied_points, units)
