"""
Competition data models: teams, users, hardware, summaries and leaderboards.

Provides immutable data transfer objects shared by the aggregation, ranking
and caching layers.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from tcboard.config import Config
from tcboard.constants import RankingConstants
from tcboard.utils.exceptions import ValidationError
from tcboard.utils.time_utils import utc_now


class Category(Enum):
    AMD_GPU = "AMD_GPU"
    NVIDIA_GPU = "NVIDIA_GPU"
    WILDCARD = "WILDCARD"
    INVALID = "INVALID"

    @classmethod
    def all_values(cls) -> List["Category"]:
        """All valid categories, in declaration order (excludes INVALID)."""
        return [category for category in cls if category is not cls.INVALID]

    @classmethod
    def get(cls, value: str) -> "Category":
        """Case-insensitive lookup, INVALID if nothing matches."""
        for category in cls.all_values():
            if category.value.lower() == (value or "").strip().lower():
                return category
        return cls.INVALID

    @property
    def permitted_users(self) -> int:
        return Config.get_category_limits().get(self.value, 0)


def _require_text(field_name: str, value: Optional[str]):
    if not value or not value.strip():
        raise ValidationError(field_name, f"'{field_name}' must not be null or blank")


@dataclass(frozen=True)
class Hardware:
    """A piece of hardware and its competition multiplier."""
    id: int
    hardware_name: str
    display_name: str
    multiplier: float
    average_ppd: int = 0

    def __post_init__(self):
        _require_text("hardware_name", self.hardware_name)
        _require_text("display_name", self.display_name)
        if self.multiplier < 0:
            raise ValidationError("multiplier", f"multiplier must not be negative, got {self.multiplier}")

    def with_multiplier(self, multiplier: float) -> "Hardware":
        """New hardware version, only used by later normalizations."""
        return replace(self, multiplier=multiplier)


@dataclass(frozen=True)
class User:
    """A competition participant."""
    id: int
    account_name: str
    passkey: str
    display_name: str
    category: Category
    hardware_id: int
    team_id: int
    is_captain: bool = False

    def __post_init__(self):
        _require_text("account_name", self.account_name)
        _require_text("display_name", self.display_name)
        if self.category is Category.INVALID:
            raise ValidationError("category", f"user '{self.display_name}' has an invalid category")

    def with_team(self, team_id: int, is_captain: bool = False) -> "User":
        return replace(self, team_id=team_id, is_captain=is_captain)


@dataclass(frozen=True)
class Team:
    """A team and its ordered active members (user ids)."""
    id: int
    name: str
    member_ids: Tuple[int, ...] = ()

    def __post_init__(self):
        _require_text("name", self.name)

    def with_member(self, user_id: int) -> "Team":
        if user_id in self.member_ids:
            return self
        return replace(self, member_ids=self.member_ids + (user_id,))

    def without_member(self, user_id: int) -> "Team":
        return replace(self, member_ids=tuple(member for member in self.member_ids if member != user_id))


@dataclass(frozen=True)
class UserSummary:
    """Competition stats for one active user, with their rank in the team."""
    user_id: int
    display_name: str
    hardware_name: str
    category: Category
    points: int
    multiplied_points: int
    units: int
    rank_in_team: int = RankingConstants.DEFAULT_RANK


@dataclass(frozen=True)
class RetiredUserSummary:
    """Frozen stats for a retired user, ranked below all active users."""
    retired_id: int
    display_name: str
    points: int
    multiplied_points: int
    units: int
    rank_in_team: int = RankingConstants.DEFAULT_RANK


@dataclass(frozen=True)
class TeamSummary:
    """Rolled-up team totals across active and retired members."""
    team_id: int
    team_name: str
    captain_name: Optional[str]
    active_users: List[UserSummary]
    retired_users: List[RetiredUserSummary]
    team_points: int
    team_multiplied_points: int
    team_units: int

    def copy(self) -> "TeamSummary":
        return replace(self, active_users=list(self.active_users), retired_users=list(self.retired_users))


@dataclass(frozen=True)
class TeamLeaderboardEntry:
    """Single team leaderboard row."""
    rank: int
    team_id: int
    team_name: str
    team_multiplied_points: int
    team_points: int
    team_units: int
    diff_to_leader: int
    diff_to_next: int


@dataclass(frozen=True)
class UserCategoryLeaderboardEntry:
    """Single row of a per-category user leaderboard."""
    rank: int
    user_id: int
    display_name: str
    team_name: str
    hardware_name: str
    category: Category
    multiplied_points: int
    points: int
    units: int
    diff_to_leader: int
    diff_to_next: int


@dataclass(frozen=True)
class CompetitionSnapshot:
    """Consistent scoreboard view served from the summary cache."""
    team_summaries: List[TeamSummary]
    team_leaderboard: List[TeamLeaderboardEntry]
    category_leaderboard: Dict[Category, List[UserCategoryLeaderboardEntry]]
    generated_at: datetime = field(default_factory=utc_now)
    is_stale: bool = False

    def as_stale(self) -> "CompetitionSnapshot":
        return replace(self, is_stale=True)

    def copy(self) -> "CompetitionSnapshot":
        """Copy with fresh lists, so callers cannot alter the cached snapshot."""
        return replace(
            self,
            team_summaries=[summary.copy() for summary in self.team_summaries],
            team_leaderboard=list(self.team_leaderboard),
            category_leaderboard={
                category: list(entries) for category, entries in self.category_leaderboard.items()
            },
        )


@dataclass(frozen=True)
class MonthlyResult:
    """Final standings recorded when a competition period is closed."""
    team_leaderboard: List[TeamLeaderboardEntry]
    category_leaderboard: Dict[Category, List[UserCategoryLeaderboardEntry]]
    utc_timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def empty(cls) -> "MonthlyResult":
        return cls([], {category: [] for category in Category.all_values()})

    def with_empty_categories(self) -> "MonthlyResult":
        """Copy with every category present, missing ones as empty lists."""
        categories = {
            category: self.category_leaderboard.get(category, [])
            for category in Category.all_values()
        }
        return replace(self, category_leaderboard=categories)

    def has_no_stats(self) -> bool:
        total_points = 0
        total_multiplied_points = 0
        total_units = 0
        for entry in self.team_leaderboard:
            total_points = max(total_points + entry.team_points, 0)
            total_multiplied_points = max(total_multiplied_points + entry.team_multiplied_points, 0)
            total_units = max(total_units + entry.team_units, 0)
        return total_points == 0 and total_multiplied_points == 0 and total_units == 0
