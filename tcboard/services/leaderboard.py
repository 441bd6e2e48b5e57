"""
Leaderboard ranking for teams and per-category users.

Both leaderboards share one ranking routine: sort descending by the ranked
value (stable, so ties keep their input order), then compute the gap to the
leader and to the entry directly above.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterable, List, Mapping, TypeVar

from tcboard.constants import RankingConstants
from tcboard.data_models.competition import (
    Category, TeamLeaderboardEntry, TeamSummary, UserCategoryLeaderboardEntry, UserSummary
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RankedItem(Generic[T]):
    item: T
    rank: int
    diff_to_leader: int
    diff_to_next: int


@dataclass(frozen=True)
class CategoryMember:
    """A user summary paired with the name of the team it belongs to."""
    summary: UserSummary
    team_name: str


class LeaderboardRanker:
    """Ranks already-summed entities into leaderboard rows."""

    @staticmethod
    def rank(items: Iterable[T], value: Callable[[T], int]) -> List[RankedItem[T]]:
        ordered = sorted(items, key=value, reverse=True)
        if not ordered:
            return []

        leader_value = value(ordered[0])
        ranked = [RankedItem(ordered[0], RankingConstants.LEADER_RANK, 0, 0)]
        for i in range(1, len(ordered)):
            current_value = value(ordered[i])
            ranked.append(RankedItem(
                item=ordered[i],
                rank=i + 1,
                diff_to_leader=leader_value - current_value,
                diff_to_next=value(ordered[i - 1]) - current_value,
            ))
        return ranked

    def rank_teams(self, team_summaries: Iterable[TeamSummary]) -> List[TeamLeaderboardEntry]:
        ranked = self.rank(team_summaries, lambda team: team.team_multiplied_points)
        if not ranked:
            logger.warning("No TC teams to show")
        return [
            TeamLeaderboardEntry(
                rank=entry.rank,
                team_id=entry.item.team_id,
                team_name=entry.item.team_name,
                team_multiplied_points=entry.item.team_multiplied_points,
                team_points=entry.item.team_points,
                team_units=entry.item.team_units,
                diff_to_leader=entry.diff_to_leader,
                diff_to_next=entry.diff_to_next,
            )
            for entry in ranked
        ]

    def rank_category(self, members: Iterable[CategoryMember]) -> List[UserCategoryLeaderboardEntry]:
        return [
            UserCategoryLeaderboardEntry(
                rank=entry.rank,
                user_id=entry.item.summary.user_id,
                display_name=entry.item.summary.display_name,
                team_name=entry.item.team_name,
                hardware_name=entry.item.summary.hardware_name,
                category=entry.item.summary.category,
                multiplied_points=entry.item.summary.multiplied_points,
                points=entry.item.summary.points,
                units=entry.item.summary.units,
                diff_to_leader=entry.diff_to_leader,
                diff_to_next=entry.diff_to_next,
            )
            for entry in self.rank(members, lambda member: member.summary.multiplied_points)
        ]

    def generate_category_leaderboards(
        self,
        members_by_category: Mapping[Category, Iterable[CategoryMember]]
    ) -> Dict[Category, List[UserCategoryLeaderboardEntry]]:
        """Leaderboard per category, with an entry for every category even if empty."""
        return {
            category: self.rank_category(members_by_category.get(category, ()))
            for category in Category.all_values()
        }
