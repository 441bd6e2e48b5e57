"""
Aggregation of normalized user stats into team and category summaries.

Per-user failures are isolated: a user that cannot be normalized is logged
and left out, and the rest of the team is still summarised.
"""

import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from tcboard.data_models.competition import (
    Category, Hardware, RetiredUserSummary, Team, TeamSummary, User, UserSummary
)
from tcboard.data_models.stats import RetiredUserCompetitionStats, UserCompetitionStats
from tcboard.services.leaderboard import CategoryMember, LeaderboardRanker
from tcboard.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

StatsCalculator = Callable[[User], UserCompetitionStats]


class AggregationEngine:
    """Rolls up per-user stats into TeamSummary and category partitions."""

    def aggregate(
        self,
        teams: Iterable[Team],
        users: Mapping[int, User],
        hardware: Mapping[int, Hardware],
        stats_for: StatsCalculator,
        retired_by_team: Optional[Mapping[int, Sequence[RetiredUserCompetitionStats]]] = None
    ) -> List[TeamSummary]:
        """
        Build one TeamSummary per team.

        Args:
            teams: Teams to summarise, members in membership order
            users: All known users by ID
            hardware: All known hardware by ID
            stats_for: Callable normalizing one user, may raise ConfigurationError
            retired_by_team: Frozen retirement records by team ID

        Returns:
            Team summaries in input order (not ranked against each other)
        """
        retired_by_team = retired_by_team or {}
        summaries = []
        for team in teams:
            logger.debug(f"Converting team '{team.name}' for TC stats")
            members = self._active_members(team, users)
            user_summaries = []
            for user in members:
                try:
                    stats = stats_for(user)
                    hardware_entry = hardware.get(user.hardware_id)
                    if hardware_entry is None:
                        raise ConfigurationError(user.id, f"no hardware found with ID {user.hardware_id}")
                except ConfigurationError as e:
                    logger.error(f"Skipping user '{user.display_name}' on team '{team.name}': {e}")
                    continue
                user_summaries.append(UserSummary(
                    user_id=user.id,
                    display_name=user.display_name,
                    hardware_name=hardware_entry.display_name,
                    category=user.category,
                    points=stats.points,
                    multiplied_points=stats.multiplied_points,
                    units=stats.units,
                ))

            captain_name = self._captain_name(team, members)
            summaries.append(self.summarize_team(
                team, captain_name, user_summaries, retired_by_team.get(team.id, ())
            ))
        logger.debug(f"Found {len(summaries)} TC teams")
        return summaries

    @staticmethod
    def summarize_team(
        team: Team,
        captain_name: Optional[str],
        active_users: Sequence[UserSummary],
        retired_users: Sequence[RetiredUserCompetitionStats]
    ) -> TeamSummary:
        """Rank members within the team and total active + retired stats."""
        ranked_active = [
            UserSummary(
                user_id=entry.item.user_id,
                display_name=entry.item.display_name,
                hardware_name=entry.item.hardware_name,
                category=entry.item.category,
                points=entry.item.points,
                multiplied_points=entry.item.multiplied_points,
                units=entry.item.units,
                rank_in_team=entry.rank,
            )
            for entry in LeaderboardRanker.rank(active_users, lambda summary: summary.multiplied_points)
        ]

        # Retired users always rank below every active user
        rank_offset = len(ranked_active)
        ranked_retired = [
            RetiredUserSummary(
                retired_id=entry.item.retired_id,
                display_name=entry.item.display_name,
                points=entry.item.points,
                multiplied_points=entry.item.multiplied_points,
                units=entry.item.units,
                rank_in_team=entry.rank + rank_offset,
            )
            for entry in LeaderboardRanker.rank(retired_users, lambda record: record.multiplied_points)
        ]

        team_points = sum(user.points for user in ranked_active) + sum(user.points for user in ranked_retired)
        team_multiplied_points = (
            sum(user.multiplied_points for user in ranked_active)
            + sum(user.multiplied_points for user in ranked_retired)
        )
        team_units = sum(user.units for user in ranked_active) + sum(user.units for user in ranked_retired)

        return TeamSummary(
            team_id=team.id,
            team_name=team.name,
            captain_name=captain_name,
            active_users=ranked_active,
            retired_users=ranked_retired,
            team_points=team_points,
            team_multiplied_points=team_multiplied_points,
            team_units=team_units,
        )

    @staticmethod
    def partition_by_category(team_summaries: Iterable[TeamSummary]) -> Dict[Category, List[CategoryMember]]:
        """Active users of every team grouped by category; every category is present."""
        partition: Dict[Category, List[CategoryMember]] = {category: [] for category in Category.all_values()}
        for team_summary in team_summaries:
            for user_summary in team_summary.active_users:
                if user_summary.category in partition:
                    partition[user_summary.category].append(CategoryMember(user_summary, team_summary.team_name))
        return partition

    @staticmethod
    def _active_members(team: Team, users: Mapping[int, User]) -> List[User]:
        members = []
        for user_id in team.member_ids:
            user = users.get(user_id)
            if user is None:
                logger.error(f"Skipping unknown user ID {user_id} on team '{team.name}'")
                continue
            members.append(user)
        return members

    @staticmethod
    def _captain_name(team: Team, members: Iterable[User]) -> Optional[str]:
        for user in members:
            if user.is_captain:
                return user.display_name
        logger.warning(f"No captain set for team '{team.name}'")
        return None
