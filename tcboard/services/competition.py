"""
Competition service: the engine's entry points for reads and writes.

Every mutating call is serialized by a write lock and checked against the
StateGate before anything changes. Its writes go through one repository
unit of work, and once it has started changing data the gate moves to
WRITE_EXECUTED even if it fails, so the next reader recomputes the scoreboard.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from tcboard.data_models.competition import (
    Category, CompetitionSnapshot, Hardware, MonthlyResult, Team, TeamLeaderboardEntry,
    TeamSummary, User, UserCategoryLeaderboardEntry
)
from tcboard.data_models.stats import (
    BaselineStats, HistoricStatsPoint, OffsetAdjustment, RawStats, RetiredUserCompetitionStats,
    UserCompetitionStats
)
from tcboard.services.aggregation import AggregationEngine
from tcboard.services.historic import HistoricStatsCombiner
from tcboard.services.leaderboard import LeaderboardRanker
from tcboard.services.normalizer import PointsNormalizer
from tcboard.services.repository import CompetitionRepository
from tcboard.services.retirement import RetiredUserLedger, RetirementHandler
from tcboard.services.state import StateGate, SystemState
from tcboard.services.summary_cache import SummaryCache
from tcboard.utils.exceptions import ValidationError
from tcboard.utils.logger import mask_passkey
from tcboard.utils.time_utils import Granularity, truncate_to_hour, utc_now

logger = logging.getLogger(__name__)


class CompetitionService:
    """Facade over normalization, aggregation, ranking, caching and state."""

    def __init__(
        self,
        repository: CompetitionRepository,
        state_gate: Optional[StateGate] = None,
        normalizer: Optional[PointsNormalizer] = None,
        retirement_handler: Optional[RetirementHandler] = None,
        aggregation_engine: Optional[AggregationEngine] = None,
        ranker: Optional[LeaderboardRanker] = None,
        historic_combiner: Optional[HistoricStatsCombiner] = None
    ):
        self.repository = repository
        self.state_gate = state_gate or StateGate()
        self.normalizer = normalizer or PointsNormalizer()
        self.retirement_handler = retirement_handler or RetirementHandler()
        self.aggregation_engine = aggregation_engine or AggregationEngine()
        self.ranker = ranker or LeaderboardRanker()
        self.historic_combiner = historic_combiner or HistoricStatsCombiner()
        self.summary_cache = SummaryCache(self.state_gate, self._build_snapshot)
        self._write_lock = asyncio.Lock()

    @property
    def ledger(self) -> RetiredUserLedger:
        return self.retirement_handler.ledger

    async def start(self):
        """Load persisted retirement records and open the engine for requests."""
        records = await self.repository.get_retired_stats()
        self.retirement_handler.ledger = RetiredUserLedger(records)
        logger.info(f"Loaded {len(records)} retired user records")
        self.state_gate.advance_state(SystemState.AVAILABLE)
        logger.info("Competition engine is available")

    # State

    def current_state(self) -> SystemState:
        return self.state_gate.current_state()

    def advance_state(self, next_state: SystemState):
        self.state_gate.advance_state(next_state)

    # Reads

    async def compute_user_stats(self, user: User) -> UserCompetitionStats:
        """Normalize one user's latest raw stats. Raises ConfigurationError if misconfigured."""
        self.state_gate.require_read()
        hardware = (await self.repository.get_hardware()).get(user.hardware_id)
        return self.normalizer.normalize(
            user,
            await self.repository.get_raw_stats(user.id),
            await self.repository.get_baseline(user.id),
            await self.repository.get_offset(user.id),
            hardware,
        )

    async def get_snapshot(self) -> CompetitionSnapshot:
        """The current scoreboard, as a copy the caller is free to modify."""
        self.state_gate.require_read()
        return (await self.summary_cache.retrieve()).copy()

    async def get_team_summaries(self) -> List[TeamSummary]:
        return (await self.get_snapshot()).team_summaries

    async def get_team_leaderboard(self) -> List[TeamLeaderboardEntry]:
        return (await self.get_snapshot()).team_leaderboard

    async def get_category_leaderboard(self) -> Dict[Category, List[UserCategoryLeaderboardEntry]]:
        return (await self.get_snapshot()).category_leaderboard

    async def generate_monthly_result(self) -> MonthlyResult:
        snapshot = await self.get_snapshot()
        return MonthlyResult(snapshot.team_leaderboard, snapshot.category_leaderboard).with_empty_categories()

    def combine_historic_series(
        self,
        series_list: Iterable[Iterable[HistoricStatsPoint]],
        granularity: Granularity = Granularity.HOUR
    ) -> List[HistoricStatsPoint]:
        return self.historic_combiner.combine_series(series_list, granularity)

    async def get_user_historic(
        self,
        user_id: int,
        granularity: Granularity = Granularity.HOUR
    ) -> List[HistoricStatsPoint]:
        self.state_gate.require_read()
        if user_id not in await self.repository.get_users():
            raise ValidationError("user_id", f"no user found with ID {user_id}")
        points = await self.repository.get_historic_points(user_id)
        return self.historic_combiner.combine(points, granularity)

    async def get_team_historic(
        self,
        team_id: int,
        granularity: Granularity = Granularity.HOUR
    ) -> List[HistoricStatsPoint]:
        """Combined historic series of the team's current active members."""
        self.state_gate.require_read()
        team = self._find_team(await self.repository.get_teams(), team_id)
        series = [await self.repository.get_historic_points(user_id) for user_id in team.member_ids]
        return self.combine_historic_series(series, granularity)

    # Writes

    async def add_user(self, user: User, raw: Optional[RawStats] = None) -> User:
        """
        Register a new user on their team, baselined at ``raw``.

        Raises:
            ValidationError: If the user ID exists, the team or hardware is
                unknown, or the team has no space left in the user's category
        """
        async with self._write_lock:
            self.state_gate.require_write()
            raw = raw or RawStats.empty()
            users = await self.repository.get_users()
            if user.id in users:
                raise ValidationError("id", f"user with ID {user.id} already exists")
            if user.hardware_id not in await self.repository.get_hardware():
                raise ValidationError("hardware_id", f"no hardware found with ID {user.hardware_id}")
            team = self._find_team(await self.repository.get_teams(), user.team_id)
            self._check_capacity(team, user, users)

            try:
                async with self.repository.unit_of_work():
                    await self.repository.save_user(user)
                    await self.repository.save_raw_stats(user.id, raw)
                    await self.repository.save_baseline(BaselineStats.from_raw(user.id, raw))
                    await self.repository.save_team(team.with_member(user.id))
            finally:
                self.state_gate.advance_state(SystemState.WRITE_EXECUTED)
            logger.info(
                f"Added user '{user.display_name}' (ID: {user.id}, passkey: {mask_passkey(user.passkey)}) "
                f"to team '{team.name}' in category {user.category.value}"
            )
            return user

    async def set_offset(self, user_id: int, offset: OffsetAdjustment) -> OffsetAdjustment:
        """Replace the user's manual offset."""
        async with self._write_lock:
            self.state_gate.require_write()
            if user_id not in await self.repository.get_users():
                raise ValidationError("user_id", f"no user found with ID {user_id}")
            try:
                await self.repository.save_offset(user_id, offset)
            finally:
                self.state_gate.advance_state(SystemState.WRITE_EXECUTED)
            logger.info(f"Set offset for user ID {user_id}: {offset.points:,} points, {offset.units:,} units")
            return offset

    async def retire_user(self, team: Team, user: User) -> RetiredUserCompetitionStats:
        """
        Remove ``user`` from ``team``, crediting their current stats to it.

        The user is looked up again by ID, so the record carries their stored
        details rather than whatever the caller's copy holds.

        Raises:
            ValidationError: If the user is unknown or not an active member of the team
            ConfigurationError: If the user's stats cannot be calculated
        """
        async with self._write_lock:
            self.state_gate.require_write()
            stored_user = (await self.repository.get_users()).get(user.id)
            if stored_user is None:
                raise ValidationError("user", f"no user found with ID {user.id}")
            current_team = self._find_team(await self.repository.get_teams(), team.id)
            self._check_member(current_team, stored_user)

            try:
                async with self.repository.unit_of_work():
                    record = await self._retire(current_team, stored_user)
                self.retirement_handler.commit(stored_user, record)
            finally:
                self.state_gate.advance_state(SystemState.WRITE_EXECUTED)
            return record

    async def change_team(self, user_id: int, new_team_id: int, is_captain: bool = False) -> User:
        """
        Move a user to another team, or back onto a team after retirement.

        An active user's contribution so far stays with the old team as a
        retired record. Either way they start again on the new team from a
        fresh baseline with no offset.
        """
        async with self._write_lock:
            self.state_gate.require_write()
            users = await self.repository.get_users()
            user = users.get(user_id)
            if user is None:
                raise ValidationError("user_id", f"no user found with ID {user_id}")

            teams = await self.repository.get_teams()
            old_team = self._find_team(teams, user.team_id)
            new_team = self._find_team(teams, new_team_id)
            is_active = user_id in old_team.member_ids
            if is_active and old_team.id == new_team.id:
                raise ValidationError("team_id", f"user '{user.display_name}' is already on team {new_team_id}")
            self._check_capacity(new_team, user, users)

            moved_user = user.with_team(new_team_id, is_captain)
            record = None
            try:
                async with self.repository.unit_of_work():
                    if is_active:
                        record = await self._retire(old_team, user)
                    raw = await self.repository.get_raw_stats(user_id)
                    await self.repository.save_user(moved_user)
                    await self.repository.save_baseline(BaselineStats.from_raw(user_id, raw))
                    await self.repository.save_offset(user_id, OffsetAdjustment.empty())
                    await self.repository.save_team(new_team.with_member(user_id))
                if record is not None:
                    self.retirement_handler.commit(user, record)
            finally:
                self.state_gate.advance_state(SystemState.WRITE_EXECUTED)

            if is_active:
                logger.info(f"Moved user '{user.display_name}' from team '{old_team.name}' to team '{new_team.name}'")
            else:
                logger.info(f"Retired user '{user.display_name}' rejoined as an active member of team '{new_team.name}'")
            return moved_user

    async def update_stats(
        self,
        raw_by_user: Mapping[int, RawStats],
        timestamp: Optional[datetime] = None
    ):
        """
        Store the latest raw stats for each user and their gain for the hour.

        Reads stay open while this runs, writes are blocked.
        """
        async with self._write_lock:
            self.state_gate.require_write()
            self.state_gate.advance_state(SystemState.UPDATING_STATS)
            try:
                hour = truncate_to_hour(timestamp or utc_now())
                users = await self.repository.get_users()
                hardware = await self.repository.get_hardware()
                baselines = await self.repository.get_all_baselines()
                offsets = await self.repository.get_all_offsets()
                previous_raw = await self.repository.get_all_raw_stats()

                updated = 0
                async with self.repository.unit_of_work():
                    for user_id, raw in raw_by_user.items():
                        user = users.get(user_id)
                        if user is None:
                            logger.warning(f"Ignoring stats for unknown user ID {user_id}")
                            continue
                        await self.repository.save_raw_stats(user_id, raw)
                        updated += 1
                        await self._record_hourly_gain(
                            user, hour, previous_raw.get(user_id, RawStats.empty()), raw,
                            baselines.get(user_id), offsets.get(user_id), hardware.get(user.hardware_id),
                        )
                logger.info(f"Updated TC stats for {updated} users at {hour.isoformat()}")
            finally:
                self.state_gate.advance_state(SystemState.WRITE_EXECUTED)

    async def reset_competition(self) -> MonthlyResult:
        """
        Close the current competition period and start a new one.

        Returns:
            The final standings of the closed period
        """
        async with self._write_lock:
            self.state_gate.require_write()
            self.state_gate.advance_state(SystemState.RESETTING_STATS)
            try:
                snapshot = await self._build_snapshot()
                result = MonthlyResult(
                    snapshot.team_leaderboard, snapshot.category_leaderboard
                ).with_empty_categories()
                if result.has_no_stats():
                    logger.warning("Competition is being reset with no TC stats recorded")

                raw_stats = await self.repository.get_all_raw_stats()
                users = await self.repository.get_users()
                async with self.repository.unit_of_work():
                    for user_id in users:
                        raw = raw_stats.get(user_id, RawStats.empty())
                        await self.repository.save_baseline(BaselineStats.from_raw(user_id, raw))
                    await self.repository.clear_offsets()
                    await self.repository.clear_retired_stats()
                self.ledger.clear()
                await self.summary_cache.invalidate()
                logger.info(f"Reset TC stats for {len(users)} users")
                return result
            finally:
                self.state_gate.advance_state(SystemState.WRITE_EXECUTED)

    # Internals

    async def _retire(self, team: Team, user: User) -> RetiredUserCompetitionStats:
        """Persist the user's retirement. The record joins the ledger only once the caller commits it."""
        # Caller holds the write lock and an open unit of work
        self._check_member(team, user)
        hardware = (await self.repository.get_hardware()).get(user.hardware_id)
        current_stats = self.normalizer.normalize(
            user,
            await self.repository.get_raw_stats(user.id),
            await self.repository.get_baseline(user.id),
            await self.repository.get_offset(user.id),
            hardware,
        )
        record = self.retirement_handler.freeze(user, current_stats, team.id)
        await self.repository.save_retired_stats(record)
        await self.repository.save_team(team.without_member(user.id))
        return record

    async def _record_hourly_gain(
        self,
        user: User,
        hour: datetime,
        previous_raw: RawStats,
        raw: RawStats,
        baseline: Optional[BaselineStats],
        offset: Optional[OffsetAdjustment],
        hardware: Optional[Hardware]
    ):
        if hardware is None or hardware.id != user.hardware_id:
            logger.error(f"Not recording historic stats for user '{user.display_name}': no hardware {user.hardware_id}")
            return

        # The previous poll already reported any anomaly in its stats
        before = self.normalizer.normalize(user, previous_raw, baseline, offset, hardware, report_anomalies=False)
        after = self.normalizer.normalize(user, raw, baseline, offset, hardware)
        existing = next(
            (point for point in await self.repository.get_historic_points(user.id) if point.timestamp == hour),
            HistoricStatsPoint(hour),
        )
        await self.repository.save_historic_point(user.id, HistoricStatsPoint.create(
            hour,
            existing.points + max(after.points - before.points, 0),
            existing.multiplied_points + max(after.multiplied_points - before.multiplied_points, 0),
            existing.units + max(after.units - before.units, 0),
        ))

    async def _build_snapshot(self) -> CompetitionSnapshot:
        teams = await self.repository.get_teams()
        users = await self.repository.get_users()
        hardware = await self.repository.get_hardware()
        raw_stats = await self.repository.get_all_raw_stats()
        baselines = await self.repository.get_all_baselines()
        offsets = await self.repository.get_all_offsets()

        def stats_for(user: User) -> UserCompetitionStats:
            return self.normalizer.normalize(
                user,
                raw_stats.get(user.id, RawStats.empty()),
                baselines.get(user.id),
                offsets.get(user.id),
                hardware.get(user.hardware_id),
            )

        team_summaries = self.aggregation_engine.aggregate(
            teams, users, hardware, stats_for, self.ledger.by_team()
        )
        team_leaderboard = self.ranker.rank_teams(team_summaries)
        category_leaderboard = self.ranker.generate_category_leaderboards(
            self.aggregation_engine.partition_by_category(team_summaries)
        )
        return CompetitionSnapshot(team_summaries, team_leaderboard, category_leaderboard)

    @staticmethod
    def _find_team(teams: Iterable[Team], team_id: int) -> Team:
        for team in teams:
            if team.id == team_id:
                return team
        raise ValidationError("team_id", f"no team found with ID {team_id}")

    @staticmethod
    def _check_member(team: Team, user: User):
        if user.id not in team.member_ids:
            raise ValidationError("user", f"user '{user.display_name}' is not a member of team '{team.name}'")

    @staticmethod
    def _check_capacity(team: Team, user: User, users: Mapping[int, User]):
        in_category = sum(
            1 for member_id in team.member_ids
            if member_id in users and users[member_id].category is user.category and member_id != user.id
        )
        if in_category >= user.category.permitted_users:
            raise ValidationError(
                "category",
                f"team '{team.name}' already has {in_category} {user.category.value} user(s), "
                f"permitted: {user.category.permitted_users}"
            )
