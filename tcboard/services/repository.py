"""
Persistence contract consumed by the competition service.

The engine never talks to a database or an upstream API directly. It reads
teams, users, hardware and stats through a CompetitionRepository, which is
implemented in memory here and with SQLAlchemy in tcboard.database.database.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncContextManager, Dict, List, Optional

from tcboard.data_models.competition import Hardware, Team, User
from tcboard.data_models.stats import (
    BaselineStats, HistoricStatsPoint, OffsetAdjustment, RawStats, RetiredUserCompetitionStats
)


class CompetitionRepository(ABC):
    """
    Abstract base class for the engine's storage collaborators.

    Implementations own their own I/O, timeouts and retries.
    """

    @abstractmethod
    async def get_teams(self) -> List[Team]:
        """All teams ordered by ID, members in membership order."""
        pass

    @abstractmethod
    async def save_team(self, team: Team) -> Team:
        pass

    @abstractmethod
    async def get_users(self) -> Dict[int, User]:
        pass

    @abstractmethod
    async def save_user(self, user: User) -> User:
        pass

    @abstractmethod
    async def get_hardware(self) -> Dict[int, Hardware]:
        pass

    @abstractmethod
    async def save_hardware(self, hardware: Hardware) -> Hardware:
        pass

    @abstractmethod
    async def get_all_raw_stats(self) -> Dict[int, RawStats]:
        pass

    @abstractmethod
    async def save_raw_stats(self, user_id: int, raw: RawStats):
        pass

    @abstractmethod
    async def get_all_baselines(self) -> Dict[int, BaselineStats]:
        pass

    @abstractmethod
    async def save_baseline(self, baseline: BaselineStats):
        pass

    @abstractmethod
    async def get_all_offsets(self) -> Dict[int, OffsetAdjustment]:
        pass

    @abstractmethod
    async def save_offset(self, user_id: int, offset: OffsetAdjustment):
        """Create or replace the user's single offset."""
        pass

    @abstractmethod
    async def clear_offsets(self):
        pass

    @abstractmethod
    async def get_retired_stats(self) -> List[RetiredUserCompetitionStats]:
        pass

    @abstractmethod
    async def save_retired_stats(self, record: RetiredUserCompetitionStats):
        pass

    @abstractmethod
    async def clear_retired_stats(self):
        pass

    @abstractmethod
    async def save_historic_point(self, user_id: int, point: HistoricStatsPoint):
        """Create or replace the user's row for the point's hour."""
        pass

    @abstractmethod
    async def get_historic_points(self, user_id: int) -> List[HistoricStatsPoint]:
        pass

    @abstractmethod
    def unit_of_work(self) -> AsyncContextManager[None]:
        """
        Group the writes made inside the block so they land together.

        Either every write in the block is kept or, if the block raises,
        none are.
        """
        pass

    async def get_raw_stats(self, user_id: int) -> RawStats:
        return (await self.get_all_raw_stats()).get(user_id, RawStats.empty())

    async def get_baseline(self, user_id: int) -> Optional[BaselineStats]:
        return (await self.get_all_baselines()).get(user_id)

    async def get_offset(self, user_id: int) -> Optional[OffsetAdjustment]:
        return (await self.get_all_offsets()).get(user_id)


class InMemoryCompetitionRepository(CompetitionRepository):
    """Dictionary-backed repository, used for tests and local runs."""

    def __init__(self):
        self._teams: Dict[int, Team] = {}
        self._users: Dict[int, User] = {}
        self._hardware: Dict[int, Hardware] = {}
        self._raw: Dict[int, RawStats] = {}
        self._baselines: Dict[int, BaselineStats] = {}
        self._offsets: Dict[int, OffsetAdjustment] = {}
        self._retired: Dict[int, RetiredUserCompetitionStats] = {}
        self._historic: Dict[int, Dict] = {}
        self._lock = asyncio.Lock()

    async def get_teams(self) -> List[Team]:
        async with self._lock:
            return [team for _, team in sorted(self._teams.items())]

    async def save_team(self, team: Team) -> Team:
        async with self._lock:
            self._teams[team.id] = team
            return team

    async def get_users(self) -> Dict[int, User]:
        async with self._lock:
            return dict(self._users)

    async def save_user(self, user: User) -> User:
        async with self._lock:
            self._users[user.id] = user
            return user

    async def get_hardware(self) -> Dict[int, Hardware]:
        async with self._lock:
            return dict(self._hardware)

    async def save_hardware(self, hardware: Hardware) -> Hardware:
        async with self._lock:
            self._hardware[hardware.id] = hardware
            return hardware

    async def get_all_raw_stats(self) -> Dict[int, RawStats]:
        async with self._lock:
            return dict(self._raw)

    async def save_raw_stats(self, user_id: int, raw: RawStats):
        async with self._lock:
            self._raw[user_id] = raw

    async def get_all_baselines(self) -> Dict[int, BaselineStats]:
        async with self._lock:
            return dict(self._baselines)

    async def save_baseline(self, baseline: BaselineStats):
        async with self._lock:
            self._baselines[baseline.user_id] = baseline

    async def get_all_offsets(self) -> Dict[int, OffsetAdjustment]:
        async with self._lock:
            return dict(self._offsets)

    async def save_offset(self, user_id: int, offset: OffsetAdjustment):
        async with self._lock:
            self._offsets[user_id] = offset

    async def clear_offsets(self):
        async with self._lock:
            self._offsets.clear()

    async def get_retired_stats(self) -> List[RetiredUserCompetitionStats]:
        async with self._lock:
            return [record for _, record in sorted(self._retired.items())]

    async def save_retired_stats(self, record: RetiredUserCompetitionStats):
        async with self._lock:
            self._retired[record.retired_id] = record

    async def clear_retired_stats(self):
        async with self._lock:
            self._retired.clear()

    async def save_historic_point(self, user_id: int, point: HistoricStatsPoint):
        async with self._lock:
            self._historic.setdefault(user_id, {})[point.timestamp] = point

    async def get_historic_points(self, user_id: int) -> List[HistoricStatsPoint]:
        async with self._lock:
            return [point for _, point in sorted(self._historic.get(user_id, {}).items())]

    @asynccontextmanager
    async def unit_of_work(self):
        async with self._lock:
            saved = self._copy_state()
        try:
            yield
        except Exception:
            async with self._lock:
                self._restore_state(saved)
            raise

    def _copy_state(self) -> Dict[str, Dict]:
        # Caller holds the lock
        return {
            "_teams": dict(self._teams),
            "_users": dict(self._users),
            "_hardware": dict(self._hardware),
            "_raw": dict(self._raw),
            "_baselines": dict(self._baselines),
            "_offsets": dict(self._offsets),
            "_retired": dict(self._retired),
            "_historic": {user_id: dict(points) for user_id, points in self._historic.items()},
        }

    def _restore_state(self, saved: Dict[str, Dict]):
        # Caller holds the lock
        for name, value in saved.items():
            setattr(self, name, value)
