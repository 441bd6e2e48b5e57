"""
Retirement of users leaving a team mid-competition.

A retired user's last known contribution is frozen into an append-only ledger
and credited to the old team for the rest of the competition. There is no way
to reinstate a record: a returning user starts again from a new baseline.
"""

import logging
import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from tcboard.data_models.competition import User
from tcboard.data_models.stats import RetiredUserCompetitionStats, UserCompetitionStats
from tcboard.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)


class RetiredUserLedger:
    """Append-only arena of frozen retirement records keyed by retired id."""

    def __init__(self, records: Iterable[RetiredUserCompetitionStats] = ()):
        self._records: Dict[int, RetiredUserCompetitionStats] = {}
        self._next_id = 1
        self._lock = threading.Lock()
        for record in records:
            self._load(record)

    def _load(self, record: RetiredUserCompetitionStats):
        if record.retired_id in self._records:
            raise ValidationError("retired_id", f"retired ID {record.retired_id} already exists")
        self._records[record.retired_id] = record
        self._next_id = max(self._next_id, record.retired_id + 1)

    def create(
        self,
        team_id: int,
        display_name: str,
        stats: UserCompetitionStats,
        retired_at: Optional[datetime] = None
    ) -> RetiredUserCompetitionStats:
        """Build a record under the next free retired ID without adding it."""
        with self._lock:
            record = RetiredUserCompetitionStats.from_stats(
                self._next_id, team_id, display_name, stats, retired_at
            )
            self._next_id += 1
            return record

    def add(self, record: RetiredUserCompetitionStats) -> RetiredUserCompetitionStats:
        """Add a record once it has been persisted."""
        with self._lock:
            self._load(record)
            return record

    def append(
        self,
        team_id: int,
        display_name: str,
        stats: UserCompetitionStats,
        retired_at: Optional[datetime] = None
    ) -> RetiredUserCompetitionStats:
        return self.add(self.create(team_id, display_name, stats, retired_at))

    def get(self, retired_id: int) -> Optional[RetiredUserCompetitionStats]:
        return self._records.get(retired_id)

    def for_team(self, team_id: int) -> Tuple[RetiredUserCompetitionStats, ...]:
        """Records credited to a team, in retirement order."""
        with self._lock:
            return tuple(
                record for retired_id, record in sorted(self._records.items())
                if record.team_id == team_id
            )

    def all(self) -> Tuple[RetiredUserCompetitionStats, ...]:
        with self._lock:
            return tuple(record for _, record in sorted(self._records.items()))

    def by_team(self) -> Dict[int, List[RetiredUserCompetitionStats]]:
        grouped: Dict[int, List[RetiredUserCompetitionStats]] = {}
        for record in self.all():
            grouped.setdefault(record.team_id, []).append(record)
        return grouped

    def clear(self):
        """Drop every record. Only used by an explicit competition reset."""
        with self._lock:
            logger.info(f"Clearing {len(self._records)} retired user records")
            self._records.clear()

    def __len__(self) -> int:
        return len(self._records)


class RetirementHandler:
    """Freezes a departing user's stats into the ledger."""

    def __init__(self, ledger: Optional[RetiredUserLedger] = None):
        self.ledger = ledger if ledger is not None else RetiredUserLedger()

    def freeze(
        self,
        user: User,
        current_stats: UserCompetitionStats,
        team_id: Optional[int] = None
    ) -> RetiredUserCompetitionStats:
        """
        Freeze ``current_stats`` for ``user`` into a record for their team.

        The record is not in the ledger until passed to ``commit``, so a
        caller can persist it first and drop it if that fails.
        ``current_stats`` must be the stats computed in the same pass that
        removes the user, otherwise the team total drifts from what was shown.

        Args:
            user: User leaving the team
            current_stats: Most recently computed stats for the user
            team_id: Team to credit, defaults to the user's current team

        Returns:
            The immutable retirement record
        """
        if current_stats.user_id != user.id:
            raise ValidationError(
                "current_stats",
                f"stats belong to user {current_stats.user_id}, not user {user.id}"
            )
        return self.ledger.create(
            team_id if team_id is not None else user.team_id,
            user.display_name,
            current_stats,
        )

    def commit(self, user: User, record: RetiredUserCompetitionStats) -> RetiredUserCompetitionStats:
        self.ledger.add(record)
        logger.info(
            f"User '{user.display_name}' (ID: {user.id}) retired from team {record.team_id} "
            f"with retired stats ID {record.retired_id}: {record.multiplied_points:,} TC points"
        )
        return record

    def retire(
        self,
        user: User,
        current_stats: UserCompetitionStats,
        team_id: Optional[int] = None
    ) -> RetiredUserCompetitionStats:
        """Freeze and commit in one step, for callers with nothing to persist."""
        return self.commit(user, self.freeze(user, current_stats, team_id))
