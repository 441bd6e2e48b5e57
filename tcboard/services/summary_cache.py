"""
Cached competition scoreboard, invalidated by writes.

A snapshot is served until a later write moves the gate to WRITE_EXECUTED,
which bumps the write generation the snapshot was built at. The next reader
runs the full aggregation + ranking pipeline under a lock; readers arriving
while a recompute is in flight wait for it and then reuse its result.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from tcboard.data_models.competition import CompetitionSnapshot
from tcboard.services.state import StateGate
from tcboard.utils.exceptions import NoDataAvailableError, StaleCacheError

logger = logging.getLogger(__name__)

SnapshotBuilder = Callable[[], Awaitable[CompetitionSnapshot]]


class SummaryCache:
    """Holds the latest CompetitionSnapshot for one engine instance."""

    def __init__(self, state_gate: StateGate, builder: SnapshotBuilder):
        self.state_gate = state_gate
        self.builder = builder
        self._snapshot: Optional[CompetitionSnapshot] = None
        self._snapshot_generation = -1
        self._cache_lock = asyncio.Lock()

    @property
    def cached(self) -> Optional[CompetitionSnapshot]:
        return self._snapshot

    def _is_cache_valid(self) -> bool:
        # Valid only while no write has landed since the snapshot was built,
        # whatever state the gate has moved on to
        return self._snapshot is not None and self._snapshot_generation == self.state_gate.write_generation

    async def retrieve(self) -> CompetitionSnapshot:
        """
        Get the current snapshot, recomputing it if writes made it stale.

        Returns:
            The cached or freshly built snapshot, or the previous snapshot
            marked ``is_stale`` if the recompute failed

        Raises:
            NoDataAvailableError: If the recompute failed and nothing is cached
        """
        if self._is_cache_valid():
            logger.debug("Retrieving cached TC result")
            return self._snapshot

        async with self._cache_lock:
            if self._is_cache_valid():
                return self._snapshot

            generation = self.state_gate.write_generation
            logger.debug(f"Calculating latest TC result, system state: {self.state_gate.current_state().name}")
            start_time = time.monotonic()
            try:
                snapshot = await self.builder()
            except Exception as e:
                if self._snapshot is None:
                    logger.error(f"TC result calculation failed with no cached result: {e}", exc_info=True)
                    raise NoDataAvailableError(str(e)) from e
                logger.warning(str(StaleCacheError(str(e))), exc_info=True)
                return self._snapshot.as_stale()

            self._snapshot = snapshot
            self._snapshot_generation = generation
            self.state_gate.settle_after_recompute(generation)
            logger.info(
                f"Calculated TC result for {len(snapshot.team_summaries)} teams "
                f"in {time.monotonic() - start_time:.3f}s"
            )
            return snapshot

    async def invalidate(self):
        """Drop the cached snapshot."""
        async with self._cache_lock:
            logger.info("Clearing cached TC result")
            self._snapshot = None
            self._snapshot_generation = -1
