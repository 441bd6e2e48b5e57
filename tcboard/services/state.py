"""
System state machine gating reads and writes against the engine.

The state lives in an explicit StateGate object that is constructed once and
injected into the services that need it. Transitions are guarded by a lock so
a write's move to WRITE_EXECUTED is visible to every later reader.
"""

import logging
import threading
from enum import Enum
from typing import Dict, FrozenSet

from tcboard.utils.exceptions import InvalidStateTransitionError, StateBlockedError

logger = logging.getLogger(__name__)


class OperationType(Enum):
    READ = "read"
    WRITE = "write"


class SystemState(Enum):
    STARTING = "starting"
    AVAILABLE = "available"
    UPDATING_STATS = "updating_stats"
    WRITE_EXECUTED = "write_executed"
    RESETTING_STATS = "resetting_stats"

    @property
    def permitted_operations(self) -> FrozenSet[OperationType]:
        return _PERMITTED_OPERATIONS[self]

    def is_read_blocked(self) -> bool:
        return OperationType.READ not in self.permitted_operations

    def is_write_blocked(self) -> bool:
        return OperationType.WRITE not in self.permitted_operations


_PERMITTED_OPERATIONS: Dict[SystemState, FrozenSet[OperationType]] = {
    SystemState.STARTING: frozenset(),
    SystemState.AVAILABLE: frozenset({OperationType.READ, OperationType.WRITE}),
    SystemState.UPDATING_STATS: frozenset({OperationType.READ}),
    SystemState.WRITE_EXECUTED: frozenset({OperationType.READ, OperationType.WRITE}),
    SystemState.RESETTING_STATS: frozenset(),
}

# Nothing ever moves back to STARTING
ALLOWED_TRANSITIONS: Dict[SystemState, FrozenSet[SystemState]] = {
    SystemState.STARTING: frozenset({SystemState.AVAILABLE}),
    SystemState.AVAILABLE: frozenset({
        SystemState.UPDATING_STATS,
        SystemState.WRITE_EXECUTED,
        SystemState.RESETTING_STATS,
    }),
    SystemState.UPDATING_STATS: frozenset({SystemState.AVAILABLE, SystemState.WRITE_EXECUTED}),
    SystemState.WRITE_EXECUTED: frozenset({
        SystemState.AVAILABLE,
        SystemState.UPDATING_STATS,
        SystemState.RESETTING_STATS,
    }),
    SystemState.RESETTING_STATS: frozenset({SystemState.AVAILABLE, SystemState.WRITE_EXECUTED}),
}


class StateGate:
    """Holds the current SystemState and enforces the permission table."""

    def __init__(self, initial: SystemState = SystemState.STARTING):
        self._state = initial
        self._write_generation = 0
        self._lock = threading.Lock()

    def current_state(self) -> SystemState:
        with self._lock:
            return self._state

    @property
    def write_generation(self) -> int:
        """Incremented by every advance to WRITE_EXECUTED."""
        with self._lock:
            return self._write_generation

    def advance_state(self, next_state: SystemState) -> None:
        """Move to ``next_state``. Staying in the same state is allowed."""
        with self._lock:
            self._transition(next_state)

    def compare_and_set(self, expected: SystemState, next_state: SystemState) -> bool:
        """Move to ``next_state`` only if the current state is ``expected``."""
        with self._lock:
            if self._state is not expected:
                return False
            self._transition(next_state)
            return True

    def settle_after_recompute(self, generation: int) -> bool:
        """
        Move WRITE_EXECUTED back to AVAILABLE after a successful recompute.

        Only happens if no write completed since ``generation`` was read, so a
        reader never sees AVAILABLE with a snapshot older than the last write.
        """
        with self._lock:
            if self._state is not SystemState.WRITE_EXECUTED or self._write_generation != generation:
                return False
            self._transition(SystemState.AVAILABLE)
            return True

    def require_read(self) -> SystemState:
        state = self.current_state()
        if state.is_read_blocked():
            logger.warning(f"System state {state.name} does not allow read requests")
            raise StateBlockedError(state, OperationType.READ.value)
        return state

    def require_write(self) -> SystemState:
        state = self.current_state()
        if state.is_write_blocked():
            logger.warning(f"System state {state.name} does not allow write requests")
            raise StateBlockedError(state, OperationType.WRITE.value)
        return state

    def _transition(self, next_state: SystemState) -> None:
        # Caller holds the lock
        if next_state is not self._state:
            if next_state not in ALLOWED_TRANSITIONS[self._state]:
                raise InvalidStateTransitionError(self._state, next_state)
            logger.debug(f"Changing system state: {self._state.name} -> {next_state.name}")
            self._state = next_state
        # Every write counts, including one landing while already WRITE_EXECUTED
        if next_state is SystemState.WRITE_EXECUTED:
            self._write_generation += 1
