"""
Custom exceptions for the competition engine with user-friendly error messages.
"""

class CompetitionError(Exception):
    """Base exception for competition-related errors."""
    retryable = False

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class ConfigurationError(CompetitionError):
    """Raised when a user does not resolve to exactly one hardware entry or team."""
    def __init__(self, user_id: int, reason: str):
        super().__init__(
            f"User {user_id} is misconfigured: {reason}",
            "❌ User configuration is invalid, stats could not be calculated."
        )
        self.user_id = user_id

class ValidationError(CompetitionError):
    """Raised when input data fails validation at creation time."""
    def __init__(self, field: str, reason: str):
        super().__init__(
            f"Invalid '{field}': {reason}",
            f"❌ {reason}"
        )
        self.field = field

class StateBlockedError(CompetitionError):
    """Raised when the current system state does not permit an operation."""
    retryable = True

    def __init__(self, state, operation: str):
        super().__init__(
            f"System state {state.name} does not allow {operation} requests",
            "❌ The system is busy. Please try again shortly."
        )
        self.state = state
        self.operation = operation

class InvalidStateTransitionError(CompetitionError):
    """Raised when a state transition is not part of the state machine."""
    def __init__(self, current, requested):
        super().__init__(
            f"Cannot transition system state from {current.name} to {requested.name}",
            "❌ Invalid system state change."
        )
        self.current = current
        self.requested = requested

class StaleCacheError(CompetitionError):
    """Raised (and logged) when a recompute failed and a previous snapshot is served."""
    def __init__(self, details: str = None):
        super().__init__(
            f"Scoreboard recompute failed, serving previous snapshot: {details}",
            "⚠️ Showing the last known scoreboard."
        )

class NoDataAvailableError(CompetitionError):
    """Raised when a recompute failed and no previous snapshot exists."""
    retryable = True

    def __init__(self, details: str = None):
        super().__init__(
            f"Scoreboard unavailable, recompute failed with no previous snapshot: {details}",
            "❌ Scoreboard is not available yet. Please try again later."
        )

class AnomalousInputWarning(UserWarning):
    """Emitted when a negative delta or offset is clamped to zero."""
