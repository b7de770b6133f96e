"""
Centralized Error Handling for SkylarFocus.

Provides:
- The focus engine's error kinds
- User-friendly error messages
- Best-effort helper for side effects that must never break a session
"""

from typing import Dict, Optional

from loguru import logger


class FocusError(Exception):
    """Base class for focus engine errors."""
    error_key = "focus_error"


class InvalidTransitionError(FocusError):
    """Raised when an intent is not allowed in the current session state."""
    error_key = "invalid_transition"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Cannot {operation}: {reason}")


class CorruptSnapshotError(FocusError):
    """Raised when a persisted session snapshot cannot be decoded."""
    error_key = "corrupt_snapshot"


class MissingTaskReferenceError(FocusError):
    """Raised when the task a session points at no longer exists."""
    error_key = "missing_task"

    def __init__(self, task_id: str, collection: Optional[str] = None):
        self.task_id = task_id
        self.collection = collection
        where = f" in {collection}" if collection else ""
        super().__init__(f"Task {task_id!r} not found{where}")


class ConfigurationError(FocusError):
    """Raised when configuration is invalid."""
    error_key = "configuration"


ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "invalid_transition": {
        "short": "That action isn't available right now",
        "detailed": """The timer can't do that in its current state.

- Start needs the timer to be idle (stop the current session first).
- Pause needs a running timer, resume needs a paused one.
- Complete isn't available during a break.""",
    },
    "corrupt_snapshot": {
        "short": "Saved timer could not be restored",
        "detailed": """The saved timer state was unreadable and has been reset.

Any minutes already credited to your tasks are safe; only the
in-progress interval was lost.""",
    },
    "missing_task": {
        "short": "Focus task was removed",
        "detailed": """The task you were focusing on was deleted, so the session
was stopped. Pick another task from today's plan to continue.""",
    },
    "configuration": {
        "short": "Invalid configuration",
        "detailed": """config/settings.yaml contains an invalid value.

Check the timer durations are positive and the log level is one of
DEBUG, INFO, WARNING, ERROR or CRITICAL.""",
    },
    "storage_error": {
        "short": "Storage unavailable",
        "detailed": """Could not read or write local data.

Please check:
1. The data directory exists and is writable
2. The disk is not full
3. No other process holds the database locked""",
    },
}


def get_error_message(error_key: str, detailed: bool = False) -> str:
    """
    Get user-friendly error message.

    Args:
        error_key: Key for the error type
        detailed: Whether to return the detailed message

    Returns:
        User-friendly error message
    """
    if error_key not in ERROR_MESSAGES:
        return f"An error occurred: {error_key}"

    msg = ERROR_MESSAGES[error_key]
    return msg["detailed"] if detailed else msg["short"]


def message_for(error: Exception, detailed: bool = False) -> str:
    """User-facing message for an exception raised by the engine."""
    if isinstance(error, FocusError):
        return get_error_message(error.error_key, detailed=detailed)
    return get_error_message("storage_error", detailed=detailed)


class BestEffort:
    """
    Run a non-critical side effect, logging instead of raising on failure.

    Usage:
        with BestEffort("notification"):
            sink.notify(title, body)
    """

    def __init__(self, action: str, level: str = "DEBUG"):
        self.action = action
        self.level = level
        self.failed = False
        self.error: Optional[BaseException] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and issubclass(exc_type, Exception):
            self.failed = True
            self.error = exc_val
            logger.log(self.level, f"{self.action} failed: {exc_val}")
            return True
        return False
