"""Core modules for SkylarFocus."""

from .clock import Clock, FakeClock, SystemClock
from .config import (
    DATA_DIR,
    PROJECT_ROOT,
    SkylarConfig,
    TimerConfig,
    config,
    ensure_directories,
    env,
    get_config,
)
from .errors import (
    BestEffort,
    ConfigurationError,
    CorruptSnapshotError,
    FocusError,
    InvalidTransitionError,
    MissingTaskReferenceError,
    get_error_message,
    message_for,
)
from .logger import setup_logging

__all__ = [
    "Clock",
    "FakeClock",
    "SystemClock",
    "DATA_DIR",
    "PROJECT_ROOT",
    "SkylarConfig",
    "TimerConfig",
    "config",
    "ensure_directories",
    "env",
    "get_config",
    "BestEffort",
    "ConfigurationError",
    "CorruptSnapshotError",
    "FocusError",
    "InvalidTransitionError",
    "MissingTaskReferenceError",
    "get_error_message",
    "message_for",
    "setup_logging",
]
