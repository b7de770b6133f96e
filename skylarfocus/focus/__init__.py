"""
Focus Module for SkylarFocus.

Provides the focus session engine:
- Count-up and pomodoro timers anchored to wall-clock time
- Snapshot codec for surviving reloads
- Progress reconciliation into the plan and task list
- Work/break cycle scheduling
- Focus history and statistics
"""

from __future__ import annotations

from .codec import restore, snapshot, storage_key
from .cycle import interval_seconds, next_break
from .driver import TimerDriver
from .duration import elapsed_seconds, format_time, remaining_seconds
from .engine import FocusSessionEngine
from .history import FocusHistory, FocusRecord, FocusStats
from .models import FocusMode, FocusStatus, QuotaUnit, SessionState, Task, TransitionResult
from .notifications import CallbackNotifier, LogNotifier, NotificationSink
from .reconciler import ProgressReconciler

__all__ = [
    "restore",
    "snapshot",
    "storage_key",
    "interval_seconds",
    "next_break",
    "TimerDriver",
    "elapsed_seconds",
    "format_time",
    "remaining_seconds",
    "FocusSessionEngine",
    "FocusHistory",
    "FocusRecord",
    "FocusStats",
    "FocusMode",
    "FocusStatus",
    "QuotaUnit",
    "SessionState",
    "Task",
    "TransitionResult",
    "CallbackNotifier",
    "LogNotifier",
    "NotificationSink",
    "ProgressReconciler",
]
