"""
Data model for focus sessions.

SessionState is owned by the engine; Task records are owned by the task
store and only their progress fields are touched by the reconciler.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..core.errors import FocusError


class FocusMode(str, Enum):
    """Timer mode."""
    IDLE = "idle"
    COUNT_UP = "count_up"
    FOCUS = "focus"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"

    @property
    def is_count_down(self) -> bool:
        return self in (FocusMode.FOCUS, FocusMode.SHORT_BREAK, FocusMode.LONG_BREAK)

    @property
    def is_break(self) -> bool:
        return self in (FocusMode.SHORT_BREAK, FocusMode.LONG_BREAK)


class QuotaUnit(str, Enum):
    """Unit a task's quota is expressed in."""
    MINUTES = "minutes"
    POMODOROS = "pomodoros"


@dataclass
class Task:
    """A planned task as seen by the focus engine."""
    id: str
    text: str = ""
    duration: int = 0  # quota, in minutes or pomodoros depending on unit
    unit: QuotaUnit = QuotaUnit.MINUTES
    actual_duration: int = 0  # always minutes
    actual_pomodoros: int = 0
    completed: bool = False
    environment_id: Optional[str] = None

    def quota_met(self) -> bool:
        """Whether recorded progress meets the quota (never true for a zero quota)."""
        if self.duration <= 0:
            return False
        if self.unit == QuotaUnit.POMODOROS:
            return self.actual_pomodoros >= self.duration
        return self.actual_duration >= self.duration

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["unit"] = self.unit.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            id=str(data["id"]),
            text=data.get("text", ""),
            duration=int(data.get("duration", 0)),
            unit=QuotaUnit(data.get("unit", QuotaUnit.MINUTES.value)),
            actual_duration=int(data.get("actual_duration", 0)),
            actual_pomodoros=int(data.get("actual_pomodoros", 0)),
            completed=bool(data.get("completed", False)),
            environment_id=data.get("environment_id"),
        )


@dataclass
class SessionState:
    """
    Live timer state for one user.

    Count-up sessions use accumulated_seconds/run_since_ms, count-down
    sessions use remaining_seconds/ends_at_ms. The epoch timestamp is set
    only while running.
    """
    mode: FocusMode = FocusMode.IDLE
    task_ref: Optional[str] = None
    cycle_count: int = 0
    is_running: bool = False
    accumulated_seconds: int = 0
    run_since_ms: Optional[int] = None
    remaining_seconds: int = 0
    ends_at_ms: Optional[int] = None
    flushed_seconds: int = 0
    last_task_ref: Optional[str] = None

    @property
    def is_idle(self) -> bool:
        return self.mode == FocusMode.IDLE

    def validate(self) -> None:
        """
        Check the state invariants.

        Raises:
            ValueError: If an invariant does not hold.
        """
        if self.is_idle != (self.task_ref is None):
            raise ValueError("mode is idle iff task_ref is None")
        if self.cycle_count < 0 or self.accumulated_seconds < 0 or self.remaining_seconds < 0:
            raise ValueError("counters must be non-negative")
        if self.is_idle:
            if self.is_running or self.run_since_ms is not None or self.ends_at_ms is not None:
                raise ValueError("idle state cannot be running")
            return
        if self.mode == FocusMode.COUNT_UP:
            if self.ends_at_ms is not None:
                raise ValueError("count-up session has an end timestamp")
            if self.is_running != (self.run_since_ms is not None):
                raise ValueError("run_since_ms must be set exactly while running")
        else:
            if self.run_since_ms is not None:
                raise ValueError("count-down session has a start timestamp")
            if self.is_running != (self.ends_at_ms is not None):
                raise ValueError("ends_at_ms must be set exactly while running")

    @classmethod
    def idle(cls, cycle_count: int = 0, last_task_ref: Optional[str] = None) -> "SessionState":
        return cls(cycle_count=cycle_count, last_task_ref=last_task_ref)


@dataclass
class TransitionResult:
    """Outcome of an engine intent."""
    ok: bool
    message: str
    error: Optional[FocusError] = None

    def __bool__(self) -> bool:
        return self.ok


@dataclass
class FocusStatus:
    """Read-only view of the session for display."""
    mode: FocusMode
    task_ref: Optional[str]
    seconds: int
    is_running: bool
    cycle_count: int
    label: str
    time_text: str
    progress_percent: float = 0.0
    progress_text: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)
