"""Work/break cycle scheduling."""

from __future__ import annotations

from typing import Optional

from ..core.config import TimerConfig
from .models import FocusMode

DEFAULT_TIMER = TimerConfig()


def next_break(cycle_count: int, sessions_before_long_break: int = 4) -> FocusMode:
    """
    Break that follows the focus interval about to complete.

    Args:
        cycle_count: Focus intervals completed before this one

    Returns:
        LONG_BREAK on every Nth completed interval, SHORT_BREAK otherwise
    """
    if (cycle_count + 1) % sessions_before_long_break == 0:
        return FocusMode.LONG_BREAK
    return FocusMode.SHORT_BREAK


def interval_seconds(mode: FocusMode, timer: Optional[TimerConfig] = None) -> int:
    """Fixed length of a count-down mode in seconds."""
    timer = timer or DEFAULT_TIMER
    if mode == FocusMode.FOCUS:
        return timer.focus_seconds
    if mode == FocusMode.SHORT_BREAK:
        return timer.short_break_seconds
    if mode == FocusMode.LONG_BREAK:
        return timer.long_break_seconds
    raise ValueError(f"{mode.value} has no fixed length")
