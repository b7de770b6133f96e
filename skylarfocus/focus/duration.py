"""
Duration math for focus sessions.

Values are always derived from absolute wall-clock timestamps, never by
decrementing a counter per tick, so skipped or throttled ticks cannot skew
the result.
"""

from __future__ import annotations

import math
from typing import Optional


def _round_seconds(delta_ms: int) -> int:
    """Milliseconds to whole seconds, rounding halves up."""
    return int(math.floor(delta_ms / 1000 + 0.5))


def elapsed_seconds(accumulated: int, run_since_ms: Optional[int], now_ms: int) -> int:
    """
    Seconds elapsed in a count-up session.

    Args:
        accumulated: Seconds frozen at the last pause
        run_since_ms: Epoch ms the current run started, None when paused
        now_ms: Current epoch ms

    Returns:
        Elapsed seconds, never negative
    """
    elapsed = accumulated
    if run_since_ms is not None:
        elapsed += _round_seconds(now_ms - run_since_ms)
    return max(0, elapsed)


def remaining_seconds(frozen_remaining: int, ends_at_ms: Optional[int], now_ms: int) -> int:
    """
    Seconds left in a count-down interval.

    Args:
        frozen_remaining: Seconds frozen at the last pause
        ends_at_ms: Epoch ms the interval ends, None when paused
        now_ms: Current epoch ms

    Returns:
        Remaining seconds, clamped at 0
    """
    if ends_at_ms is None:
        return max(0, frozen_remaining)
    return max(0, _round_seconds(ends_at_ms - now_ms))


def whole_minutes(seconds: int) -> int:
    """Whole minutes in a span of seconds; partial minutes are dropped."""
    return max(0, seconds) // 60


def format_time(seconds: int) -> str:
    """Format seconds as M:SS or H:MM:SS."""
    seconds = max(0, int(seconds))
    if seconds >= 3600:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        secs = seconds % 60
        return f"{hours}:{minutes:02d}:{secs:02d}"
    minutes = seconds // 60
    secs = seconds % 60
    return f"{minutes}:{secs:02d}"
