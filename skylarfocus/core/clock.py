"""
Clock source for the focus engine.

Everything that needs the current time goes through a Clock so tests can
drive time deterministically.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from datetime import date, datetime


class Clock(ABC):
    """Source of wall-clock time in epoch milliseconds."""

    @abstractmethod
    def now(self) -> int:
        """Return the current time in epoch milliseconds."""

    def today(self) -> date:
        """Local calendar date for the current time."""
        return datetime.fromtimestamp(self.now() / 1000).date()


class SystemClock(Clock):
    """Clock backed by the system wall clock."""

    def now(self) -> int:
        return int(time.time() * 1000)


class FakeClock(Clock):
    """
    Manually driven clock.

    Usage:
        clock = FakeClock(start_ms=0)
        clock.advance_seconds(1500)
    """

    def __init__(self, start_ms: int = 0):
        self._now = int(start_ms)

    def now(self) -> int:
        return self._now

    def set(self, epoch_ms: int) -> None:
        self._now = int(epoch_ms)

    def advance(self, ms: int) -> None:
        self._now += int(ms)

    def advance_seconds(self, seconds: float) -> None:
        self.advance(int(seconds * 1000))
