"""
Asyncio tick driver.

Calls ``engine.tick()`` on a fixed cadence from the event loop that also
runs the intent handlers, so ticks and intents never interleave.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from .engine import FocusSessionEngine


class TimerDriver:
    """
    Periodic ticker for a FocusSessionEngine.

    Usage:
        driver = TimerDriver(engine, interval=1.0)
        driver.start()
        ...
        await driver.stop()
    """

    def __init__(self, engine: FocusSessionEngine, interval: Optional[float] = None):
        self.engine = engine
        self.interval = interval if interval is not None else engine.timer.tick_interval
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0
        self.errors = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.debug(f"Timer driver started ({self.interval}s)")

    async def stop(self) -> None:
        """Stop ticking and wait for the loop task to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("Timer driver stopped")

    async def run_for(self, seconds: float) -> None:
        """Tick for a while, then stop. Used by the CLI watch mode."""
        self.start()
        try:
            await asyncio.sleep(seconds)
        finally:
            await self.stop()

    async def _run(self):
        """Tick until cancelled. A failing tick is logged and the loop carries on."""
        while True:
            await asyncio.sleep(self.interval)
            if not self.engine.is_running:
                continue
            try:
                self.engine.tick()
            except Exception as e:
                self.errors += 1
                logger.exception(f"Timer driver error: {e}")
            else:
                self.ticks += 1
