"""
PeriodicSweeper — background cleanup on an interval.

One asyncio task per sweep (sessions, CSRF tokens, rate-limit windows). The
sleep function is injectable so tests can drive iterations without waiting.
A failing sweep is logged and the loop carries on; a skipped or failed sweep
only delays reclaiming memory, since expiry is enforced on read.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

SweepFn = Callable[[], Awaitable[int]]
SleepFn = Callable[[float], Awaitable[None]]


class PeriodicSweeper:
    def __init__(
        self,
        name: str,
        sweep: SweepFn,
        interval_seconds: float,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self._sweep = sweep
        self.interval_seconds = interval_seconds
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.runs = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """One sweep. Returns the number of entries removed (0 on failure)."""
        try:
            removed = await self._sweep()
        except asyncio.CancelledError:
            raise
        except Exception:
            self.failures += 1
            logger.exception("Sweep %s failed", self.name)
            return 0
        finally:
            self.runs += 1
        if removed:
            logger.info("Sweep %s removed %d entr%s", self.name, removed, "y" if removed == 1 else "ies")
        return removed

    async def _loop(self) -> None:
        while True:
            await self._sleep(self.interval_seconds)
            await self.run_once()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"sweeper:{self.name}")
        logger.info("Sweep %s started interval=%ss", self.name, self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Sweep %s stopped", self.name)
