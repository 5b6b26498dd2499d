"""Cancellable periodic runner for repository passes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class PeriodicTask:
    """Run *job* every *interval_seconds* until stopped.

    A failing run is logged and the loop carries on with the next tick.
    *sleep* is injectable so tests can drive the loop without waiting.
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        sleep: Sleep | None = None,
        max_runs: int | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._job = job
        self.interval_seconds = interval_seconds
        self._sleep = sleep or asyncio.sleep
        self._max_runs = max_runs
        self._task: asyncio.Task[None] | None = None
        self.runs = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Any:
        self.runs += 1
        try:
            return await self._job()
        except Exception:
            self.failures += 1
            logger.exception("Scheduled run %d failed", self.runs)
            return None

    async def _loop(self) -> None:
        while self._max_runs is None or self.runs < self._max_runs:
            await self.run_once()
            if self._max_runs is not None and self.runs >= self._max_runs:
                break
            await self._sleep(self.interval_seconds)

    def start(self) -> asyncio.Task[None]:
        """Schedule the loop on the running event loop."""
        if self.running:
            raise RuntimeError("PeriodicTask is already running")
        self._task = asyncio.get_running_loop().create_task(self._loop())
        return self._task

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def wait(self) -> None:
        """Wait until the loop exits on its own (``max_runs`` reached)."""
        if self._task is not None:
            await self._task
