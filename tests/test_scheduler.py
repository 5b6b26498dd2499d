"""Tests for the periodic task runner."""

from __future__ import annotations

import asyncio
import logging

import pytest

from cookie_jar.scheduler import PeriodicTask


class _Recorder:
    def __init__(self, fail_on: set[int] | None = None) -> None:
        self.calls = 0
        self.fail_on = fail_on or set()

    async def __call__(self) -> int:
        self.calls += 1
        if self.calls in self.fail_on:
            raise RuntimeError(f"run {self.calls} failed")
        return self.calls


class _FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class TestPeriodicTask:
    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError, match="positive"):
            PeriodicTask(_Recorder(), 0)

    async def test_run_once_returns_result(self) -> None:
        task = PeriodicTask(_Recorder(), 60)
        assert await task.run_once() == 1
        assert task.runs == 1

    async def test_runs_until_max_runs(self) -> None:
        job = _Recorder()
        sleep = _FakeSleep()
        task = PeriodicTask(job, 30, sleep=sleep, max_runs=3)

        task.start()
        await task.wait()

        assert job.calls == 3
        assert sleep.delays == [30, 30]
        assert not task.running

    async def test_failures_do_not_stop_loop(self, caplog: pytest.LogCaptureFixture) -> None:
        job = _Recorder(fail_on={2})
        task = PeriodicTask(job, 1, sleep=_FakeSleep(), max_runs=3)

        with caplog.at_level(logging.ERROR, logger="cookie_jar.scheduler"):
            task.start()
            await task.wait()

        assert job.calls == 3
        assert task.failures == 1
        assert "Scheduled run 2 failed" in caplog.text

    async def test_stop_cancels(self) -> None:
        job = _Recorder()
        task = PeriodicTask(job, 3600)

        task.start()
        await asyncio.sleep(0)
        assert task.running
        await task.stop()

        assert not task.running
        assert job.calls == 1

    async def test_start_twice(self) -> None:
        task = PeriodicTask(_Recorder(), 3600)
        task.start()
        try:
            with pytest.raises(RuntimeError, match="already running"):
                task.start()
        finally:
            await task.stop()

    async def test_stop_without_start(self) -> None:
        await PeriodicTask(_Recorder(), 1).stop()
