"""Interval scheduler for the periodic background jobs."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from clawdtm.logs import log_json

logger = logging.getLogger(__name__)

JobFn = Callable[[], Awaitable[Any]]


@dataclass
class ScheduledJob:
    name: str
    interval_seconds: float
    func: JobFn
    run_on_start: bool = False
    runs: int = 0
    failures: int = 0
    skipped_ticks: int = 0
    last_result: Any = None
    last_error: str | None = None
    current_task: asyncio.Task[Any] | None = field(default=None, repr=False)

    @property
    def is_running(self) -> bool:
        return self.current_task is not None and not self.current_task.done()

    def status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "interval_seconds": self.interval_seconds,
            "running": self.is_running,
            "runs": self.runs,
            "failures": self.failures,
            "skipped_ticks": self.skipped_ticks,
            "last_error": self.last_error,
        }


class JobScheduler:
    """One timer task per job; a tick is skipped while that job's previous run is in flight.

    Different jobs run concurrently. A failing run is logged and counted and
    the timer keeps going.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, ScheduledJob] = {}
        self._timers: list[asyncio.Task[None]] = []
        self._lock = asyncio.Lock()

    @property
    def jobs(self) -> dict[str, ScheduledJob]:
        return dict(self._jobs)

    def add(self, name: str, interval_seconds: float, func: JobFn, *, run_on_start: bool = False) -> ScheduledJob:
        if name in self._jobs:
            raise ValueError(f"job already registered: {name}")
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        job = ScheduledJob(name=name, interval_seconds=float(interval_seconds), func=func, run_on_start=run_on_start)
        self._jobs[name] = job
        return job

    async def _execute(self, job: ScheduledJob) -> Any:
        started = time.perf_counter()
        try:
            result = await job.func()
        except Exception as exc:
            job.failures += 1
            job.last_error = str(exc)
            logger.exception("job %s failed", job.name)
            log_json(
                logger,
                logging.ERROR,
                "job_failed",
                job=job.name,
                error=str(exc),
                duration_ms=round((time.perf_counter() - started) * 1000.0, 3),
            )
            return None
        job.runs += 1
        job.last_error = None
        job.last_result = result
        log_json(
            logger,
            logging.INFO,
            "job_completed",
            job=job.name,
            duration_ms=round((time.perf_counter() - started) * 1000.0, 3),
        )
        return result

    def trigger(self, name: str) -> asyncio.Task[Any] | None:
        """Start one run now; returns None when the job is already running."""
        job = self._jobs[name]
        if job.is_running:
            job.skipped_ticks += 1
            log_json(logger, logging.INFO, "job_skipped", job=job.name, reason="still_running")
            return None
        job.current_task = asyncio.create_task(self._execute(job), name=f"clawdtm-job-{name}")
        return job.current_task

    async def run_once(self, name: str) -> Any:
        task = self.trigger(name)
        if task is None:
            return None
        return await task

    async def _timer(self, job: ScheduledJob) -> None:
        if job.run_on_start:
            self.trigger(job.name)
        while True:
            await asyncio.sleep(job.interval_seconds)
            self.trigger(job.name)

    async def start(self) -> None:
        async with self._lock:
            if self._timers:
                logger.warning("scheduler already running")
                return
            for job in self._jobs.values():
                self._timers.append(asyncio.create_task(self._timer(job), name=f"clawdtm-timer-{job.name}"))
            logger.info("scheduler started jobs=%s", ",".join(self._jobs))

    async def stop(self) -> None:
        async with self._lock:
            for timer in self._timers:
                timer.cancel()
            for timer in self._timers:
                with contextlib.suppress(asyncio.CancelledError):
                    await timer
            self._timers = []
            running = [job.current_task for job in self._jobs.values() if job.is_running]
            for task in running:
                task.cancel()
            for task in running:
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            logger.info("scheduler stopped")

    async def run_forever(self) -> None:
        await self.start()
        try:
            while True:
                await asyncio.sleep(3600)
        finally:
            await self.stop()
