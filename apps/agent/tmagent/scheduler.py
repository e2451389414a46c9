"""Periodic job runner — one scheduler for every background loop.

Each job gets a timer task. On every interval the timer spawns the job's tick
as its own task, so a slow tick never delays the timer; overlapping ticks are
the job's business (the orchestrator and action processor both guard
against re-entry). ``stop()`` cancels all timers, gives in-flight ticks a
grace period, then cancels whatever is left.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


def _constant(seconds: float) -> Callable[[], float]:
    return lambda: seconds


@dataclass
class PeriodicJob:
    name: str
    tick: Callable[[], Awaitable]
    interval: Callable[[], float]  # seconds until the next tick
    run_immediately: bool = False
    runs: int = 0
    failures: int = 0
    last_run_at: float | None = None
    last_error: str | None = None
    _timer: asyncio.Task | None = field(default=None, repr=False)


class Scheduler:
    def __init__(self, grace_period: float = 10.0) -> None:
        self.grace_period = grace_period
        self._jobs: dict[str, PeriodicJob] = {}
        self._inflight: set[asyncio.Task] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def add_job(
        self,
        name: str,
        tick: Callable[[], Awaitable],
        interval: float | Callable[[], float],
        run_immediately: bool = False,
    ) -> PeriodicJob:
        if name in self._jobs:
            raise ValueError(f"Job {name!r} already registered")
        if not callable(interval):
            interval = _constant(float(interval))
        job = PeriodicJob(name=name, tick=tick, interval=interval, run_immediately=run_immediately)
        self._jobs[name] = job
        if self._running:
            job._timer = asyncio.create_task(self._timer(job), name=f"{name}_timer")
        return job

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        for job in self._jobs.values():
            job._timer = asyncio.create_task(self._timer(job), name=f"{job.name}_timer")
        logger.info("Scheduler started (%s)", ", ".join(self._jobs) or "no jobs")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False

        timers = [j._timer for j in self._jobs.values() if j._timer]
        for t in timers:
            t.cancel()
        await asyncio.gather(*timers, return_exceptions=True)
        for job in self._jobs.values():
            job._timer = None

        if self._inflight:
            _, pending = await asyncio.wait(set(self._inflight), timeout=self.grace_period)
            for t in pending:
                t.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.info("Cancelled %d in-flight ticks", len(pending))
        logger.info("Scheduler stopped")

    async def _timer(self, job: PeriodicJob) -> None:
        try:
            if not job.run_immediately:
                await asyncio.sleep(job.interval())
            while True:
                self._spawn(job)
                await asyncio.sleep(job.interval())
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("Timer for job %s crashed: %s", job.name, e, exc_info=True)

    def _spawn(self, job: PeriodicJob) -> None:
        task = asyncio.create_task(self._run_tick(job), name=f"{job.name}_tick")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run_tick(self, job: PeriodicJob) -> None:
        job.last_run_at = time.time()
        try:
            await job.tick()
            job.runs += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            job.failures += 1
            job.last_error = str(e)
            logger.error("Job %s failed: %s", job.name, e, exc_info=True)

    def status(self) -> dict:
        return {
            "running": self._running,
            "in_flight": len(self._inflight),
            "jobs": {
                name: {
                    "runs": j.runs,
                    "failures": j.failures,
                    "last_run_at": j.last_run_at,
                    "last_error": j.last_error,
                }
                for name, j in self._jobs.items()
            },
        }
