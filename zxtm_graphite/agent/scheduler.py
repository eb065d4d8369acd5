"""Background poll scheduler — one non-overlapping timer per target."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from zxtm_graphite.device.models import Target

# Type for the callback that runs one poll cycle for a target
CycleCallback = Callable[[Target], Awaitable[Any]]


@dataclass
class JobStats:
    runs: int = 0
    skipped: int = 0
    failures: int = 0


@dataclass
class _Job:
    target: Target
    interval: float
    timer: asyncio.Task | None = None
    cycle: asyncio.Task | None = None
    stats: JobStats = field(default_factory=JobStats)

    @property
    def running(self) -> bool:
        return self.cycle is not None and not self.cycle.done()


class Scheduler:
    """Fires a poll cycle per target every interval.

    A tick that arrives while the target's previous cycle is still in
    flight is dropped. Targets never wait on each other.
    """

    def __init__(self, callback: CycleCallback,
                 logger: logging.Logger | None = None) -> None:
        self._callback = callback
        self._logger = logger or logging.getLogger(__name__)
        self._jobs: dict[str, _Job] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def add(self, target: Target, interval: float | None = None) -> None:
        """Register a target. Its timer starts with the scheduler."""
        if target.host in self._jobs:
            raise ValueError(f"Target '{target.host}' is already scheduled")
        job = _Job(target=target, interval=interval or target.interval)
        self._jobs[target.host] = job
        self._logger.info("Scheduling collection job every %ss for %s as %s",
                          job.interval, target.host, target.name)
        if self._running:
            self._start_timer(job)

    def targets(self) -> list[Target]:
        return [job.target for job in self._jobs.values()]

    def start(self) -> None:
        """Start timers for all registered targets."""
        if self._running:
            return
        self._running = True
        for job in self._jobs.values():
            self._start_timer(job)
        self._logger.info("Scheduler started: %d poll loops", len(self._jobs))

    async def stop(self) -> None:
        """Stop all timers and let in-flight cycles finish."""
        self._running = False
        timers = [job.timer for job in self._jobs.values() if job.timer is not None]
        for timer in timers:
            timer.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)

        cycles = [job.cycle for job in self._jobs.values() if job.running]
        if cycles:
            self._logger.info("Waiting for %d in-flight poll cycles", len(cycles))
            await asyncio.gather(*cycles, return_exceptions=True)

        for job in self._jobs.values():
            job.timer = None
            job.cycle = None
        self._logger.info("Scheduler stopped")

    def fire(self, host: str) -> bool:
        """One timer tick. Returns False if the tick was dropped."""
        job = self._jobs[host]
        if job.running:
            job.stats.skipped += 1
            self._logger.warning(
                "Skipping collection for %s: previous cycle still running",
                job.target.name,
            )
            return False
        self._logger.info("Scheduled collection job running for %s", job.target.name)
        job.cycle = asyncio.create_task(
            self._run_cycle(job), name=f"poll-{host}",
        )
        return True

    def is_running(self, host: str) -> bool:
        return self._jobs[host].running

    def stats(self, host: str) -> JobStats:
        return self._jobs[host].stats

    def _start_timer(self, job: _Job) -> None:
        job.timer = asyncio.create_task(
            self._timer_loop(job), name=f"timer-{job.target.host}",
        )

    async def _timer_loop(self, job: _Job) -> None:
        loop = asyncio.get_running_loop()
        next_fire = loop.time() + job.interval
        while self._running:
            await asyncio.sleep(max(0.0, next_fire - loop.time()))
            if not self._running:
                break
            self.fire(job.target.host)
            next_fire += job.interval
            # Ticks missed while the loop was blocked are skipped, not replayed
            now = loop.time()
            while next_fire <= now:
                next_fire += job.interval

    async def _run_cycle(self, job: _Job) -> None:
        job.stats.runs += 1
        try:
            result = await self._callback(job.target)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            job.stats.failures += 1
            self._logger.error("Poll cycle for %s failed: %s",
                               job.target.label, exc, exc_info=True)
            return
        if result is False:
            job.stats.failures += 1
