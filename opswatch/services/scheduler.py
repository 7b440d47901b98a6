"""Cooperative scheduler owning cancellable periodic jobs."""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional

from opswatch.core.logging import job_context
from opswatch.core.tasks import cancel_task, monitor_task

logger = logging.getLogger(__name__)

JobCallback = Callable[[], Awaitable[None] | None]


class PeriodicJob:
    """Runs ``callback`` every ``interval`` seconds on its own task.

    An exception raised by one run is logged and the next run still happens.
    """

    def __init__(self, name: str, interval: float, callback: JobCallback) -> None:
        if interval <= 0:
            raise ValueError(f"Job {name} needs a positive interval")
        self.name = name
        self.interval = interval
        self._callback = callback
        self._task: Optional[asyncio.Task[None]] = None
        self.runs = 0
        self.failures = 0
        self.last_run: Optional[float] = None
        self.last_error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = monitor_task(
            asyncio.create_task(self._run(), name=f"job-{self.name}"),
            name=f"job-{self.name}",
            logger=logger,
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        await cancel_task(task)

    async def run_once(self) -> None:
        with job_context(self.name):
            try:
                result = self._callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                self.failures += 1
                self.last_error = str(exc) or exc.__class__.__name__
                logger.exception("Periodic job %s failed", self.name)
            else:
                self.last_error = None
            finally:
                self.runs += 1
                self.last_run = time.time()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()

    def status(self) -> dict:
        return {
            "name": self.name,
            "interval": self.interval,
            "running": self.running,
            "runs": self.runs,
            "failures": self.failures,
            "last_run": self.last_run,
            "last_error": self.last_error,
        }


class Scheduler:
    """Holds the periodic jobs and starts/stops them together."""

    def __init__(self) -> None:
        self._jobs: Dict[str, PeriodicJob] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def add_job(self, name: str, interval: float, callback: JobCallback) -> PeriodicJob:
        if name in self._jobs:
            raise ValueError(f"Job {name} already registered")
        job = PeriodicJob(name, interval, callback)
        self._jobs[name] = job
        if self._running:
            job.start()
        return job

    @property
    def jobs(self) -> List[PeriodicJob]:
        return list(self._jobs.values())

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        for job in self._jobs.values():
            job.start()
        logger.info("Scheduler started %s jobs", len(self._jobs))

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        await asyncio.gather(*(job.stop() for job in self._jobs.values()))
        logger.info("Scheduler stopped")
