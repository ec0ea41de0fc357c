"""Single-slot recurring execution for live refresh."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

LOGGER = logging.getLogger(__name__)

# Overlapping runs are allowed; the pipeline discards stale completions.
MAX_OVERLAPPING_RUNS = 8


class RefreshScheduler:
    """Own at most one interval job that re-runs ``job``.

    ``configure`` always removes the current job first, so calling it again
    (including from inside a scheduled run) never leaves two recurrences.
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[Any] | Any],
        *,
        scheduler: Optional[BaseScheduler] = None,
        name: str = "refresh",
    ) -> None:
        self._run = job
        self._scheduler = scheduler or AsyncIOScheduler()
        self._owns_scheduler = scheduler is None
        self._name = name
        self._job: Optional[Job] = None
        self._interval_s: float = 0.0

    @property
    def active(self) -> bool:
        return self._job is not None

    @property
    def interval_s(self) -> float:
        return self._interval_s

    @property
    def scheduler(self) -> BaseScheduler:
        return self._scheduler

    def pending(self) -> int:
        """Number of recurrences this slot has scheduled (0 or 1)."""
        if self._job is None:
            return 0
        return 1 if self._scheduler.get_job(self._job.id) is not None else 0

    def _cancel(self) -> None:
        job, self._job = self._job, None
        self._interval_s = 0.0
        if job is None:
            return
        try:
            self._scheduler.remove_job(job.id)
        except JobLookupError:
            LOGGER.debug("Refresh job %s already gone", job.id)

    def configure(self, interval_s: float) -> None:
        """Cancel any recurrence, then schedule every ``interval_s`` seconds if positive."""
        interval = float(interval_s or 0)
        self._cancel()
        if interval <= 0:
            LOGGER.info("Auto refresh disabled for %s", self._name)
            return
        self._job = self._scheduler.add_job(
            self._run,
            IntervalTrigger(seconds=interval),
            name=self._name,
            max_instances=MAX_OVERLAPPING_RUNS,
            coalesce=True,
        )
        self._interval_s = interval
        LOGGER.info("Auto refresh for %s every %.1fs", self._name, interval)
        self._start_if_loop_running()

    def _start_if_loop_running(self) -> None:
        # jobs added before start stay pending until the loop runs the scheduler
        if not self._owns_scheduler or self._scheduler.running:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._scheduler.start()

    def shutdown(self) -> None:
        self._cancel()
        if self._owns_scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
