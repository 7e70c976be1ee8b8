"""APScheduler wrapper for periodic maintenance jobs."""

from __future__ import annotations

from typing import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger


class MaintenanceScheduler:
    """Minimal wrapper around AsyncIOScheduler for maintenance jobs."""

    def __init__(self) -> None:
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._started = False

    def start(self) -> None:
        if not self._started:
            self._scheduler.start()
            self._started = True

    def shutdown(self) -> None:
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False

    def schedule_every(self, job_id: str, func: Callable[[], object], *, seconds: int) -> None:
        trigger = IntervalTrigger(seconds=max(1, seconds))
        self._scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=True, coalesce=True, max_instances=1)


__all__ = ["MaintenanceScheduler"]
