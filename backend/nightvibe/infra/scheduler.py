"""In-process periodic jobs on the event loop (APScheduler's asyncio scheduler)."""

from __future__ import annotations

from typing import Awaitable, Callable, List

from apscheduler.events import EVENT_JOB_ERROR, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from nightvibe.obs.logging import get_logger

log = get_logger("nightvibe.scheduler")


class JobScheduler:
    """Runs each job at most once at a time; missed runs collapse into one."""

    def __init__(self) -> None:
        self._scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        self._scheduler.add_listener(self._on_error, EVENT_JOB_ERROR)

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def schedule_hourly(self, job_id: str, func: Callable[[], Awaitable[object]], *, hours: int = 1) -> None:
        self._scheduler.add_job(func, trigger=IntervalTrigger(hours=hours), id=job_id, replace_existing=True)

    def job_ids(self) -> List[str]:
        return [job.id for job in self._scheduler.get_jobs()]

    @staticmethod
    def _on_error(event: JobExecutionEvent) -> None:
        log.error("scheduled_job_failed", extra={"job_id": event.job_id, "error": repr(event.exception)})


__all__ = ["JobScheduler"]
