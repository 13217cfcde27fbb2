"""Scheduled moderation jobs."""

from __future__ import annotations

import time
from datetime import datetime
from typing import Optional

from nightvibe.infra.scheduler import JobScheduler
from nightvibe.infra.store import StoreUnavailable
from nightvibe.obs import metrics as obs_metrics
from nightvibe.obs.logging import get_logger
from nightvibe.settings import settings

from .users import clear_expired_bans

log = get_logger("nightvibe.moderation.jobs")

BAN_SWEEP_JOB = "moderation.ban_sweep"


async def run_ban_sweep(*, now: Optional[datetime] = None) -> int:
	"""Clear expired bans; returns how many users were released."""
	started = time.perf_counter()
	try:
		cleared = await clear_expired_bans(now=now)
	except StoreUnavailable:
		obs_metrics.record_job_run(BAN_SWEEP_JOB, result="error", duration_seconds=time.perf_counter() - started)
		log.error("ban_sweep_failed", exc_info=True)
		return 0
	obs_metrics.record_job_run(BAN_SWEEP_JOB, result="ok", duration_seconds=time.perf_counter() - started)
	if cleared:
		log.info("ban_sweep", extra={"cleared": len(cleared)})
	return len(cleared)


def install(scheduler: JobScheduler) -> None:
	scheduler.schedule_hourly(BAN_SWEEP_JOB, run_ban_sweep, hours=max(1, settings.ban_sweep_interval_hours))
