# app/worker/scheduler.py
from __future__ import annotations

from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger


def make_scheduler(timezone: str) -> BackgroundScheduler:
    """Background scheduler whose cron expressions are read in `timezone`."""
    return BackgroundScheduler(timezone=timezone)


def add_cron_job(
    sched: BackgroundScheduler,
    fn: Callable[[], object],
    *,
    job_id: str,
    crontab: str,
    timezone: str,
):
    """
    Register `fn` on a 5-field crontab ("0 9 * * *").
    A tick that fires while the previous one is still running is dropped,
    and missed ticks collapse into one.
    """
    return sched.add_job(
        fn,
        CronTrigger.from_crontab(crontab, timezone=timezone),
        id=job_id,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
