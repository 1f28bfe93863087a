"""
APScheduler wrapper for the daily dashboard cache prefill.

Once a day the refresh job force-refreshes the prefill ranges of every
configured project within the batch time budget, then posts a Slack summary.
Runs that overlap or were missed while the process was down collapse into one.
"""

import logging
import sys

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

JOB_ID = "daily_cache_refresh"


def _log_job_event(event) -> None:
    if event.code == EVENT_JOB_ERROR:
        logger.error("Cache refresh job crashed: %s", event.exception)
    elif event.code == EVENT_JOB_MISSED:
        logger.warning("Cache refresh run scheduled for %s was missed", event.scheduled_run_time)
    else:
        logger.info("Cache refresh job finished")


def build_scheduler(refresh_fn, schedule_hour: int = 4) -> BlockingScheduler:
    scheduler = BlockingScheduler(timezone="UTC")
    scheduler.add_job(
        refresh_fn,
        trigger=CronTrigger(hour=schedule_hour, minute=0, timezone="UTC"),
        id=JOB_ID,
        name="Daily dashboard cache refresh",
        misfire_grace_time=3600,   # up to 1h late
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.add_listener(_log_job_event, EVENT_JOB_ERROR | EVENT_JOB_EXECUTED | EVENT_JOB_MISSED)
    return scheduler


def start_scheduler(refresh_fn, schedule_hour: int = 4) -> None:
    """
    Block and call `refresh_fn` every day at `schedule_hour` (UTC) until
    interrupted.
    """
    scheduler = build_scheduler(refresh_fn, schedule_hour)
    logger.info(
        "Scheduler started — dashboard cache prefill runs daily at %02d:00 UTC",
        schedule_hour,
    )

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")
        scheduler.shutdown(wait=False)
        sys.exit(0)
