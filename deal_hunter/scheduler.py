"""
Scheduler module for Deal Hunter.

Uses APScheduler to run the periodic jobs in the background while the HTTP
server owns the main thread:
- Every 20 minutes (configurable): refresh the listing cache
- Daily: email the digest of top deals

The two jobs are independent; the refresh coordinator's single-flight guard
is the only coordination between them and the request-triggered refreshes.
"""

import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .pipeline import Services, run_refresh_job, run_digest_job

logger = logging.getLogger(__name__)


def create_scheduler(services: Services) -> BackgroundScheduler:
    """
    Create and configure the APScheduler.

    Jobs:
    1. refresh_listings: Every refresh_interval_minutes - re-extract and re-score listings
    2. daily_digest: Daily at digest_hour - email the top deals

    Returns:
        Configured (not yet started) BackgroundScheduler
    """
    scheduler = BackgroundScheduler()

    # Job 1: Refresh the cache on a fixed interval
    scheduler.add_job(
        run_refresh_job,
        trigger=IntervalTrigger(minutes=services.app_config.refresh_interval_minutes),
        args=[services],
        id="refresh_listings",
        name="Refresh auction listings",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    # Job 2: Daily digest email
    scheduler.add_job(
        run_digest_job,
        trigger=CronTrigger(hour=services.email_config.digest_hour, minute=0),
        args=[services],
        id="daily_digest",
        name="Email daily digest of top deals",
        replace_existing=True,
        max_instances=1,
    )

    logger.info("Scheduler configured with 2 jobs")
    return scheduler
