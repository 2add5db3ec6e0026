"""APScheduler setup for background jobs."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from autoreject.config import get_settings

logger = logging.getLogger(__name__)

_scheduler: AsyncIOScheduler | None = None


def setup_scheduler() -> AsyncIOScheduler:
    """Set up and start the background scheduler."""
    global _scheduler

    settings = get_settings()

    _scheduler = AsyncIOScheduler()

    # Push notifications can be lost; the periodic run catches up
    if settings.enable_periodic_sync:
        _scheduler.add_job(
            "autoreject.jobs.sync_job:run_periodic_sync",
            trigger=IntervalTrigger(minutes=settings.sync_interval_minutes),
            id="periodic_sync",
            name="Periodic Invite Sync",
            replace_existing=True,
        )
    else:
        logger.info("Periodic sync job disabled (ENABLE_PERIODIC_SYNC=false)")

    _scheduler.start()
    logger.info("Background scheduler started")

    return _scheduler


def shutdown_scheduler() -> None:
    """Shutdown the scheduler."""
    global _scheduler

    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Background scheduler stopped")
