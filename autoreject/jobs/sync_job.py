"""Periodic sync job."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from autoreject.database import get_all_channels, get_database

logger = logging.getLogger(__name__)


async def run_periodic_sync() -> Optional[int]:
    """
    Run a sync cycle for every registered channel.

    Returns the number of channels whose cycle failed. A failing channel is
    logged and does not stop the others. Returns None without syncing when
    another run holds the job lock.
    """
    if not await acquire_job_lock("periodic_sync"):
        logger.debug("Periodic sync already running, skipping")
        return None

    failures = 0
    try:
        channels = await get_all_channels()
        logger.info(f"Running periodic sync for {len(channels)} channels")

        from autoreject.sync.engine import run_sync_cycle

        for channel in channels:
            try:
                await run_sync_cycle(channel["channel_id"])
            except Exception as e:
                failures += 1
                logger.error(f"Error syncing channel {channel['channel_id']}: {e}")

        logger.info("Periodic sync completed")

    finally:
        await release_job_lock("periodic_sync")

    return failures


async def acquire_job_lock(job_name: str, timeout_minutes: int = 30) -> bool:
    """
    Acquire a lock for a job.

    Returns True if lock acquired, False if job is already running.
    """
    db = await get_database()
    now = datetime.utcnow()
    cutoff = (now - timedelta(minutes=timeout_minutes)).isoformat()

    # Locks older than the timeout belong to a crashed run
    await db.execute(
        "DELETE FROM job_locks WHERE job_name = ? AND locked_at < ?",
        (job_name, cutoff)
    )
    await db.commit()

    cursor = await db.execute(
        """INSERT OR IGNORE INTO job_locks (job_name, locked_at, locked_by)
           VALUES (?, ?, ?)""",
        (job_name, now.isoformat(), "worker")
    )
    await db.commit()
    return cursor.rowcount == 1


async def release_job_lock(job_name: str) -> None:
    """Release a job lock."""
    db = await get_database()
    await db.execute("DELETE FROM job_locks WHERE job_name = ?", (job_name,))
    await db.commit()
