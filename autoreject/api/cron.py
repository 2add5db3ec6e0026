"""Cron endpoint for deployments that trigger syncs over HTTP."""

import logging

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import PlainTextResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["cron"])


@router.api_route("/cron", methods=["GET", "POST"], response_class=PlainTextResponse)
async def run_cron():
    """Sync every registered channel and report the outcome."""
    from autoreject.jobs.sync_job import run_periodic_sync

    failures = await run_periodic_sync()
    if failures is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Periodic sync already running",
        )
    if failures:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{failures} channel(s) failed to sync",
        )
    return "success"
