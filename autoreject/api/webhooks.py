"""Receiver for Google Calendar push notifications."""

import logging

from fastapi import APIRouter, Header, HTTPException, status

from autoreject.database import get_channel

logger = logging.getLogger(__name__)
router = APIRouter(tags=["webhooks"])


@router.post("/event")
async def receive_event_notification(
    x_goog_channel_id: str = Header(None, alias="X-Goog-Channel-ID"),
    x_goog_resource_id: str = Header(None, alias="X-Goog-Resource-ID"),
    x_goog_resource_state: str = Header(None, alias="X-Goog-Resource-State"),
):
    """
    Receive a push notification for a watched calendar.

    Google only tells us that something changed; the sync cycle fetches the
    changes itself. Always answer 200 for known-bad input so Google does not
    keep retrying.
    """
    if not x_goog_channel_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing channel ID"
        )

    logger.info(
        f"Notification received: channel={x_goog_channel_id}, "
        f"resource={x_goog_resource_id}, state={x_goog_resource_state}"
    )

    # Sent once when a channel is first registered
    if x_goog_resource_state == "sync":
        return {"status": "ok"}

    channel = await get_channel(x_goog_channel_id)
    if not channel:
        logger.warning(f"Unknown channel: {x_goog_channel_id}")
        return {"status": "ok", "message": "Unknown channel"}

    if (
        x_goog_resource_id
        and channel["resource_id"]
        and x_goog_resource_id != channel["resource_id"]
    ):
        logger.warning(
            f"Resource mismatch for channel {x_goog_channel_id}: "
            f"expected={channel['resource_id']} got={x_goog_resource_id}"
        )
        return {"status": "ok", "message": "Resource mismatch"}

    from autoreject.sync.engine import run_sync_cycle
    from autoreject.utils.tasks import create_background_task

    create_background_task(
        run_sync_cycle(x_goog_channel_id),
        f"sync_channel_{x_goog_channel_id}",
    )

    return {"status": "ok"}
