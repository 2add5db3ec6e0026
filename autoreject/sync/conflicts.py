"""Conflict detection between an invite and the user's blocking events."""

import logging
from datetime import timedelta
from typing import Optional

from autoreject.sync.events import EventRecord
from autoreject.sync.filters import BlockingPredicate, Candidate
from autoreject.sync.intervals import overlaps

logger = logging.getLogger(__name__)

DEFAULT_BUFFER = timedelta(hours=25)


def find_conflict(
    source,
    calendar_id: str,
    candidate: Candidate,
    is_blocking: BlockingPredicate,
    buffer: timedelta = DEFAULT_BUFFER,
) -> Optional[EventRecord]:
    """
    Find a blocking event that overlaps the candidate.

    The range query is widened by ``buffer`` on both sides so zone and DST
    skew cannot hide a blocking event; the exact overlap test decides.
    """
    window = candidate.window
    events = source.list_in_range(
        calendar_id,
        window.start - buffer,
        window.end + buffer,
    )

    for event in events:
        if not is_blocking(event):
            continue
        if overlaps(window, event.window()):
            logger.debug(
                f"Invite {candidate.event.id} conflicts with blocking event {event.id}"
            )
            return event

    return None
