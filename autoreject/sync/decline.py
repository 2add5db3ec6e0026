"""Declining conflicted invites."""

import logging

from autoreject.sync.filters import Candidate

logger = logging.getLogger(__name__)


def build_decline_patch(candidate: Candidate, reply: str) -> dict:
    """
    Build the partial update that declines an invite.

    Start and end are sent back unchanged; only the sole attendee entry is
    rewritten.
    """
    event = candidate.event
    attendee = candidate.attendee

    declined = {
        "email": attendee.email,
        "comment": reply,
        "responseStatus": "declined",
    }
    if attendee.id:
        declined["id"] = attendee.id

    return {
        "id": event.id,
        "start": event.start,
        "end": event.end,
        "attendees": [declined],
    }


def decline_invite(source, calendar_id: str, candidate: Candidate, reply: str) -> dict:
    """Decline an invite and notify every participant."""
    logger.info(f"Declining invite {candidate.event.id} on calendar {calendar_id}")
    return source.patch_event(
        calendar_id,
        candidate.event.id,
        build_decline_patch(candidate, reply),
        send_updates="all",
    )
