"""Rules deciding which events are invites to evaluate and which ones block time."""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from autoreject.sync.events import EventRecord
from autoreject.sync.intervals import TimeWindow

BlockingPredicate = Callable[[EventRecord], bool]


@dataclass
class Candidate:
    """A pending invite with a resolved, timed window."""

    event: EventRecord
    window: TimeWindow

    @property
    def attendee(self):
        return self.event.attendees[0]


def as_candidate(event: EventRecord, oldest_creation: datetime) -> Optional[Candidate]:
    """
    Return a Candidate if this event is an invite we may decline.

    Rules:
    - Exactly one attendee is listed (listings are made with maxAttendees=1,
      so for an invite this is the calendar owner)
    - That attendee has not responded yet
    - The event is not cancelled
    - It was created after the calendar was enabled
    - It has a start and end time (all-day invites are never declined)

    Malformed timestamps raise ParseError rather than skipping the event.
    """
    if len(event.attendees) != 1:
        return None
    if event.attendees[0].response_status != "needsAction":
        return None
    if event.status == "cancelled":
        return None
    if event.created_at() < oldest_creation:
        return None
    if event.all_day:
        return None

    return Candidate(event=event, window=event.window())


def make_blocking_predicate(marker: str) -> BlockingPredicate:
    """
    Build the matcher for blocking events.

    A blocking event has the marker somewhere in its title (ignoring case
    and surrounding whitespace of the marker) and no attendees.
    """
    marker = (marker or "").strip().lower()

    def is_blocking(event: EventRecord) -> bool:
        if marker not in (event.summary or "").lower():
            return False
        if len(event.attendees) != 0:
            return False
        return True

    return is_blocking
