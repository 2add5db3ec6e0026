"""Event records parsed from Google Calendar API resources."""

from dataclasses import dataclass, field
from typing import Optional

from autoreject.sync.intervals import TimeWindow, parse_rfc3339, resolve_window


@dataclass
class Attendee:
    email: str
    response_status: str
    id: Optional[str] = None

    @classmethod
    def from_api(cls, item: dict) -> "Attendee":
        return cls(
            email=item.get("email", ""),
            response_status=item.get("responseStatus", ""),
            id=item.get("id"),
        )


@dataclass
class EventRecord:
    """
    A calendar event as seen by one sync cycle.

    ``start`` and ``end`` keep the API's raw objects (``dateTime``/``date``
    plus ``timeZone``) so they can be sent back unchanged when patching.
    ``created`` stays a string; it is only parsed for invites that reach
    the creation cutoff check.
    """

    id: str
    summary: str = ""
    status: str = "confirmed"
    attendees: list[Attendee] = field(default_factory=list)
    created: str = ""
    start: dict = field(default_factory=dict)
    end: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, item: dict) -> "EventRecord":
        return cls(
            id=item["id"],
            summary=item.get("summary", ""),
            status=item.get("status", "confirmed"),
            attendees=[Attendee.from_api(a) for a in item.get("attendees", [])],
            created=item.get("created", ""),
            start=item.get("start") or {},
            end=item.get("end") or {},
        )

    @property
    def all_day(self) -> bool:
        return not self.start.get("dateTime") or not self.end.get("dateTime")

    def created_at(self):
        return parse_rfc3339(self.created)

    def window(self) -> TimeWindow:
        return resolve_window(self.start, self.end)
