"""Time window resolution and overlap tests for calendar events."""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# All-day events span the whole stated day.
_DAY_START = time(0, 0, 0)
_DAY_END = time(23, 59, 59)


class ParseError(ValueError):
    """Raised when an event's time fields cannot be resolved."""


@dataclass(frozen=True)
class TimeWindow:
    """An absolute, zone-resolved span of time."""

    start: datetime
    end: datetime


def _zone(name: Optional[str]):
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ParseError(f"unknown time zone {name!r}") from e


def parse_rfc3339(value: Optional[str]) -> datetime:
    """Parse an RFC 3339 timestamp such as ``2024-01-01T00:00:00.000Z``."""
    if not value:
        raise ParseError("empty timestamp")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ParseError(f"malformed timestamp {value!r}") from e
    if parsed.tzinfo is None:
        raise ParseError(f"timestamp {value!r} has no offset")
    return parsed


def resolve_time(event_time: Optional[dict], is_start: bool) -> datetime:
    """
    Resolve an API start/end object to an absolute instant.

    ``dateTime`` values are parsed in the stated ``timeZone`` (UTC when none
    is given); an explicit offset in the value takes precedence. ``date``
    values (all-day events) resolve to the first second of the day for a
    start and the last second of the day for an end.
    """
    event_time = event_time or {}
    tz = _zone(event_time.get("timeZone"))

    if event_time.get("dateTime"):
        raw = event_time["dateTime"]
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError as e:
            raise ParseError(f"malformed dateTime {raw!r}") from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz)
        return parsed

    if not event_time.get("date"):
        raise ParseError("no datetime or date")

    raw = event_time["date"]
    try:
        day = date.fromisoformat(raw)
    except ValueError as e:
        raise ParseError(f"malformed date {raw!r}") from e
    return datetime.combine(day, _DAY_START if is_start else _DAY_END, tzinfo=tz)


def resolve_window(start: Optional[dict], end: Optional[dict]) -> TimeWindow:
    """Resolve both ends of an event."""
    return TimeWindow(
        start=resolve_time(start, is_start=True),
        end=resolve_time(end, is_start=False),
    )


def overlaps(a: TimeWindow, b: TimeWindow) -> bool:
    """
    Check whether two windows share any time.

    Windows that only touch (one ends exactly when the other starts) do not
    overlap, so back-to-back meetings never conflict.
    """
    if b.start >= a.end:
        return False
    if b.end <= a.start:
        return False
    return True
