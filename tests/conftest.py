"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

# Set test environment variables before imports
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["PUBLIC_URL"] = "http://localhost:7070"
os.environ["ENABLE_PERIODIC_SYNC"] = "false"


@pytest_asyncio.fixture
async def test_db():
    """Create a test database."""
    from autoreject.database import get_database, close_database
    import autoreject.database as db_module

    # Reset the global connection
    db_module._db_connection = None

    db = await get_database()

    yield db

    await close_database()
    db_module._db_connection = None


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    from autoreject.main import app

    with TestClient(app) as c:
        yield c


class FakeEventSource:
    """
    In-memory stand-in for GoogleCalendarClient.

    ``listings`` is consumed one entry per iter_changes call; an entry is
    either a list of ChangesPage or an exception raised on the first fetch.
    ``calendar`` holds the events returned by range queries.
    """

    def __init__(self, listings=None, calendar=None):
        self.listings = list(listings or [])
        self.calendar = list(calendar or [])
        self.change_calls = []
        self.range_calls = []
        self.patches = []

    def iter_changes(self, calendar_id, cursor):
        self.change_calls.append((calendar_id, cursor))
        listing = self.listings.pop(0)
        if isinstance(listing, Exception):
            raise listing
        for page in listing:
            if isinstance(page, Exception):
                raise page
            yield page

    def list_in_range(self, calendar_id, time_min, time_max):
        self.range_calls.append((calendar_id, time_min, time_max))
        in_range = []
        for event in self.calendar:
            window = event.window()
            if window.end > time_min and window.start < time_max:
                in_range.append(event)
        return sorted(in_range, key=lambda e: e.window().start)

    def patch_event(self, calendar_id, event_id, event_patch, send_updates="none"):
        self.patches.append((calendar_id, event_id, event_patch, send_updates))
        return dict(event_patch)


@pytest.fixture
def fake_source_factory():
    """Build FakeEventSource instances."""
    return FakeEventSource


def make_event(
    event_id,
    start,
    end,
    summary="Meeting",
    attendees=None,
    created="2024-01-01T00:00:00Z",
    status="confirmed",
    time_zone=None,
):
    """Build an EventRecord; ``start``/``end`` are dateTime strings or dates."""
    from autoreject.sync.events import EventRecord

    def _time(value):
        key = "date" if len(value) == 10 else "dateTime"
        result = {key: value}
        if time_zone:
            result["timeZone"] = time_zone
        return result

    return EventRecord.from_api({
        "id": event_id,
        "summary": summary,
        "status": status,
        "created": created,
        "attendees": attendees if attendees is not None else [],
        "start": _time(start),
        "end": _time(end),
    })


@pytest.fixture
def event_factory():
    """Build EventRecord instances from short arguments."""
    return make_event


@pytest.fixture
def cutoff():
    """Creation cutoff used by most engine tests."""
    return datetime(2024, 1, 1, tzinfo=timezone.utc)
