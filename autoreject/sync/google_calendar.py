"""Google Calendar API wrapper."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from autoreject.sync.cursor import CursorKind, SyncCursor
from autoreject.sync.events import EventRecord

logger = logging.getLogger(__name__)


class CursorExpiredError(Exception):
    """The sync or page token is no longer accepted (HTTP 410 Gone)."""


@dataclass
class ChangesPage:
    """One page of a change listing and the cursor to persist after it."""

    events: list[EventRecord]
    cursor_update: Optional[SyncCursor] = None


def _cursor_update(result: dict) -> Optional[SyncCursor]:
    if result.get("nextSyncToken"):
        return SyncCursor.sync(result["nextSyncToken"])
    if result.get("nextPageToken"):
        return SyncCursor.page(result["nextPageToken"])
    return None


class GoogleCalendarClient:
    """Wrapper around Google Calendar API."""

    def __init__(self, access_token: str):
        """Initialize with access token."""
        self.credentials = Credentials(token=access_token)
        self.service = build(
            "calendar", "v3", credentials=self.credentials, cache_discovery=False
        )

    def iter_changes(
        self,
        calendar_id: str,
        cursor: SyncCursor,
    ) -> Iterator[ChangesPage]:
        """
        List events changed since ``cursor``, one page at a time.

        A page cursor resumes an unfinished listing, a sync cursor asks for
        changes only, and an empty cursor lists everything. Each page is
        yielded before the next one is requested so callers can finish
        processing (and persist the cursor) first.
        """
        request_params = {
            "calendarId": calendar_id,
            "singleEvents": True,
            "maxAttendees": 1,
        }

        if cursor.kind is CursorKind.PAGE:
            request_params["pageToken"] = cursor.token
        elif cursor.kind is CursorKind.SYNC:
            request_params["syncToken"] = cursor.token

        while True:
            try:
                result = self.service.events().list(**request_params).execute()
            except HttpError as e:
                if e.resp.status == 410:
                    logger.info(f"Cursor expired for calendar {calendar_id}")
                    raise CursorExpiredError(
                        f"cursor {cursor.kind.value} expired for calendar {calendar_id}"
                    ) from e
                raise

            yield ChangesPage(
                events=[EventRecord.from_api(item) for item in result.get("items", [])],
                cursor_update=_cursor_update(result),
            )

            page_token = result.get("nextPageToken")
            if not page_token:
                break
            request_params["pageToken"] = page_token

    def list_in_range(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[EventRecord]:
        """List expanded events between two instants, ordered by start time."""
        request_params = {
            "calendarId": calendar_id,
            "singleEvents": True,
            "maxAttendees": 1,
            "orderBy": "startTime",
            "timeMin": time_min.isoformat(),
            "timeMax": time_max.isoformat(),
        }

        events = []
        while True:
            result = self.service.events().list(**request_params).execute()
            events.extend(EventRecord.from_api(item) for item in result.get("items", []))

            page_token = result.get("nextPageToken")
            if not page_token:
                break
            request_params["pageToken"] = page_token

        return events

    def patch_event(
        self,
        calendar_id: str,
        event_id: str,
        event_patch: dict,
        send_updates: str = "none",
    ) -> dict:
        """Patch (partial update) an event."""
        return self.service.events().patch(
            calendarId=calendar_id,
            eventId=event_id,
            body=event_patch,
            sendUpdates=send_updates,
        ).execute()
