"""Core sync engine: walk calendar changes and decline conflicting invites."""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from autoreject.config import get_settings
from autoreject.database import (
    get_channel,
    get_database,
    get_string_setting,
    set_string_setting,
)
from autoreject.sync.conflicts import DEFAULT_BUFFER, find_conflict
from autoreject.sync.cursor import SyncCursor, decode_cursor
from autoreject.sync.decline import decline_invite
from autoreject.sync.filters import BlockingPredicate, as_candidate, make_blocking_predicate
from autoreject.sync.google_calendar import ChangesPage, CursorExpiredError, GoogleCalendarClient
from autoreject.sync.intervals import parse_rfc3339

logger = logging.getLogger(__name__)

CursorPersister = Callable[[str], Awaitable[None]]

# Per-target locks so a webhook and the periodic job never sync the same
# calendar at once.
_target_locks: dict[str, asyncio.Lock] = {}
_target_locks_guard = asyncio.Lock()

# Targets notified while their cycle was running; they run once more after it.
_rerun_pending: set[str] = set()


@dataclass
class SyncStats:
    pages: int = 0
    candidates: int = 0
    declined: int = 0
    resets: int = 0


def cursor_setting_name(calendar_id: str) -> str:
    return f"synctoken-{calendar_id}"


def sync_start_setting_name(calendar_id: str) -> str:
    return f"syncstart-{calendar_id}"


async def _get_target_lock(key: str) -> asyncio.Lock:
    """Get or create an asyncio lock for a sync target."""
    async with _target_locks_guard:
        if key not in _target_locks:
            _target_locks[key] = asyncio.Lock()
        return _target_locks[key]


def _process_page(
    source,
    calendar_id: str,
    page: ChangesPage,
    is_blocking: BlockingPredicate,
    reply: str,
    oldest_creation: datetime,
    buffer: timedelta,
    stats: SyncStats,
) -> None:
    for event in page.events:
        candidate = as_candidate(event, oldest_creation)
        if candidate is None:
            continue
        stats.candidates += 1

        conflict = find_conflict(source, calendar_id, candidate, is_blocking, buffer)
        if conflict is None:
            continue

        decline_invite(source, calendar_id, candidate, reply)
        stats.declined += 1


async def reject_bad_invites(
    source,
    calendar_id: str,
    cursor: SyncCursor,
    is_blocking: BlockingPredicate,
    reply: str,
    oldest_creation: datetime,
    persist_cursor: CursorPersister,
    buffer: timedelta = DEFAULT_BUFFER,
) -> SyncStats:
    """
    Decline every changed invite that overlaps a blocking event.

    Pages are processed strictly in order and the cursor is persisted only
    after a page is fully handled, so a failure replays at most that page.
    If the source rejects the cursor as expired the listing restarts from
    scratch, once; a second expiry is raised to the caller.
    """
    stats = SyncStats()

    while True:
        try:
            for page in source.iter_changes(calendar_id, cursor):
                _process_page(
                    source, calendar_id, page, is_blocking, reply,
                    oldest_creation, buffer, stats,
                )
                stats.pages += 1
                if page.cursor_update is not None:
                    await persist_cursor(page.cursor_update.encode())
            return stats

        except CursorExpiredError:
            if stats.resets:
                raise
            logger.info(
                f"Cursor for calendar {calendar_id} expired, restarting full listing"
            )
            stats.resets += 1
            cursor = SyncCursor.none()


async def run_sync_cycle(target_id: str) -> None:
    """
    Run one sync cycle for a watch channel.

    Cycles for the same channel never overlap. A call made while a cycle is
    running marks the channel and returns; the running cycle then goes round
    once more so changes made after its last page are not missed.
    """
    lock = await _get_target_lock(target_id)
    if lock.locked():
        logger.info(f"Sync already in progress for channel {target_id}, queueing a rerun")
        _rerun_pending.add(target_id)
        return

    async with lock:
        while True:
            _rerun_pending.discard(target_id)
            await _run_sync_cycle(target_id)
            if target_id not in _rerun_pending:
                break
            logger.info(f"Rerunning sync for channel {target_id}")


async def _run_sync_cycle(target_id: str) -> None:
    """Internal: perform a sync cycle (must be called under lock)."""
    channel = await get_channel(target_id)
    if not channel:
        logger.warning(f"Channel {target_id} not found")
        return

    user_id = channel["user_id"]
    calendar_id = channel["calendar_id"]
    cursor_name = cursor_setting_name(calendar_id)

    # Last cursor read or written; initialised before the try for the except block.
    current_cursor = ""

    try:
        from autoreject.auth.google import get_valid_access_token

        raw_cursor = await get_string_setting(user_id, cursor_name)
        current_cursor = raw_cursor
        marker = await get_string_setting(user_id, "autoreject_name")
        reply = await get_string_setting(user_id, "autoreject_reply")
        oldest_creation = parse_rfc3339(
            await get_string_setting(user_id, sync_start_setting_name(calendar_id))
        )

        access_token = await get_valid_access_token(user_id)
        source = GoogleCalendarClient(access_token)

        async def persist_cursor(value: str) -> None:
            nonlocal current_cursor
            await set_string_setting(user_id, cursor_name, value)
            current_cursor = value

        stats = await reject_bad_invites(
            source,
            calendar_id,
            decode_cursor(raw_cursor),
            make_blocking_predicate(marker),
            reply,
            oldest_creation,
            persist_cursor,
            buffer=timedelta(hours=get_settings().conflict_buffer_hours),
        )

        await _record_success(target_id, user_id, stats)
        logger.info(
            f"Sync completed for channel {target_id} (calendar {calendar_id}): "
            f"{stats.pages} pages, {stats.candidates} invites checked, "
            f"{stats.declined} declined"
        )

    except Exception as e:
        logger.exception(
            f"Sync failed for channel {target_id} (user {user_id}, "
            f"calendar {calendar_id}, cursor {current_cursor!r}): {e}"
        )
        await _record_failure(target_id, user_id, current_cursor, e)
        raise


async def _record_success(target_id: str, user_id: str, stats: SyncStats) -> None:
    db = await get_database()
    now = datetime.utcnow().isoformat()
    await db.execute(
        """INSERT INTO sync_state
           (channel_id, last_success, last_attempt, consecutive_failures, last_error)
           VALUES (?, ?, ?, 0, NULL)
           ON CONFLICT(channel_id) DO UPDATE SET
           last_success = excluded.last_success,
           last_attempt = excluded.last_attempt,
           consecutive_failures = 0,
           last_error = NULL""",
        (target_id, now, now)
    )
    await db.execute(
        """INSERT INTO sync_log (user_id, channel_id, action, status, details)
           VALUES (?, ?, 'sync', 'success', ?)""",
        (user_id, target_id, json.dumps(asdict(stats)))
    )
    await db.commit()


async def _record_failure(
    target_id: str, user_id: str, cursor_value: str, error: Exception
) -> None:
    db = await get_database()
    now = datetime.utcnow().isoformat()
    await db.execute(
        """INSERT INTO sync_state
           (channel_id, last_attempt, consecutive_failures, last_error)
           VALUES (?, ?, 1, ?)
           ON CONFLICT(channel_id) DO UPDATE SET
           last_attempt = excluded.last_attempt,
           consecutive_failures = sync_state.consecutive_failures + 1,
           last_error = excluded.last_error""",
        (target_id, now, str(error))
    )
    await db.execute(
        """INSERT INTO sync_log (user_id, channel_id, action, status, details)
           VALUES (?, ?, 'sync', 'failure', ?)""",
        (user_id, target_id, json.dumps({"error": str(error), "cursor": cursor_value}))
    )
    await db.commit()
