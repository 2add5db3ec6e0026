"""Tests for reject_bad_invites: paging, cursor persistence and resync."""

from __future__ import annotations

import pytest

from autoreject.sync.cursor import CursorKind, SyncCursor
from autoreject.sync.engine import reject_bad_invites
from autoreject.sync.filters import make_blocking_predicate
from autoreject.sync.google_calendar import ChangesPage, CursorExpiredError
from autoreject.sync.intervals import ParseError

REPLY = "Automatic decline - unavailable."
PENDING = [{"email": "me@example.com", "responseStatus": "needsAction", "id": "att-1"}]


class CursorRecorder:
    def __init__(self):
        self.values: list[str] = []

    async def __call__(self, value: str) -> None:
        self.values.append(value)


@pytest.fixture
def invite(event_factory):
    return event_factory(
        "inv-1", "2024-01-01T14:00:00Z", "2024-01-01T15:00:00Z",
        summary="Quarterly review", attendees=PENDING, created="2024-01-01T00:00:00Z",
    )


async def _run(source, cutoff, cursor=None, recorder=None):
    return await reject_bad_invites(
        source,
        "primary",
        cursor or SyncCursor.none(),
        make_blocking_predicate("(autoreject)"),
        REPLY,
        cutoff,
        recorder or CursorRecorder(),
    )


@pytest.mark.asyncio
async def test_overlapping_blocking_event_declines_invite(fake_source_factory, event_factory, invite, cutoff):
    blocking = event_factory(
        "blk", "2024-01-01T13:30:00Z", "2024-01-01T15:30:00Z", summary="(autoreject)"
    )
    source = fake_source_factory(
        listings=[[ChangesPage([invite], SyncCursor.sync("s-1"))]],
        calendar=[blocking, invite],
    )
    recorder = CursorRecorder()

    stats = await _run(source, cutoff, recorder=recorder)

    assert len(source.patches) == 1
    calendar_id, event_id, patch, send_updates = source.patches[0]
    assert (calendar_id, event_id, send_updates) == ("primary", "inv-1", "all")
    assert patch["attendees"] == [{
        "email": "me@example.com",
        "comment": REPLY,
        "id": "att-1",
        "responseStatus": "declined",
    }]
    assert recorder.values == ["sync:s-1"]
    assert (stats.pages, stats.candidates, stats.declined, stats.resets) == (1, 1, 1, 0)


@pytest.mark.asyncio
async def test_back_to_back_blocking_event_leaves_invite_alone(fake_source_factory, event_factory, invite, cutoff):
    blocking = event_factory(
        "blk", "2024-01-01T15:00:00Z", "2024-01-01T16:00:00Z", summary="(autoreject)"
    )
    source = fake_source_factory(
        listings=[[ChangesPage([invite], SyncCursor.sync("s-1"))]],
        calendar=[blocking, invite],
    )

    stats = await _run(source, cutoff)

    assert source.patches == []
    assert stats.candidates == 1
    assert stats.declined == 0


@pytest.mark.asyncio
async def test_cursor_persisted_after_each_page_in_order(fake_source_factory, event_factory, cutoff):
    source = fake_source_factory(listings=[[
        ChangesPage([], SyncCursor.page("p-2")),
        ChangesPage([], SyncCursor.page("p-3")),
        ChangesPage([], None),
        ChangesPage([], SyncCursor.sync("s-final")),
    ]])
    recorder = CursorRecorder()

    stats = await _run(source, cutoff, recorder=recorder)

    assert recorder.values == ["page:p-2", "page:p-3", "sync:s-final"]
    assert stats.pages == 4


@pytest.mark.asyncio
async def test_passes_decoded_cursor_to_source(fake_source_factory, cutoff):
    source = fake_source_factory(listings=[[ChangesPage([], SyncCursor.sync("s-2"))]])
    await _run(source, cutoff, cursor=SyncCursor.page("p-9"))
    assert source.change_calls == [("primary", SyncCursor.page("p-9"))]


@pytest.mark.asyncio
async def test_expired_cursor_restarts_full_listing(fake_source_factory, event_factory, invite, cutoff):
    blocking = event_factory(
        "blk", "2024-01-01T13:30:00Z", "2024-01-01T15:30:00Z", summary="(autoreject)"
    )
    source = fake_source_factory(
        listings=[
            CursorExpiredError("gone"),
            [ChangesPage([invite], SyncCursor.sync("fresh"))],
        ],
        calendar=[blocking],
    )
    recorder = CursorRecorder()

    stats = await _run(source, cutoff, cursor=SyncCursor.sync("stale"), recorder=recorder)

    assert [cursor.kind for _, cursor in source.change_calls] == [CursorKind.SYNC, CursorKind.NONE]
    assert recorder.values == ["sync:fresh"]
    assert stats.resets == 1
    assert stats.declined == 1


@pytest.mark.asyncio
async def test_expiry_mid_listing_restarts_from_scratch(fake_source_factory, cutoff):
    source = fake_source_factory(listings=[
        [ChangesPage([], SyncCursor.page("p-2")), CursorExpiredError("gone")],
        [ChangesPage([], SyncCursor.sync("fresh"))],
    ])
    recorder = CursorRecorder()

    await _run(source, cutoff, cursor=SyncCursor.sync("old"), recorder=recorder)

    assert recorder.values == ["page:p-2", "sync:fresh"]
    assert source.change_calls[1][1] == SyncCursor.none()


@pytest.mark.asyncio
async def test_second_expiry_after_reset_is_raised(fake_source_factory, cutoff):
    source = fake_source_factory(listings=[
        CursorExpiredError("gone"),
        CursorExpiredError("still gone"),
    ])

    with pytest.raises(CursorExpiredError):
        await _run(source, cutoff, cursor=SyncCursor.sync("old"))
    assert len(source.change_calls) == 2


@pytest.mark.asyncio
async def test_parse_error_aborts_page_without_advancing_cursor(fake_source_factory, event_factory, cutoff):
    broken = event_factory(
        "bad", "2024-01-01T14:00:00Z", "2024-01-01T15:00:00Z",
        attendees=PENDING, created="not-a-date",
    )
    source = fake_source_factory(listings=[[
        ChangesPage([], SyncCursor.page("p-2")),
        ChangesPage([broken], SyncCursor.sync("s-1")),
    ]])
    recorder = CursorRecorder()

    with pytest.raises(ParseError):
        await _run(source, cutoff, recorder=recorder)
    assert recorder.values == ["page:p-2"]


@pytest.mark.asyncio
async def test_patch_failure_propagates_and_keeps_cursor(fake_source_factory, event_factory, invite, cutoff):
    blocking = event_factory(
        "blk", "2024-01-01T13:30:00Z", "2024-01-01T15:30:00Z", summary="(autoreject)"
    )
    source = fake_source_factory(
        listings=[[ChangesPage([invite], SyncCursor.sync("s-1"))]],
        calendar=[blocking],
    )

    def failing_patch(*_args, **_kwargs):
        raise RuntimeError("403 forbidden")

    source.patch_event = failing_patch
    recorder = CursorRecorder()

    with pytest.raises(RuntimeError, match="403"):
        await _run(source, cutoff, recorder=recorder)
    assert recorder.values == []


@pytest.mark.asyncio
async def test_retrying_a_page_declines_again_without_error(fake_source_factory, event_factory, invite, cutoff):
    blocking = event_factory(
        "blk", "2024-01-01T13:30:00Z", "2024-01-01T15:30:00Z", summary="(autoreject)"
    )
    page = ChangesPage([invite], SyncCursor.sync("s-1"))
    source = fake_source_factory(listings=[[page], [page]], calendar=[blocking])

    await _run(source, cutoff)
    await _run(source, cutoff)

    assert len(source.patches) == 2
    assert source.patches[0][2] == source.patches[1][2]


@pytest.mark.asyncio
async def test_only_candidates_trigger_range_queries(fake_source_factory, event_factory, cutoff):
    accepted = event_factory(
        "acc", "2024-01-01T14:00:00Z", "2024-01-01T15:00:00Z",
        attendees=[{"email": "me@example.com", "responseStatus": "accepted"}],
    )
    all_day = event_factory("day", "2024-01-02", "2024-01-03", attendees=PENDING)
    source = fake_source_factory(listings=[[ChangesPage([accepted, all_day], None)]])

    stats = await _run(source, cutoff)

    assert source.range_calls == []
    assert stats.candidates == 0
