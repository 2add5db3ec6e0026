"""Resumption cursor for incremental event listing.

A cursor is persisted as a string in one of these forms:

* ``sync:<token>`` - a sync token; the next listing returns only changes.
* ``page:<token>`` - a page token from an unfinished listing.
* ``<token>`` - legacy bare sync token, read as ``sync:<token>``.
* ``""`` - nothing synced yet; the next listing starts from scratch.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

PAGE_PREFIX = "page:"
SYNC_PREFIX = "sync:"


class CursorKind(Enum):
    NONE = "none"
    PAGE = "page"
    SYNC = "sync"


@dataclass(frozen=True)
class SyncCursor:
    kind: CursorKind
    token: str = ""

    @classmethod
    def none(cls) -> "SyncCursor":
        return cls(CursorKind.NONE)

    @classmethod
    def page(cls, token: str) -> "SyncCursor":
        return cls(CursorKind.PAGE, token)

    @classmethod
    def sync(cls, token: str) -> "SyncCursor":
        return cls(CursorKind.SYNC, token)

    def encode(self) -> str:
        return encode_cursor(self)


def decode_cursor(raw: Optional[str]) -> SyncCursor:
    """Decode a persisted cursor string."""
    if not raw:
        return SyncCursor.none()
    if raw.startswith(PAGE_PREFIX):
        return SyncCursor.page(raw[len(PAGE_PREFIX):])
    if raw.startswith(SYNC_PREFIX):
        return SyncCursor.sync(raw[len(SYNC_PREFIX):])
    # backcompat
    return SyncCursor.sync(raw)


def encode_cursor(cursor: SyncCursor) -> str:
    """Encode a cursor for persistence."""
    if cursor.kind is CursorKind.PAGE:
        return PAGE_PREFIX + cursor.token
    if cursor.kind is CursorKind.SYNC:
        return SYNC_PREFIX + cursor.token
    return ""
