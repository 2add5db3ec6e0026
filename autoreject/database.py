"""Database connection, schema management and the per-user settings store."""

import asyncio
import logging
from datetime import datetime
from typing import Optional

import aiosqlite

from autoreject.config import get_settings

logger = logging.getLogger(__name__)

# Global database connection
_db_connection: Optional[aiosqlite.Connection] = None
_db_lock = asyncio.Lock()


SCHEMA = """
-- Per-user string settings (marker name, reply text, sync start, cursor)
CREATE TABLE IF NOT EXISTS user_settings (
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    value TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (user_id, name)
);

-- OAuth tokens, written by the login flow
CREATE TABLE IF NOT EXISTS oauth_tokens (
    user_id TEXT PRIMARY KEY,
    access_token TEXT NOT NULL,
    refresh_token TEXT,
    token_expiry TIMESTAMP,
    updated_at TIMESTAMP
);

-- Push notification channels; one sync target per channel
CREATE TABLE IF NOT EXISTS watch_channels (
    channel_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    calendar_id TEXT NOT NULL,
    resource_id TEXT NOT NULL,
    expiration TIMESTAMP NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_watch_channels_user
    ON watch_channels(user_id, calendar_id);

-- Health of each sync target
CREATE TABLE IF NOT EXISTS sync_state (
    channel_id TEXT PRIMARY KEY,
    last_success TIMESTAMP,
    last_attempt TIMESTAMP,
    consecutive_failures INTEGER DEFAULT 0,
    last_error TEXT
);

-- Audit log
CREATE TABLE IF NOT EXISTS sync_log (
    id INTEGER PRIMARY KEY,
    user_id TEXT,
    channel_id TEXT,
    action TEXT NOT NULL,
    status TEXT NOT NULL,
    details TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_sync_log_created ON sync_log(created_at);

-- Job locking
CREATE TABLE IF NOT EXISTS job_locks (
    job_name TEXT PRIMARY KEY,
    locked_at TIMESTAMP,
    locked_by TEXT
);
"""


async def get_database() -> aiosqlite.Connection:
    """Get the database connection, creating it if necessary."""
    global _db_connection

    async with _db_lock:
        if _db_connection is None:
            settings = get_settings()
            _db_connection = await aiosqlite.connect(settings.database_path)
            _db_connection.row_factory = aiosqlite.Row
            await _db_connection.execute("PRAGMA journal_mode = WAL")
            await init_schema(_db_connection)
        return _db_connection


async def init_schema(db: aiosqlite.Connection) -> None:
    """Initialize database schema."""
    await db.executescript(SCHEMA)
    await db.commit()
    logger.info("Database schema initialized")


async def close_database() -> None:
    """Close the database connection."""
    global _db_connection

    async with _db_lock:
        if _db_connection is not None:
            await _db_connection.close()
            _db_connection = None
            logger.info("Database connection closed")


def default_setting_values() -> dict[str, str]:
    """Values returned for settings a user has never written."""
    settings = get_settings()
    return {
        "autoreject_name": settings.default_autoreject_name,
        "autoreject_reply": settings.default_autoreject_reply,
    }


async def get_string_setting(user_id: str, name: str) -> str:
    """
    Get a per-user string setting.

    Missing settings fall back to the configured default, or to the empty
    string when the name has no default (e.g. a cursor never written).
    """
    db = await get_database()
    cursor = await db.execute(
        "SELECT value FROM user_settings WHERE user_id = ? AND name = ?",
        (user_id, name)
    )
    row = await cursor.fetchone()
    if row:
        return row["value"]
    return default_setting_values().get(name, "")


async def set_string_setting(user_id: str, name: str, value: str) -> None:
    """Set a per-user string setting."""
    db = await get_database()
    now = datetime.utcnow().isoformat()
    await db.execute(
        """INSERT INTO user_settings (user_id, name, value, updated_at)
           VALUES (?, ?, ?, ?)
           ON CONFLICT(user_id, name) DO UPDATE SET
           value = excluded.value,
           updated_at = excluded.updated_at""",
        (user_id, name, value, now)
    )
    await db.commit()


async def get_channel(channel_id: str) -> Optional[dict]:
    """Get a watch channel by id."""
    db = await get_database()
    cursor = await db.execute(
        "SELECT * FROM watch_channels WHERE channel_id = ?", (channel_id,)
    )
    row = await cursor.fetchone()
    if row:
        return dict(row)
    return None


async def get_all_channels() -> list[dict]:
    """Get every registered watch channel."""
    db = await get_database()
    cursor = await db.execute(
        "SELECT * FROM watch_channels ORDER BY created_at, channel_id"
    )
    rows = await cursor.fetchall()
    return [dict(row) for row in rows]
