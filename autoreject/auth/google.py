"""Google OAuth token helpers.

Tokens are written by the login flow; the sync engine only reads them and
refreshes them when they are about to expire.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import httpx

from autoreject.config import get_settings
from autoreject.database import get_database

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"


async def refresh_access_token(refresh_token: str) -> dict:
    """Refresh an access token."""
    settings = get_settings()
    if not settings.google_client_id or not settings.google_client_secret:
        raise ValueError("Google OAuth client is not configured")

    async with httpx.AsyncClient() as client:
        response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "refresh_token": refresh_token,
                "client_id": settings.google_client_id,
                "client_secret": settings.google_client_secret,
                "grant_type": "refresh_token",
            },
        )

        if response.status_code != 200:
            logger.error(f"Token refresh failed: {response.text}")
            raise ValueError(f"Token refresh failed: {response.text}")

        return response.json()


async def store_oauth_tokens(
    user_id: str,
    access_token: str,
    refresh_token: Optional[str],
    expires_in: Optional[int] = None,
) -> None:
    """Store OAuth tokens in database."""
    db = await get_database()
    now = datetime.utcnow()

    expiry = None
    if expires_in:
        expiry = (now + timedelta(seconds=expires_in)).isoformat()

    await db.execute(
        """INSERT INTO oauth_tokens
           (user_id, access_token, refresh_token, token_expiry, updated_at)
           VALUES (?, ?, ?, ?, ?)
           ON CONFLICT(user_id) DO UPDATE SET
           access_token = excluded.access_token,
           refresh_token = COALESCE(excluded.refresh_token, oauth_tokens.refresh_token),
           token_expiry = excluded.token_expiry,
           updated_at = excluded.updated_at""",
        (user_id, access_token, refresh_token, expiry, now.isoformat())
    )
    await db.commit()


async def get_oauth_token(user_id: str) -> Optional[dict]:
    """Get the stored OAuth token for a user."""
    db = await get_database()
    cursor = await db.execute(
        "SELECT * FROM oauth_tokens WHERE user_id = ?", (user_id,)
    )
    row = await cursor.fetchone()
    if row:
        return dict(row)
    return None


async def get_valid_access_token(user_id: str) -> str:
    """Get a valid access token, refreshing if needed."""
    token_data = await get_oauth_token(user_id)
    if not token_data:
        raise ValueError(f"No token found for user {user_id}")

    access_token = token_data["access_token"]

    expiry = token_data.get("token_expiry")
    if not expiry:
        return access_token

    margin = timedelta(minutes=get_settings().token_refresh_margin_minutes)
    if datetime.utcnow() < datetime.fromisoformat(expiry) - margin:
        return access_token

    if not token_data.get("refresh_token"):
        raise ValueError(f"Token for user {user_id} expired and cannot be refreshed")

    logger.info(f"Refreshing token for user {user_id}")
    new_tokens = await refresh_access_token(token_data["refresh_token"])
    access_token = new_tokens["access_token"]
    await store_oauth_tokens(
        user_id=user_id,
        access_token=access_token,
        refresh_token=new_tokens.get("refresh_token"),
        expires_in=new_tokens.get("expires_in"),
    )
    return access_token
