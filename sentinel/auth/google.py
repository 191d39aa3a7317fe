"""Google OAuth credential storage and calendar client construction."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sentinel.database import get_database
from sentinel.encryption import decrypt_value, encrypt_value
from sentinel.models import OAuthCredential

logger = logging.getLogger(__name__)


def as_naive_utc(value: datetime) -> datetime:
    """Normalize a timestamp to naive UTC for comparison with utcnow()."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def is_token_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """
    Zero-buffer expiry check used on the API call path.

    A credential without an expiry is treated as expired.
    """
    if expires_at is None:
        return True
    now = now or datetime.utcnow()
    return now >= as_naive_utc(expires_at)


async def store_oauth_credential(
    user_id: str,
    access_token: str,
    refresh_token: Optional[str] = None,
    scope: str = "",
    expires_in: Optional[int] = None,
    expires_at: Optional[datetime] = None,
) -> int:
    """
    Store a user's OAuth credential, replacing any previous one.

    This is the write path used by the token exchange and refresh flow.
    """
    db = await get_database()
    now = datetime.utcnow()

    if expires_at is None and expires_in:
        expires_at = now + timedelta(seconds=expires_in)
    expiry = as_naive_utc(expires_at).isoformat() if expires_at else None

    access_encrypted = encrypt_value(access_token)
    refresh_encrypted = encrypt_value(refresh_token) if refresh_token else None

    cursor = await db.execute(
        """INSERT INTO oauth_tokens
           (user_id, access_token_encrypted, refresh_token_encrypted, scope, expires_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?)
           ON CONFLICT(user_id) DO UPDATE SET
           access_token_encrypted = excluded.access_token_encrypted,
           refresh_token_encrypted = COALESCE(excluded.refresh_token_encrypted, refresh_token_encrypted),
           scope = excluded.scope,
           expires_at = excluded.expires_at,
           updated_at = excluded.updated_at
           RETURNING id""",
        (user_id, access_encrypted, refresh_encrypted, scope, expiry, now.isoformat())
    )
    row = await cursor.fetchone()
    await db.commit()

    return row["id"]


async def get_oauth_credential(user_id: str) -> Optional[OAuthCredential]:
    """
    Read a user's OAuth credential.

    Returns None when the credential is missing, unreadable, or has an empty
    access token. Callers treat all of these as "not connected".
    """
    try:
        db = await get_database()
        cursor = await db.execute(
            """SELECT access_token_encrypted, refresh_token_encrypted, scope, expires_at
               FROM oauth_tokens WHERE user_id = ?""",
            (user_id,)
        )
        row = await cursor.fetchone()
        if not row or not row["access_token_encrypted"]:
            logger.info(f"No OAuth credential stored for user {user_id}")
            return None

        access_token = decrypt_value(row["access_token_encrypted"])
        if not access_token:
            logger.info(f"Empty access token stored for user {user_id}")
            return None

        refresh_token = None
        if row["refresh_token_encrypted"]:
            refresh_token = decrypt_value(row["refresh_token_encrypted"])

        return OAuthCredential(
            user_id=user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            scope=row["scope"] or "",
            expires_at=row["expires_at"],
        )
    except Exception as e:
        logger.error(f"Failed to read OAuth credential for user {user_id}: {e}")
        return None


async def create_calendar_client(user_id: str):
    """
    Build an authenticated Google Calendar client for a user.

    Returns None when the credential is unusable or expired. Tokens are never
    refreshed here; no network call is made until the client is used.
    """
    from sentinel.sync.google_calendar import GoogleCalendarClient

    credential = await get_oauth_credential(user_id)
    if not credential:
        return None

    if is_token_expired(credential.expires_at):
        logger.info(f"Access token for user {user_id} expired at {credential.expires_at}")
        return None

    try:
        return GoogleCalendarClient(credential.access_token)
    except Exception as e:
        logger.error(f"Failed to build calendar client for user {user_id}: {e}")
        return None
