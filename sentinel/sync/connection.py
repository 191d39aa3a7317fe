"""Calendar connection status."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sentinel.auth.google import as_naive_utc, get_oauth_credential
from sentinel.config import get_settings
from sentinel.models import ConnectionStatus

logger = logging.getLogger(__name__)


def is_token_fresh(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """
    Check that a token outlives the connection buffer.

    A token inside the buffer reports disconnected while the client
    factory, which has no buffer, still accepts it.
    """
    if expires_at is None:
        return False
    now = now or datetime.utcnow()
    buffer = timedelta(minutes=get_settings().connection_expiry_buffer_minutes)
    return as_naive_utc(expires_at) > now + buffer


def has_calendar_scope(scope: Optional[str]) -> bool:
    return bool(scope) and get_settings().calendar_scope in scope


async def get_connection_status(user_id: str) -> ConnectionStatus:
    """Derive the calendar connection status from the stored credential."""
    credential = await get_oauth_credential(user_id)
    if not credential:
        return ConnectionStatus(connected=False)

    scoped = has_calendar_scope(credential.scope)
    fresh = is_token_fresh(credential.expires_at)

    return ConnectionStatus(
        connected=scoped and fresh,
        has_calendar_scope=scoped,
        is_token_valid=fresh,
        expires_at=credential.expires_at,
    )


async def is_calendar_connected(user_id: str) -> bool:
    """Check whether the user has a calendar-scoped token outside the expiry buffer."""
    try:
        status = await get_connection_status(user_id)
    except Exception as e:
        logger.error(f"Error checking calendar connection for user {user_id}: {e}")
        return False

    logger.debug(
        f"Calendar connection for user {user_id}: scope={status.has_calendar_scope} "
        f"valid={status.is_token_valid}"
    )
    return status.connected
