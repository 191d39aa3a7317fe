"""Database connection and schema management."""

import asyncio
import logging
from typing import Optional

import aiosqlite

from sentinel.config import get_settings

logger = logging.getLogger(__name__)

# Global database connection
_db_connection: Optional[aiosqlite.Connection] = None
_db_lock = asyncio.Lock()


SCHEMA = """
-- OAuth credentials (encrypted at rest), written by the token exchange/refresh flow
CREATE TABLE IF NOT EXISTS oauth_tokens (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL UNIQUE,
    access_token_encrypted BLOB NOT NULL,
    refresh_token_encrypted BLOB,
    scope TEXT,
    expires_at TIMESTAMP,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP
);

-- Dedicated calendar per user (cache of the provider-side calendar)
CREATE TABLE IF NOT EXISTS user_calendars (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL UNIQUE,
    calendar_id TEXT NOT NULL,
    calendar_name TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    last_synced_at TIMESTAMP
);

-- Calendar sync preferences
CREATE TABLE IF NOT EXISTS calendar_preferences (
    user_id TEXT PRIMARY KEY,
    auto_sync BOOLEAN DEFAULT TRUE,
    sync_renewals BOOLEAN DEFAULT TRUE,
    sync_trials BOOLEAN DEFAULT TRUE,
    show_canceled BOOLEAN DEFAULT FALSE,
    updated_at TIMESTAMP
);

-- Subscriptions inferred from billing emails
CREATE TABLE IF NOT EXISTS subscriptions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    service TEXT,
    status TEXT DEFAULT 'active',
    amount REAL,
    currency TEXT,
    billing_cycle TEXT,
    renewal_date TEXT,
    trial_end_date TEXT,
    renewal_event_id TEXT,
    trial_end_event_id TEXT,
    renewal_calendar_id TEXT,
    trial_end_calendar_id TEXT,
    calendar_id TEXT,
    cancel_url TEXT,
    source_email_id TEXT,
    confidence_score REAL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_subscriptions_user ON subscriptions(user_id);

-- Short-lived keyed state (sync guards, verification codes)
CREATE TABLE IF NOT EXISTS expiring_keys (
    key TEXT PRIMARY KEY,
    value TEXT,
    expires_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_expiring_keys_expiry ON expiring_keys(expires_at);
"""


async def get_database() -> aiosqlite.Connection:
    """Get the database connection, creating it if necessary."""
    global _db_connection

    async with _db_lock:
        if _db_connection is None:
            settings = get_settings()
            _db_connection = await aiosqlite.connect(settings.database_path)
            _db_connection.row_factory = aiosqlite.Row
            await _db_connection.execute("PRAGMA foreign_keys = ON")
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


async def get_subscription(subscription_id: str, user_id: Optional[str] = None) -> Optional[dict]:
    """Get a subscription row, optionally scoped to its owner."""
    db = await get_database()
    if user_id is None:
        cursor = await db.execute(
            "SELECT * FROM subscriptions WHERE id = ?", (subscription_id,)
        )
    else:
        cursor = await db.execute(
            "SELECT * FROM subscriptions WHERE id = ? AND user_id = ?",
            (subscription_id, user_id)
        )
    row = await cursor.fetchone()
    if row:
        return dict(row)
    return None
