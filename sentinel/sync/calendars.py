"""Dedicated calendar management."""

import logging
from datetime import datetime
from typing import Optional

import aiosqlite

from sentinel.auth.google import create_calendar_client
from sentinel.config import calendar_name_for_year, get_calendar_timezone, get_settings
from sentinel.database import get_database
from sentinel.models import CalendarMapping

logger = logging.getLogger(__name__)


async def get_calendar_mapping(user_id: str) -> Optional[CalendarMapping]:
    """Get the cached dedicated calendar for a user."""
    db = await get_database()
    cursor = await db.execute(
        "SELECT * FROM user_calendars WHERE user_id = ?", (user_id,)
    )
    row = await cursor.fetchone()
    if row:
        return CalendarMapping(
            user_id=row["user_id"],
            calendar_id=row["calendar_id"],
            calendar_name=row["calendar_name"],
            created_at=row["created_at"],
            last_synced_at=row["last_synced_at"],
        )
    return None


async def forget_calendar_mapping(user_id: str, calendar_id: str) -> None:
    """Drop a cached mapping that points at a calendar which no longer exists."""
    db = await get_database()
    await db.execute(
        "DELETE FROM user_calendars WHERE user_id = ? AND calendar_id = ?",
        (user_id, calendar_id)
    )
    await db.commit()


async def replace_calendar_mapping(user_id: str, calendar_id: str, calendar_name: Optional[str]) -> None:
    """Rewrite a user's mappings so that exactly one row remains."""
    db = await get_database()
    try:
        await db.execute("DELETE FROM user_calendars WHERE user_id = ?", (user_id,))
        await db.execute(
            """INSERT INTO user_calendars (user_id, calendar_id, calendar_name, created_at)
               VALUES (?, ?, ?, ?)""",
            (user_id, calendar_id, calendar_name, datetime.utcnow().isoformat())
        )
        await db.commit()
    except Exception:
        # The DELETE must not survive to another coroutine's commit
        await db.rollback()
        raise


async def mark_calendar_synced(user_id: str) -> None:
    db = await get_database()
    await db.execute(
        "UPDATE user_calendars SET last_synced_at = ? WHERE user_id = ?",
        (datetime.utcnow().isoformat(), user_id)
    )
    await db.commit()


async def get_or_create_calendar(user_id: str) -> Optional[str]:
    """
    Get the user's dedicated calendar id, creating the calendar on first use.

    A cached id is trusted without checking it upstream. When two requests
    race on first use, the unique mapping row decides the winner and the
    loser's freshly created calendar is deleted.
    """
    try:
        mapping = await get_calendar_mapping(user_id)
        if mapping and mapping.calendar_id:
            return mapping.calendar_id

        client = await create_calendar_client(user_id)
        if not client:
            logger.warning(f"Cannot create dedicated calendar for user {user_id}: no usable credential")
            return None

        settings = get_settings()
        calendar_name = calendar_name_for_year(datetime.now().year)
        created = client.insert_calendar(
            summary=calendar_name,
            description=f"Subscription renewals and trial end dates managed by {settings.product_name}",
            time_zone=get_calendar_timezone(),
        )
        calendar_id = created.get("id")
        if not calendar_id:
            logger.error(f"Calendar creation for user {user_id} returned no id")
            return None

        logger.info(f"Created dedicated calendar {calendar_id} for user {user_id}")
    except Exception as e:
        logger.error(f"Error getting dedicated calendar for user {user_id}: {e}")
        return None

    db = await get_database()
    try:
        await db.execute(
            """INSERT INTO user_calendars (user_id, calendar_id, calendar_name, created_at)
               VALUES (?, ?, ?, ?)""",
            (user_id, calendar_id, calendar_name, datetime.utcnow().isoformat())
        )
        await db.commit()
    except aiosqlite.IntegrityError:
        await db.rollback()
        winner = await get_calendar_mapping(user_id)
        if not winner:
            return calendar_id

        logger.warning(
            f"Concurrent calendar creation for user {user_id}: keeping {winner.calendar_id}, "
            f"deleting {calendar_id}"
        )
        try:
            client.delete_calendar(calendar_id)
        except Exception as e:
            logger.error(f"Failed to delete losing calendar {calendar_id}: {e}")
        return winner.calendar_id
    except Exception as e:
        await db.rollback()
        # The calendar exists upstream even though the cache write failed
        logger.error(f"Calendar {calendar_id} created for user {user_id} but not stored locally: {e}")

    return calendar_id
