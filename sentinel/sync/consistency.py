"""Duplicate dedicated calendar repair."""

import logging

from sentinel.auth.google import create_calendar_client
from sentinel.config import calendar_name_prefix
from sentinel.models import DuplicateCleanupResult, KeptCalendar
from sentinel.sync.calendars import replace_calendar_mapping

logger = logging.getLogger(__name__)


def is_dedicated_calendar(calendar: dict) -> bool:
    """Check whether a calendar list entry follows our naming convention."""
    summary = calendar.get("summary") or ""
    return calendar_name_prefix() in summary


async def cleanup_duplicate_calendars(user_id: str) -> DuplicateCleanupResult:
    """
    Keep one dedicated calendar upstream and delete the rest.

    Repairs duplicates left behind by racing first-use creation. The first
    match in provider order is kept, individual delete failures are logged
    and skipped, and the local mapping is rewritten to the kept calendar.
    Intended for manual/diagnostic use.
    """
    client = await create_calendar_client(user_id)
    if not client:
        return DuplicateCleanupResult(message="Calendar not connected")

    try:
        matches = [cal for cal in client.list_calendars() if is_dedicated_calendar(cal)]
    except Exception as e:
        logger.error(f"Failed to list calendars for user {user_id}: {e}")
        return DuplicateCleanupResult(message="Failed to list calendars")

    logger.info(f"Found {len(matches)} dedicated calendars for user {user_id}")

    if len(matches) <= 1:
        return DuplicateCleanupResult(message="No duplicate calendars found")

    keep, duplicates = matches[0], matches[1:]
    logger.info(f"Keeping calendar {keep['id']}, deleting {len(duplicates)} duplicates")

    deleted_count = 0
    for cal in duplicates:
        try:
            client.delete_calendar(cal["id"])
            deleted_count += 1
            logger.info(f"Deleted duplicate calendar {cal['id']}")
        except Exception as e:
            logger.error(f"Failed to delete duplicate calendar {cal['id']}: {e}")

    try:
        await replace_calendar_mapping(user_id, keep["id"], keep.get("summary"))
    except Exception as e:
        logger.error(f"Failed to rewrite calendar mapping for user {user_id}: {e}")

    return DuplicateCleanupResult(
        deleted_count=deleted_count,
        kept_calendar=KeptCalendar(id=keep["id"], summary=keep.get("summary")),
        message=f"Cleaned up {deleted_count} duplicate calendars",
    )
