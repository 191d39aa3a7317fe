"""Calendar events for subscription renewal and trial-end dates."""

import logging
from datetime import date, datetime
from typing import Optional, Union

from sentinel.auth.google import create_calendar_client
from sentinel.database import get_database, get_subscription
from sentinel.models import EventKind, EventMetadata, Subscription
from sentinel.sync.calendars import forget_calendar_mapping, get_or_create_calendar
from sentinel.sync.google_calendar import (
    CalendarNotFoundError,
    GoogleCalendarClient,
    create_subscription_event_body,
)

logger = logging.getLogger(__name__)


def normalize_event_date(value: Union[str, date, datetime]) -> str:
    """
    Reduce a stored date to YYYY-MM-DD.

    Accepts full ISO timestamps such as 2025-06-01T00:00:00Z.
    Raises ValueError for anything that is not a date.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return date.fromisoformat(str(value).strip()[:10]).isoformat()


async def _stamp_subscription_event(
    subscription_id: str,
    kind: EventKind,
    event_id: str,
    calendar_id: str,
) -> None:
    db = await get_database()
    try:
        await db.execute(
            f"""UPDATE subscriptions SET
                {kind.event_id_column} = ?, {kind.calendar_id_column} = ?,
                calendar_id = ?, updated_at = ?
                WHERE id = ?""",
            (event_id, calendar_id, calendar_id, datetime.utcnow().isoformat(), subscription_id)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise


async def create_subscription_event_with_calendar(
    subscription_id: str,
    subscription_name: str,
    event_date: Union[str, date],
    kind: Union[EventKind, str],
    calendar_id: str,
    client: GoogleCalendarClient,
    metadata: Optional[EventMetadata] = None,
) -> Optional[str]:
    """
    Create one event on an already resolved calendar and stamp its id.

    Returns the event id, or None when the provider call fails. Raises
    CalendarNotFoundError when the calendar itself is gone, so the caller
    can re-resolve it.
    """
    kind = EventKind(kind)
    try:
        body = create_subscription_event_body(
            subscription_name,
            normalize_event_date(event_date),
            kind,
            metadata,
        )
        created = client.create_event(calendar_id, body)
    except CalendarNotFoundError:
        raise
    except Exception as e:
        logger.error(f"Error creating {kind.value} event for subscription {subscription_id}: {e}")
        return None

    event_id = created.get("id")
    if not event_id:
        logger.error(f"Event creation for subscription {subscription_id} returned no id")
        return None

    logger.info(f"Created {kind.value} event {event_id} for subscription {subscription_id}")

    try:
        await _stamp_subscription_event(subscription_id, kind, event_id, calendar_id)
    except Exception as e:
        # The event exists upstream even though the stamp failed
        logger.error(
            f"Event {event_id} created on {calendar_id} but not stored on "
            f"subscription {subscription_id}: {e}"
        )

    return event_id


async def create_event_recovering_calendar(
    user_id: str,
    subscription_id: str,
    subscription_name: str,
    event_date: Union[str, date],
    kind: Union[EventKind, str],
    calendar_id: str,
    client: GoogleCalendarClient,
    metadata: Optional[EventMetadata] = None,
) -> tuple[Optional[str], str]:
    """
    Create an event, re-resolving a stale cached calendar once.

    Returns (event id or None, calendar id to use from now on).
    """
    try:
        event_id = await create_subscription_event_with_calendar(
            subscription_id, subscription_name, event_date, kind,
            calendar_id, client, metadata,
        )
        return event_id, calendar_id
    except CalendarNotFoundError:
        logger.warning(f"Cached calendar {calendar_id} for user {user_id} no longer exists, recreating")

    try:
        await forget_calendar_mapping(user_id, calendar_id)
    except Exception as e:
        logger.error(f"Failed to drop stale calendar mapping for user {user_id}: {e}")

    new_calendar_id = await get_or_create_calendar(user_id)
    if not new_calendar_id:
        return None, calendar_id

    try:
        event_id = await create_subscription_event_with_calendar(
            subscription_id, subscription_name, event_date, kind,
            new_calendar_id, client, metadata,
        )
    except CalendarNotFoundError:
        logger.error(f"Recreated calendar {new_calendar_id} for user {user_id} is not usable")
        event_id = None
    return event_id, new_calendar_id


async def create_subscription_event(
    user_id: str,
    subscription_id: str,
    subscription_name: str,
    event_date: Union[str, date],
    kind: Union[EventKind, str],
    metadata: Optional[EventMetadata] = None,
) -> Optional[str]:
    """
    Create one subscription event, resolving calendar and client first.

    A kind that is already mirrored returns its stored event id without
    creating another event upstream.
    """
    try:
        kind = EventKind(kind)
        row = await get_subscription(subscription_id, user_id)
        if row:
            existing_id = Subscription.from_row(row).event_id(kind)
            if existing_id:
                logger.info(
                    f"Subscription {subscription_id} already has {kind.value} event {existing_id}"
                )
                return existing_id

        calendar_id = await get_or_create_calendar(user_id)
        if not calendar_id:
            logger.error(f"No dedicated calendar available for user {user_id}")
            return None

        client = await create_calendar_client(user_id)
        if not client:
            logger.error(f"No calendar client available for user {user_id}")
            return None

        event_id, _ = await create_event_recovering_calendar(
            user_id, subscription_id, subscription_name, event_date, kind,
            calendar_id, client, metadata,
        )
        return event_id
    except Exception as e:
        logger.error(f"Error creating event for subscription {subscription_id}: {e}")
        return None


async def delete_subscription_event(user_id: str, subscription_id: str, kind: Union[EventKind, str]) -> bool:
    """Delete the mirrored event for one date kind and clear its id."""
    kind = EventKind(kind)
    row = await get_subscription(subscription_id, user_id)
    if not row:
        return False

    subscription = Subscription.from_row(row)
    event_id = subscription.event_id(kind)
    calendar_id = subscription.event_calendar_id(kind)
    if not event_id:
        return True

    client = await create_calendar_client(user_id)
    if not client:
        return False

    if calendar_id:
        try:
            client.delete_event(calendar_id, event_id)
        except Exception as e:
            logger.error(f"Failed to delete event {event_id} from {calendar_id}: {e}")
            return False
    else:
        logger.warning(f"Subscription {subscription_id} has event {event_id} but no calendar id")

    db = await get_database()
    try:
        await db.execute(
            f"""UPDATE subscriptions SET
                {kind.event_id_column} = NULL, {kind.calendar_id_column} = NULL, updated_at = ?
                WHERE id = ? AND user_id = ?""",
            (datetime.utcnow().isoformat(), subscription_id, user_id)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info(f"Deleted {kind.value} event {event_id} for subscription {subscription_id}")
    return True
