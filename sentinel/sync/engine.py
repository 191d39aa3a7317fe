"""Bulk reconciliation of subscriptions into the dedicated calendar."""

import logging
from datetime import date
from typing import Optional

from sentinel.auth.google import create_calendar_client
from sentinel.database import get_database
from sentinel.models import (
    CalendarPreferences,
    EventKind,
    EventMetadata,
    Subscription,
    SyncResult,
    UpcomingEvent,
)
from sentinel.sync.calendars import get_or_create_calendar, mark_calendar_synced
from sentinel.sync.events import create_event_recovering_calendar, normalize_event_date
from sentinel.sync.google_calendar import event_title
from sentinel.sync.preferences import get_calendar_preferences

logger = logging.getLogger(__name__)


def _kind_enabled(kind: EventKind, preferences: CalendarPreferences) -> bool:
    if kind is EventKind.RENEWAL:
        return preferences.sync_renewals
    return preferences.sync_trials


async def get_unsynced_subscriptions(user_id: str) -> list[Subscription]:
    """Subscriptions with at least one dated kind not yet mirrored."""
    db = await get_database()
    cursor = await db.execute(
        """SELECT * FROM subscriptions
           WHERE user_id = ?
           AND ((renewal_date IS NOT NULL AND renewal_event_id IS NULL)
                OR (trial_end_date IS NOT NULL AND trial_end_event_id IS NULL))
           ORDER BY created_at, rowid""",
        (user_id,)
    )
    rows = await cursor.fetchall()
    return [Subscription.from_row(row) for row in rows]


async def sync_all_subscriptions(user_id: str) -> SyncResult:
    """
    Mirror every pending subscription date into the user's dedicated calendar.

    The calendar and client are resolved once for the whole run. Items are
    processed one at a time; each event attempt counts as one success or
    one failure, and no failure stops the batch.
    """
    result = SyncResult()

    try:
        calendar_id = await get_or_create_calendar(user_id)
        if not calendar_id:
            logger.error(f"Sync for user {user_id} aborted: no dedicated calendar")
            return result

        client = await create_calendar_client(user_id)
        if not client:
            logger.error(f"Sync for user {user_id} aborted: no calendar client")
            return result

        preferences = await get_calendar_preferences(user_id)
        subscriptions = await get_unsynced_subscriptions(user_id)
    except Exception as e:
        logger.error(f"Sync for user {user_id} aborted: {e}")
        return result

    logger.info(f"Syncing {len(subscriptions)} subscriptions for user {user_id} into {calendar_id}")

    attempted = False
    for subscription in subscriptions:
        try:
            metadata = EventMetadata.from_subscription(subscription)

            for kind in subscription.pending_kinds():
                if not _kind_enabled(kind, preferences):
                    continue

                attempted = True
                event_id, calendar_id = await create_event_recovering_calendar(
                    user_id,
                    subscription.id,
                    subscription.name,
                    subscription.event_date(kind),
                    kind,
                    calendar_id,
                    client,
                    metadata,
                )
                if event_id:
                    result.success += 1
                else:
                    result.failed += 1
                    logger.warning(f"Failed to sync {kind.value} event for {subscription.name}")

        except Exception as e:
            logger.error(f"Error syncing subscription {subscription.id}: {e}")
            result.failed += 1

    if attempted:
        try:
            await mark_calendar_synced(user_id)
        except Exception as e:
            logger.error(f"Failed to record last sync for user {user_id}: {e}")

    logger.info(f"Sync completed for user {user_id}: {result.success} successful, {result.failed} failed")
    return result


async def list_upcoming_events(user_id: str, today: Optional[date] = None) -> list[UpcomingEvent]:
    """Renewal and trial-end dates of active subscriptions from today on."""
    today_str = (today or date.today()).isoformat()

    db = await get_database()
    cursor = await db.execute(
        """SELECT * FROM subscriptions
           WHERE user_id = ? AND status = 'active'
           AND (renewal_date >= ? OR trial_end_date >= ?)
           ORDER BY renewal_date""",
        (user_id, today_str, today_str)
    )
    rows = await cursor.fetchall()

    events = []
    for row in rows:
        subscription = Subscription.from_row(row)
        for kind in EventKind:
            raw_date = subscription.event_date(kind)
            if not raw_date:
                continue
            try:
                event_date = normalize_event_date(raw_date)
            except ValueError:
                logger.warning(f"Skipping invalid {kind.date_column} on subscription {subscription.id}")
                continue
            if event_date < today_str:
                continue

            if kind is EventKind.RENEWAL:
                description = f"Your {subscription.name} subscription will renew on {event_date}"
            else:
                description = f"Your {subscription.name} trial will end on {event_date}"

            events.append(UpcomingEvent(
                id=f"{kind.value}-{subscription.id}",
                title=event_title(subscription.name, kind),
                description=description,
                start=event_date,
                end=event_date,
                type=kind,
                subscription_id=subscription.id,
                calendar_event_id=subscription.event_id(kind),
                calendar_id=subscription.event_calendar_id(kind),
            ))

    events.sort(key=lambda event: event.start)
    return events
