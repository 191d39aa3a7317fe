"""Calendar sync API endpoints."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from sentinel.auth.session import User, get_current_user
from sentinel.config import get_settings
from sentinel.database import get_subscription
from sentinel.limits import limiter, sync_rate_limit
from sentinel.models import (
    CalendarPreferences,
    ConnectionStatus,
    DuplicateCleanupResult,
    EventKind,
    EventMetadata,
    Subscription,
    SyncResult,
    UpcomingEvent,
)
from sentinel.store import ExpiringStore, get_expiring_store
from sentinel.sync.calendars import get_or_create_calendar
from sentinel.sync.connection import get_connection_status, is_calendar_connected
from sentinel.sync.consistency import cleanup_duplicate_calendars
from sentinel.sync.engine import list_upcoming_events, sync_all_subscriptions
from sentinel.sync.events import create_subscription_event, delete_subscription_event
from sentinel.sync.preferences import get_calendar_preferences, save_calendar_preferences

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/calendar", tags=["calendar"])


class EnsureCalendarResponse(BaseModel):
    calendar_id: str


class SyncAllResponse(BaseModel):
    success: bool
    message: str
    result: SyncResult


class SyncAvailabilityResponse(BaseModel):
    connected: bool


class CreateEventRequest(BaseModel):
    """Request to mirror one subscription date into the calendar."""
    subscription_id: str
    kind: EventKind


class CreateEventResponse(BaseModel):
    event_id: str


class UpcomingEventsResponse(BaseModel):
    events: list[UpcomingEvent]
    event_count: int


class PreferencesResponse(BaseModel):
    preferences: CalendarPreferences


def _sync_guard_key(user_id: str) -> str:
    return f"calendar-sync:{user_id}"


@router.get("/status", response_model=ConnectionStatus)
async def get_calendar_status(user: User = Depends(get_current_user)):
    """Get calendar connection status for current user."""
    try:
        return await get_connection_status(user.id)
    except Exception as e:
        logger.error(f"Error checking calendar status for user {user.id}: {e}")
        return ConnectionStatus(connected=False)


@router.post("/ensure", response_model=EnsureCalendarResponse)
async def ensure_calendar(user: User = Depends(get_current_user)):
    """Find or create the user's dedicated calendar."""
    calendar_id = await get_or_create_calendar(user.id)
    if not calendar_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Calendar not available, please reconnect Google Calendar",
        )
    return EnsureCalendarResponse(calendar_id=calendar_id)


@router.get("/sync-all", response_model=SyncAvailabilityResponse)
async def get_sync_availability(user: User = Depends(get_current_user)):
    return SyncAvailabilityResponse(connected=await is_calendar_connected(user.id))


@router.post("/sync-all", response_model=SyncAllResponse)
@limiter.limit(sync_rate_limit)
async def sync_all(
    request: Request,
    user: User = Depends(get_current_user),
    store: ExpiringStore = Depends(get_expiring_store),
):
    """Mirror every pending subscription date into the dedicated calendar."""
    if not await is_calendar_connected(user.id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Calendar not connected, please connect Google Calendar first",
        )

    guard_key = _sync_guard_key(user.id)
    started = datetime.utcnow().isoformat()
    if not await store.add(guard_key, started, get_settings().sync_guard_seconds):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A calendar sync is already running",
        )

    try:
        result = await sync_all_subscriptions(user.id)
    finally:
        await store.delete(guard_key)

    return SyncAllResponse(
        success=True,
        message=f"Synced {result.success} events to Google Calendar",
        result=result,
    )


@router.post("/events", response_model=CreateEventResponse)
async def create_event(request: CreateEventRequest, user: User = Depends(get_current_user)):
    """Create the calendar event for one subscription date."""
    row = await get_subscription(request.subscription_id, user.id)
    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found",
        )

    subscription = Subscription.from_row(row)
    event_date = subscription.event_date(request.kind)
    if not event_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Subscription has no {request.kind.date_column}",
        )

    event_id = await create_subscription_event(
        user.id,
        subscription.id,
        subscription.name,
        event_date,
        request.kind,
        EventMetadata.from_subscription(subscription),
    )
    if not event_id:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to create calendar event",
        )
    return CreateEventResponse(event_id=event_id)


@router.delete("/events/{subscription_id}/{kind}")
async def delete_event(subscription_id: str, kind: EventKind, user: User = Depends(get_current_user)):
    """Delete a mirrored event and clear it from the subscription."""
    if not await delete_subscription_event(user.id, subscription_id, kind):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event could not be deleted",
        )
    return {"status": "ok"}


@router.get("/events", response_model=UpcomingEventsResponse)
async def get_upcoming_events(user: User = Depends(get_current_user)):
    """List upcoming renewal and trial-end dates."""
    events = await list_upcoming_events(user.id)
    return UpcomingEventsResponse(events=events, event_count=len(events))


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(user: User = Depends(get_current_user)):
    return PreferencesResponse(preferences=await get_calendar_preferences(user.id))


@router.post("/preferences", response_model=PreferencesResponse)
async def update_preferences(
    preferences: CalendarPreferences,
    user: User = Depends(get_current_user),
):
    """Save calendar sync preferences."""
    await save_calendar_preferences(user.id, preferences)
    return PreferencesResponse(preferences=preferences)


@router.post("/cleanup", response_model=DuplicateCleanupResult)
async def cleanup_calendars(user: User = Depends(get_current_user)):
    """Delete duplicate dedicated calendars, keeping one."""
    return await cleanup_duplicate_calendars(user.id)
