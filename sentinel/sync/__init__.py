"""Calendar synchronization engine."""

from sentinel.sync.calendars import get_or_create_calendar
from sentinel.sync.connection import is_calendar_connected
from sentinel.sync.consistency import cleanup_duplicate_calendars
from sentinel.sync.engine import sync_all_subscriptions
from sentinel.sync.events import create_subscription_event

__all__ = [
    "get_or_create_calendar",
    "is_calendar_connected",
    "cleanup_duplicate_calendars",
    "sync_all_subscriptions",
    "create_subscription_event",
]
