"""Data models shared by the calendar sync engine and the API."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class EventKind(str, Enum):
    """Which subscription date a calendar event mirrors."""
    RENEWAL = "renewal"
    TRIAL_END = "trial_end"

    @property
    def date_column(self) -> str:
        return "renewal_date" if self is EventKind.RENEWAL else "trial_end_date"

    @property
    def event_id_column(self) -> str:
        return "renewal_event_id" if self is EventKind.RENEWAL else "trial_end_event_id"

    @property
    def calendar_id_column(self) -> str:
        return "renewal_calendar_id" if self is EventKind.RENEWAL else "trial_end_calendar_id"


class OAuthCredential(BaseModel):
    """Decrypted OAuth credential for one user."""
    user_id: str
    access_token: str
    refresh_token: Optional[str] = None
    scope: str = ""
    expires_at: Optional[datetime] = None


class CalendarMapping(BaseModel):
    """Local cache of a user's dedicated calendar."""
    user_id: str
    calendar_id: str
    calendar_name: Optional[str] = None
    created_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None


class Subscription(BaseModel):
    """Subscription fields the calendar engine reads and stamps."""
    id: str
    user_id: str
    name: str
    status: str = "active"
    renewal_date: Optional[str] = None
    trial_end_date: Optional[str] = None
    renewal_event_id: Optional[str] = None
    trial_end_event_id: Optional[str] = None
    renewal_calendar_id: Optional[str] = None
    trial_end_calendar_id: Optional[str] = None
    calendar_id: Optional[str] = None
    cancel_url: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    source_email_id: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Subscription":
        """Build from a subscriptions row, ignoring columns the engine does not use."""
        data = dict(row)
        fields = {key: data[key] for key in cls.model_fields if key in data}
        fields["status"] = fields.get("status") or "active"
        return cls(**fields)

    def event_date(self, kind: EventKind) -> Optional[str]:
        return getattr(self, kind.date_column)

    def event_id(self, kind: EventKind) -> Optional[str]:
        return getattr(self, kind.event_id_column)

    def event_calendar_id(self, kind: EventKind) -> Optional[str]:
        """Calendar holding the kind's event, falling back to the shared calendar_id."""
        return getattr(self, kind.calendar_id_column) or self.calendar_id

    def pending_kinds(self) -> list[EventKind]:
        """Date kinds that are set but not yet mirrored to the calendar."""
        return [
            kind for kind in EventKind
            if self.event_date(kind) and not self.event_id(kind)
        ]


class EventMetadata(BaseModel):
    """Optional details appended to an event description."""
    amount: Optional[float] = None
    currency: Optional[str] = None
    source: Optional[str] = None
    cancel_url: Optional[str] = None

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> "EventMetadata":
        return cls(
            amount=subscription.amount,
            currency=subscription.currency,
            source=subscription.source_email_id,
            cancel_url=subscription.cancel_url,
        )


class ConnectionStatus(BaseModel):
    """Calendar connection status derived from the stored credential."""
    connected: bool
    has_calendar_scope: bool = False
    is_token_valid: bool = False
    expires_at: Optional[datetime] = None


class SyncResult(BaseModel):
    """Outcome of a bulk reconciliation run."""
    success: int = 0
    failed: int = 0


class KeptCalendar(BaseModel):
    id: str
    summary: Optional[str] = None


class DuplicateCleanupResult(BaseModel):
    """Outcome of a duplicate calendar cleanup."""
    deleted_count: int = 0
    kept_calendar: Optional[KeptCalendar] = None
    message: str = ""


class CalendarPreferences(BaseModel):
    """Per-user calendar sync preferences."""
    auto_sync: bool = True
    sync_renewals: bool = True
    sync_trials: bool = True
    show_canceled: bool = False


class UpcomingEvent(BaseModel):
    """A renewal or trial-end date derived from local subscription data."""
    id: str
    title: str
    description: str
    start: str
    end: str
    type: EventKind
    subscription_id: str
    calendar_event_id: Optional[str] = None
    calendar_id: Optional[str] = None
