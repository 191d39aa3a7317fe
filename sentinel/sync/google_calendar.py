"""Google Calendar API wrapper."""

import logging
from typing import Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sentinel.config import get_calendar_timezone
from sentinel.models import EventKind, EventMetadata

logger = logging.getLogger(__name__)


class CalendarNotFoundError(LookupError):
    """The target calendar no longer exists upstream."""

    def __init__(self, calendar_id: str):
        super().__init__(f"Calendar {calendar_id} not found")
        self.calendar_id = calendar_id


class GoogleCalendarClient:
    """Wrapper around Google Calendar API."""

    def __init__(self, access_token: str):
        """Initialize with a bearer access token."""
        self.credentials = Credentials(token=access_token)
        self.service = build("calendar", "v3", credentials=self.credentials, cache_discovery=False)

    def insert_calendar(self, summary: str, description: str, time_zone: str) -> dict:
        """Create a secondary calendar owned by the account."""
        return self.service.calendars().insert(
            body={
                "summary": summary,
                "description": description,
                "timeZone": time_zone,
            }
        ).execute()

    def delete_calendar(self, calendar_id: str) -> bool:
        """Delete a secondary calendar."""
        try:
            self.service.calendars().delete(calendarId=calendar_id).execute()
            return True
        except HttpError as e:
            if e.resp.status in (404, 410):
                # Already gone
                return True
            raise

    def list_calendars(self) -> list[dict]:
        """List all calendars on the account's calendar list."""
        calendars = []
        page_token = None

        while True:
            params = {}
            if page_token:
                params["pageToken"] = page_token

            result = self.service.calendarList().list(**params).execute()
            calendars.extend(result.get("items", []))

            page_token = result.get("nextPageToken")
            if not page_token:
                break

        return calendars

    def create_event(self, calendar_id: str, event_data: dict) -> dict:
        """
        Create an event on a calendar.

        Raises CalendarNotFoundError when the calendar itself is missing.
        """
        try:
            return self.service.events().insert(
                calendarId=calendar_id,
                body=event_data,
                sendUpdates="none",
            ).execute()
        except HttpError as e:
            if e.resp.status == 404:
                raise CalendarNotFoundError(calendar_id) from e
            raise

    def delete_event(self, calendar_id: str, event_id: str) -> bool:
        """Delete an event."""
        try:
            self.service.events().delete(
                calendarId=calendar_id,
                eventId=event_id,
                sendUpdates="none",
            ).execute()
            return True
        except HttpError as e:
            if e.resp.status in (404, 410):
                # Already deleted
                return True
            raise


def event_title(subscription_name: str, kind: EventKind) -> str:
    if kind is EventKind.RENEWAL:
        return f"Subscription Renewal: {subscription_name}"
    return f"Trial Ends: {subscription_name}"


def event_description(
    subscription_name: str,
    kind: EventKind,
    metadata: Optional[EventMetadata] = None,
) -> str:
    """Describe the renewal or trial end, plus any known details."""
    if kind is EventKind.RENEWAL:
        parts = [f"Your {subscription_name} subscription will renew automatically."]
    else:
        parts = [f"Your {subscription_name} trial will end."]

    if metadata:
        if metadata.amount:
            parts.append(f"Amount: {metadata.currency or 'USD'} {metadata.amount:.2f}")
        if metadata.source:
            parts.append(f"Source: {metadata.source}")
        if metadata.cancel_url:
            parts.append(f"Cancel: {metadata.cancel_url}")

    return "\n\n".join(parts)


def create_subscription_event_body(
    subscription_name: str,
    event_date: str,
    kind: EventKind,
    metadata: Optional[EventMetadata] = None,
) -> dict:
    """
    Build an all-day event for a subscription date.

    Reminders are disabled: the product sends its own notifications.
    """
    time_zone = get_calendar_timezone()

    return {
        "summary": event_title(subscription_name, kind),
        "description": event_description(subscription_name, kind, metadata),
        "start": {"date": event_date, "timeZone": time_zone},
        "end": {"date": event_date, "timeZone": time_zone},
        "reminders": {
            "useDefault": False,
            "overrides": [],
        },
    }
