"""Tests for the Google Calendar wrapper and event construction."""

from types import SimpleNamespace

import httplib2
import pytest
from googleapiclient.errors import HttpError

from sentinel.models import EventKind, EventMetadata
from sentinel.sync.google_calendar import (
    CalendarNotFoundError,
    GoogleCalendarClient,
    create_subscription_event_body,
    event_description,
    event_title,
)


def _http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": status}), b"error")


def _failing_client(status: int) -> GoogleCalendarClient:
    """Client whose every request fails with the given HTTP status."""

    def _raise(**_kwargs):
        def _execute():
            raise _http_error(status)

        return SimpleNamespace(execute=_execute)

    api = SimpleNamespace(insert=_raise, delete=_raise)
    client = object.__new__(GoogleCalendarClient)
    client.service = SimpleNamespace(events=lambda: api, calendars=lambda: api)
    return client


def test_event_titles():
    assert event_title("Netflix", EventKind.RENEWAL) == "Subscription Renewal: Netflix"
    assert event_title("Netflix", EventKind.TRIAL_END) == "Trial Ends: Netflix"


def test_description_without_metadata():
    assert event_description("Netflix", EventKind.RENEWAL) == (
        "Your Netflix subscription will renew automatically."
    )
    assert event_description("Netflix", EventKind.TRIAL_END) == "Your Netflix trial will end."


def test_description_with_full_metadata():
    metadata = EventMetadata(
        amount=15.5,
        currency="EUR",
        source="Your receipt from Netflix",
        cancel_url="https://netflix.com/cancel",
    )

    description = event_description("Netflix", EventKind.RENEWAL, metadata)

    assert description == (
        "Your Netflix subscription will renew automatically.\n\n"
        "Amount: EUR 15.50\n\n"
        "Source: Your receipt from Netflix\n\n"
        "Cancel: https://netflix.com/cancel"
    )


def test_description_defaults_currency_and_skips_missing_lines():
    description = event_description("Spotify", EventKind.TRIAL_END, EventMetadata(amount=9.99))

    assert "Amount: USD 9.99" in description
    assert "Source:" not in description
    assert "Cancel:" not in description


def test_description_omits_zero_amount():
    description = event_description("Spotify", EventKind.RENEWAL, EventMetadata(amount=0, currency="USD"))
    assert "Amount" not in description


def test_event_body_is_all_day_without_reminders():
    body = create_subscription_event_body("Netflix", "2025-06-01", EventKind.RENEWAL)

    assert body["summary"] == "Subscription Renewal: Netflix"
    assert body["start"] == {"date": "2025-06-01", "timeZone": "America/New_York"}
    assert body["end"] == {"date": "2025-06-01", "timeZone": "America/New_York"}
    assert body["reminders"] == {"useDefault": False, "overrides": []}
    assert "dateTime" not in body["start"]


def test_list_calendars_follows_pages(fake_google):
    fake_google.calendar_page_size = 2
    ids = [fake_google.add_calendar(f"Calendar {i}") for i in range(5)]

    client = GoogleCalendarClient("tok")

    assert [cal["id"] for cal in client.list_calendars()] == ids


def test_insert_and_delete_calendar(fake_google):
    client = GoogleCalendarClient("tok")

    created = client.insert_calendar("Sentinel Subscriptions - 2025", "desc", "UTC")
    assert created["id"] in fake_google.calendars_by_id

    assert client.delete_calendar(created["id"]) is True
    assert fake_google.deleted_calendars == [created["id"]]


def test_create_event_on_missing_calendar_raises_not_found():
    client = _failing_client(404)

    with pytest.raises(CalendarNotFoundError) as exc_info:
        client.create_event("gone-cal", {"summary": "x"})
    assert exc_info.value.calendar_id == "gone-cal"


def test_create_event_other_errors_propagate():
    client = _failing_client(500)

    with pytest.raises(HttpError):
        client.create_event("cal", {"summary": "x"})


@pytest.mark.parametrize("status", [404, 410])
def test_deletes_treat_missing_as_deleted(status):
    client = _failing_client(status)

    assert client.delete_event("cal", "evt") is True
    assert client.delete_calendar("cal") is True


def test_deletes_propagate_server_errors():
    client = _failing_client(500)

    with pytest.raises(HttpError):
        client.delete_event("cal", "evt")
    with pytest.raises(HttpError):
        client.delete_calendar("cal")
