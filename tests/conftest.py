"""Pytest configuration and fixtures."""

import os
from itertools import count

import httplib2
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from googleapiclient.errors import HttpError

# Set test environment variables before imports
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["ENCRYPTION_KEY_FILE"] = "/tmp/sentinel-test-missing.key"
os.environ["PUBLIC_URL"] = "http://localhost:3000"
os.environ["CALENDAR_TIMEZONE"] = "America/New_York"
os.environ["RATE_LIMIT_PER_MINUTE"] = "1000"


def http_error(status: int) -> HttpError:
    """Build a real googleapiclient HttpError with the given status."""
    return HttpError(httplib2.Response({"status": status}), b"error")


class _Request:
    """Mimics a googleapiclient request object."""

    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


class FakeGoogleService:
    """In-memory stand-in for the Calendar v3 discovery service."""

    def __init__(self):
        self._ids = count(1)
        self._event_ids = count(1)
        self.calendars_by_id: dict[str, dict] = {}
        self.events_by_id: dict[tuple[str, str], dict] = {}
        self.calendar_inserts: list[dict] = []
        self.event_inserts: list[tuple[str, dict]] = []
        self.deleted_calendars: list[str] = []
        self.deleted_events: list[tuple[str, str]] = []
        self.fail_event_summaries: set[str] = set()
        self.fail_calendar_deletes: set[str] = set()
        self.event_insert_without_id = False
        self.calendar_insert_without_id = False
        self.calendar_page_size = 100

    def add_calendar(self, summary: str) -> str:
        calendar_id = f"cal_{next(self._ids)}@group.calendar.google.com"
        self.calendars_by_id[calendar_id] = {"id": calendar_id, "summary": summary}
        return calendar_id

    # calendars()

    def _insert_calendar(self, body: dict) -> dict:
        self.calendar_inserts.append(body)
        if self.calendar_insert_without_id:
            return {}
        calendar_id = self.add_calendar(body["summary"])
        return dict(self.calendars_by_id[calendar_id], timeZone=body.get("timeZone"))

    def _delete_calendar(self, calendarId: str):
        if calendarId in self.fail_calendar_deletes:
            raise http_error(500)
        if calendarId not in self.calendars_by_id:
            raise http_error(404)
        del self.calendars_by_id[calendarId]
        self.deleted_calendars.append(calendarId)
        return ""

    def calendars(self):
        service = self

        class _Calendars:
            def insert(self, body):
                return _Request(lambda: service._insert_calendar(body))

            def delete(self, calendarId):
                return _Request(lambda: service._delete_calendar(calendarId))

        return _Calendars()

    # calendarList()

    def _list_calendars(self, pageToken=None) -> dict:
        items = list(self.calendars_by_id.values())
        start = int(pageToken or 0)
        end = start + self.calendar_page_size
        result = {"items": items[start:end]}
        if end < len(items):
            result["nextPageToken"] = str(end)
        return result

    def calendarList(self):
        service = self

        class _CalendarList:
            def list(self, **kwargs):
                return _Request(lambda: service._list_calendars(**kwargs))

        return _CalendarList()

    # events()

    def _insert_event(self, calendarId: str, body: dict) -> dict:
        self.event_inserts.append((calendarId, body))
        if calendarId not in self.calendars_by_id:
            raise http_error(404)
        if body["summary"] in self.fail_event_summaries:
            raise http_error(500)
        if self.event_insert_without_id:
            return {}
        event_id = f"evt_{next(self._event_ids)}"
        self.events_by_id[(calendarId, event_id)] = body
        return dict(body, id=event_id)

    def _delete_event(self, calendarId: str, eventId: str):
        if (calendarId, eventId) not in self.events_by_id:
            raise http_error(410)
        del self.events_by_id[(calendarId, eventId)]
        self.deleted_events.append((calendarId, eventId))
        return ""

    def events(self):
        service = self

        class _Events:
            def insert(self, calendarId, body, **_kwargs):
                return _Request(lambda: service._insert_event(calendarId, body))

            def delete(self, calendarId, eventId, **_kwargs):
                return _Request(lambda: service._delete_event(calendarId, eventId))

        return _Events()


@pytest.fixture(autouse=True)
def test_encryption_key():
    """Install a fresh encryption key for every test."""
    from sentinel.encryption import generate_encryption_key, init_encryption_manager

    key = generate_encryption_key()
    init_encryption_manager(key)
    yield key


@pytest_asyncio.fixture
async def test_db():
    """Create a test database."""
    import sentinel.database as db_module
    from sentinel.database import close_database, get_database

    # Reset the global connection
    db_module._db_connection = None

    db = await get_database()

    yield db

    await close_database()
    db_module._db_connection = None


@pytest.fixture
def fake_google(monkeypatch):
    """Replace the Calendar discovery service with an in-memory fake."""
    service = FakeGoogleService()
    monkeypatch.setattr(
        "sentinel.sync.google_calendar.build",
        lambda *_args, **_kwargs: service,
    )
    return service


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    from sentinel.main import app

    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


CALENDAR_SCOPE = "openid email https://www.googleapis.com/auth/calendar"


@pytest_asyncio.fixture
async def connected_user(test_db):
    """A user holding a fresh calendar-scoped credential."""
    from datetime import datetime, timedelta

    from sentinel.auth.google import store_oauth_credential

    await store_oauth_credential(
        "user-1", "tok", "refresh", CALENDAR_SCOPE,
        expires_at=datetime.utcnow() + timedelta(hours=1),
    )
    return "user-1"


@pytest.fixture
def add_subscription(test_db):
    """Insert a subscription row for a user."""

    async def _add(subscription_id: str, user_id: str = "user-1", **fields) -> str:
        from sentinel.database import get_database

        row = {"id": subscription_id, "user_id": user_id, "name": fields.pop("name", subscription_id)}
        row.update(fields)
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)

        db = await get_database()
        await db.execute(
            f"INSERT INTO subscriptions ({columns}) VALUES ({placeholders})",
            tuple(row.values())
        )
        await db.commit()
        return subscription_id

    return _add
