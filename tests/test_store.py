"""Tests for the expiring key/value stores."""

from datetime import datetime, timedelta

import pytest

from sentinel.database import get_database
from sentinel.store import DatabaseExpiringStore, InMemoryExpiringStore


@pytest.fixture(params=["memory", "database"])
def store(request, test_db):
    if request.param == "memory":
        return InMemoryExpiringStore()
    return DatabaseExpiringStore()


@pytest.mark.asyncio
async def test_set_and_get(store):
    await store.set("code:user-1", "123456", 60)
    assert await store.get("code:user-1") == "123456"
    assert await store.get("code:user-2") is None


@pytest.mark.asyncio
async def test_add_only_when_absent(store):
    assert await store.add("calendar-sync:user-1", "first", 60) is True
    assert await store.add("calendar-sync:user-1", "second", 60) is False
    assert await store.get("calendar-sync:user-1") == "first"

    await store.delete("calendar-sync:user-1")
    assert await store.add("calendar-sync:user-1", "third", 60) is True


@pytest.mark.asyncio
async def test_expired_entry_is_invisible_and_replaceable(store):
    await store.set("calendar-sync:user-1", "stale", -1)

    assert await store.get("calendar-sync:user-1") is None
    assert await store.add("calendar-sync:user-1", "fresh", 60) is True
    assert await store.get("calendar-sync:user-1") == "fresh"


@pytest.mark.asyncio
async def test_purge_expired(store):
    await store.set("old-1", "x", -1)
    await store.set("old-2", "x", -1)
    await store.set("live", "x", 60)

    assert await store.purge_expired() == 2
    assert await store.get("live") == "x"


@pytest.mark.asyncio
async def test_database_store_is_shared_across_instances(test_db):
    assert await DatabaseExpiringStore().add("calendar-sync:user-1", "a", 60) is True
    assert await DatabaseExpiringStore().add("calendar-sync:user-1", "b", 60) is False

    db = await get_database()
    cursor = await db.execute("SELECT value, expires_at FROM expiring_keys WHERE key = ?", ("calendar-sync:user-1",))
    row = await cursor.fetchone()
    assert row["value"] == "a"
    assert datetime.fromisoformat(row["expires_at"]) > datetime.utcnow() + timedelta(seconds=30)
