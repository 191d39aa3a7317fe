"""Short-lived keyed state with expiry."""

import asyncio
from datetime import datetime, timedelta
from typing import Optional, Protocol

from sentinel.database import get_database


class ExpiringStore(Protocol):
    """Key/value store whose entries expire after a TTL."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def add(self, key: str, value: str, ttl_seconds: int) -> bool: ...

    async def delete(self, key: str) -> None: ...

    async def purge_expired(self) -> int: ...


class InMemoryExpiringStore:
    """Process-local backend, for tests and single-instance deployments."""

    def __init__(self):
        self._entries: dict[str, tuple[str, datetime]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if not entry:
            return None
        value, expires_at = entry
        if expires_at <= datetime.utcnow():
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, datetime.utcnow() + timedelta(seconds=ttl_seconds))

    async def add(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Set the key only if it is absent or expired."""
        async with self._lock:
            if await self.get(key) is not None:
                return False
            await self.set(key, value, ttl_seconds)
            return True

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def purge_expired(self) -> int:
        now = datetime.utcnow()
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)


class DatabaseExpiringStore:
    """Backend on the expiring_keys table, shared by every process on the database."""

    async def get(self, key: str) -> Optional[str]:
        db = await get_database()
        cursor = await db.execute(
            "SELECT value FROM expiring_keys WHERE key = ? AND expires_at > ?",
            (key, datetime.utcnow().isoformat())
        )
        row = await cursor.fetchone()
        return row["value"] if row else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        db = await get_database()
        expires_at = (datetime.utcnow() + timedelta(seconds=ttl_seconds)).isoformat()
        await db.execute(
            """INSERT INTO expiring_keys (key, value, expires_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET
               value = excluded.value, expires_at = excluded.expires_at""",
            (key, value, expires_at)
        )
        await db.commit()

    async def add(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Set the key only if it is absent or expired."""
        db = await get_database()
        now = datetime.utcnow()
        expires_at = (now + timedelta(seconds=ttl_seconds)).isoformat()
        cursor = await db.execute(
            """INSERT INTO expiring_keys (key, value, expires_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET
               value = excluded.value, expires_at = excluded.expires_at
               WHERE expiring_keys.expires_at <= ?""",
            (key, value, expires_at, now.isoformat())
        )
        await db.commit()
        return cursor.rowcount > 0

    async def delete(self, key: str) -> None:
        db = await get_database()
        await db.execute("DELETE FROM expiring_keys WHERE key = ?", (key,))
        await db.commit()

    async def purge_expired(self) -> int:
        db = await get_database()
        cursor = await db.execute(
            "DELETE FROM expiring_keys WHERE expires_at <= ?",
            (datetime.utcnow().isoformat(),)
        )
        await db.commit()
        return cursor.rowcount


_store: Optional[ExpiringStore] = None


def get_expiring_store() -> ExpiringStore:
    """FastAPI dependency returning the configured store."""
    global _store
    if _store is None:
        _store = DatabaseExpiringStore()
    return _store
