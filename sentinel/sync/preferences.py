"""Per-user calendar sync preferences."""

from datetime import datetime

from sentinel.database import get_database
from sentinel.models import CalendarPreferences


async def get_calendar_preferences(user_id: str) -> CalendarPreferences:
    """Get a user's preferences, falling back to defaults."""
    db = await get_database()
    cursor = await db.execute(
        "SELECT * FROM calendar_preferences WHERE user_id = ?", (user_id,)
    )
    row = await cursor.fetchone()
    if not row:
        return CalendarPreferences()

    return CalendarPreferences(
        auto_sync=bool(row["auto_sync"]),
        sync_renewals=bool(row["sync_renewals"]),
        sync_trials=bool(row["sync_trials"]),
        show_canceled=bool(row["show_canceled"]),
    )


async def save_calendar_preferences(user_id: str, preferences: CalendarPreferences) -> None:
    db = await get_database()
    await db.execute(
        """INSERT INTO calendar_preferences
           (user_id, auto_sync, sync_renewals, sync_trials, show_canceled, updated_at)
           VALUES (?, ?, ?, ?, ?, ?)
           ON CONFLICT(user_id) DO UPDATE SET
           auto_sync = excluded.auto_sync,
           sync_renewals = excluded.sync_renewals,
           sync_trials = excluded.sync_trials,
           show_canceled = excluded.show_canceled,
           updated_at = excluded.updated_at""",
        (
            user_id,
            preferences.auto_sync,
            preferences.sync_renewals,
            preferences.sync_trials,
            preferences.show_canceled,
            datetime.utcnow().isoformat(),
        )
    )
    await db.commit()
