"""Application configuration management."""

import os
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


# Temporary session secret used when no encryption key exists yet (generated once per process)
_fallback_session_secret: Optional[str] = None


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_path: str = "/data/sentinel.db"

    # Encryption
    encryption_key_file: str = "/secrets/encryption.key"

    # Server
    public_url: str = "http://localhost:3000"
    log_level: str = "info"

    # Session
    session_secret_key: Optional[str] = None  # Derived from encryption key if not set
    session_expire_days: int = 7

    # Rate limiting
    rate_limit_per_minute: int = 10

    # Google Calendar
    product_name: str = "Sentinel"
    calendar_scope: str = "https://www.googleapis.com/auth/calendar"
    calendar_timezone: Optional[str] = None
    connection_expiry_buffer_minutes: int = 5

    # Bulk sync guard
    sync_guard_seconds: int = 600

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_calendar_timezone() -> str:
    """Timezone used for the dedicated calendar and its all-day events."""
    settings = get_settings()
    return settings.calendar_timezone or os.environ.get("TZ") or "UTC"


def calendar_name_prefix() -> str:
    """Naming convention shared by every dedicated calendar we create."""
    return f"{get_settings().product_name} Subscriptions"


def calendar_name_for_year(year: int) -> str:
    """Display name of the dedicated calendar created in a given year."""
    return f"{calendar_name_prefix()} - {year}"


def get_encryption_key() -> bytes:
    """Load encryption key from file."""
    settings = get_settings()
    key_file = settings.encryption_key_file

    if not os.path.exists(key_file):
        raise RuntimeError(f"Encryption key file not found at {key_file}")

    with open(key_file, "rb") as f:
        key = f.read()
        # Only strip trailing newlines; a general .strip() can corrupt binary keys
        while key and key[-1:] in (b'\n', b'\r'):
            key = key[:-1]

    if len(key) < 32:
        raise RuntimeError("Invalid encryption key: must be at least 32 bytes")

    return key


def get_session_secret() -> str:
    """Get session secret key, derived from encryption key if not set."""
    settings = get_settings()
    if settings.session_secret_key:
        return settings.session_secret_key

    try:
        key = get_encryption_key()
        import hashlib
        return hashlib.sha256(key + b"session_secret").hexdigest()
    except RuntimeError:
        global _fallback_session_secret
        if _fallback_session_secret is None:
            import secrets
            _fallback_session_secret = secrets.token_urlsafe(32)
        return _fallback_session_secret
