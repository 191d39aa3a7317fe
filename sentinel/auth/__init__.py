"""Authentication module."""

from sentinel.auth.session import (
    User,
    create_session_token,
    verify_session_token,
    get_current_user,
)

__all__ = [
    "User",
    "create_session_token",
    "verify_session_token",
    "get_current_user",
]
