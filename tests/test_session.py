"""Tests for session tokens and request authentication."""

from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException
from jose import jwt
from starlette.requests import Request

from sentinel.auth.session import (
    ALGORITHM,
    create_session_token,
    get_current_user,
    verify_session_token,
)
from sentinel.config import get_session_secret


def _request(headers: dict) -> Request:
    raw = [(name.lower().encode(), value.encode()) for name, value in headers.items()]
    return Request({"type": "http", "headers": raw})


def test_token_roundtrip():
    token = create_session_token("user-1", "alice@example.com")

    user = verify_session_token(token)
    assert user.id == "user-1"
    assert user.email == "alice@example.com"


def test_tampered_token_rejected():
    token = create_session_token("user-1")
    assert verify_session_token(token + "x") is None


def test_expired_token_rejected():
    token = jwt.encode(
        {"sub": "user-1", "exp": datetime.utcnow() - timedelta(minutes=1)},
        get_session_secret(),
        algorithm=ALGORITHM,
    )
    assert verify_session_token(token) is None


def test_token_without_subject_rejected():
    token = jwt.encode(
        {"exp": datetime.utcnow() + timedelta(minutes=5)},
        get_session_secret(),
        algorithm=ALGORITHM,
    )
    assert verify_session_token(token) is None


@pytest.mark.asyncio
async def test_current_user_from_cookie():
    token = create_session_token("user-1")
    user = await get_current_user(_request({"Cookie": f"session={token}"}))
    assert user.id == "user-1"


@pytest.mark.asyncio
async def test_current_user_from_bearer_header():
    token = create_session_token("user-2")
    user = await get_current_user(_request({"Authorization": f"Bearer {token}"}))
    assert user.id == "user-2"


@pytest.mark.asyncio
async def test_missing_session_is_unauthorized():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(_request({}))
    assert exc_info.value.status_code == 401
