"""Session handling using JWT tokens.

Identity is owned by an external provider; a session only carries the
provider's opaque user id, which is trusted once the signature verifies.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt
from pydantic import BaseModel

from sentinel.config import get_session_secret, get_settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
SESSION_COOKIE_NAME = "session"


class User(BaseModel):
    """Authenticated user for a request."""
    id: str
    email: Optional[str] = None


def create_session_token(user_id: str, email: Optional[str] = None) -> str:
    """Create a JWT session token."""
    settings = get_settings()
    expire = datetime.utcnow() + timedelta(days=settings.session_expire_days)
    data = {
        "sub": user_id,
        "email": email,
        "exp": expire,
    }
    return jwt.encode(data, get_session_secret(), algorithm=ALGORITHM)


def verify_session_token(token: str) -> Optional[User]:
    """Verify and decode a session token."""
    try:
        payload = jwt.decode(token, get_session_secret(), algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Invalid session token: {e}")
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None
    return User(id=user_id, email=payload.get("email"))


async def get_current_user(request: Request) -> User:
    """Get current user from session, raises 401 if not authenticated."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[len("Bearer "):]

    user = verify_session_token(token) if token else None
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
