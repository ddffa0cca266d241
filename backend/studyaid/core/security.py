"""Password hashing and the bearer tokens handed out by /auth/login and /auth/register.

A token's ``sub`` is the numeric user id; ``username`` and ``email`` ride along
for the web client's convenience and are never trusted server side.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from studyaid.core.config import settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        # Stored hash is not a bcrypt hash
        return False


def issue_access_token(user_id: int, *, username: str = "", email: str = "", expires_minutes: Optional[int] = None) -> str:
    lifetime = timedelta(minutes=int(settings.ACCESS_TOKEN_EXPIRE_MINUTES if expires_minutes is None else expires_minutes))
    issued = datetime.now(timezone.utc)

    claims: Dict[str, Any] = {
        "sub": str(int(user_id)),
        "username": username,
        "email": email,
        "iat": int(issued.timestamp()),
        "exp": int((issued + lifetime).timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def read_access_token(token: str) -> Dict[str, Any]:
    """Verified claims of ``token``. Raises ``JWTError`` on a bad signature or expiry."""
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


def user_id_from_token(token: str) -> Optional[int]:
    """The user a bearer token was issued to, or None when it cannot be trusted."""
    try:
        claims = read_access_token(token)
    except JWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        return None

    sub = str(claims.get("sub") or "")
    return int(sub) if sub.isdigit() else None
