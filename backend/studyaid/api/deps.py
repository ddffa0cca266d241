"""Common FastAPI dependencies.

Every protected route takes ``require_user``: the caller sends
``Authorization: Bearer <jwt>`` obtained from /auth/login or /auth/register.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from studyaid.core.security import user_id_from_token
from studyaid.db.session import get_db
from studyaid.models.user import User
from studyaid.services.llm_service import LLMClient
from studyaid.services.text_cache import TextCache, build_text_cache
from studyaid.services.user_service import get_user

logger = logging.getLogger(__name__)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_user(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> User:
    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Not authorized, no token provided.")

    user_id = user_id_from_token(token)
    user = get_user(db, user_id) if user_id is not None else None
    if user_id is not None and (not user or not user.is_active):
        logger.info("Token for unknown or inactive user %s", user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Not authorized, token failed.")
    return user


def get_text_cache(request: Request) -> TextCache:
    cache = getattr(request.app.state, "text_cache", None)
    if cache is None:
        cache = build_text_cache()
        request.app.state.text_cache = cache
    return cache


def get_llm_client(request: Request) -> LLMClient:
    client = getattr(request.app.state, "llm_client", None)
    if client is None:
        client = LLMClient()
        request.app.state.llm_client = client
    return client
