from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studyaid.core.errors import Conflict
from studyaid.core.security import hash_password, verify_password
from studyaid.models.user import User

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == int(user_id)).first()


def create_user(db: Session, *, username: str, email: str, password: str) -> User:
    email = email.strip().lower()
    username = username.strip()

    existing = db.query(User).filter(or_(User.email == email, User.username == username)).first()
    if existing:
        raise Conflict("User with this email or username already exists.")

    user = User(username=username, email=email, password_hash=hash_password(password), is_active=True)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent registration
        db.rollback()
        raise Conflict("User with this email or username already exists.") from exc
    db.refresh(user)
    logger.info("Registered user id=%s", user.id)
    return user


def authenticate(db: Session, *, email: str, password: str) -> Optional[User]:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not verify_password(password, user.password_hash):
        return None
    return user
