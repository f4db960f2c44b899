"""Lookups and session-version changes on the user identity table."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from herit_auth.core.security import hash_password
from herit_auth.db.session import translate_db_errors
from herit_auth.models.user import User

logger = logging.getLogger(__name__)


def parse_user_id(value: str | UUID) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def find_user_by_email(db: Session, email: str) -> User | None:
    with translate_db_errors(db, "find_user_by_email"):
        return db.query(User).filter(User.email == email.strip().lower()).first()


def create_user(db: Session, email: str, password: str | None) -> User:
    user = User(
        email=email.strip().lower(),
        password_hash=hash_password(password) if password else None,
        session_version=1,
    )
    with translate_db_errors(db, "create_user"):
        db.add(user)
        db.commit()
        db.refresh(user)
    logger.info("User created: %s", user.id)
    return user


def bump_session_version(db: Session, user_id: UUID) -> int | None:
    with translate_db_errors(db, "bump_session_version"):
        result = db.execute(
            update(User)
            .where(User.id == user_id)
            .values(session_version=User.session_version + 1)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if result.rowcount != 1:
            logger.warning("Session version bump failed (not found): %s", user_id)
            return None
        user = db.get(User, user_id)
        db.refresh(user)
    logger.info("Session version bumped: %s -> %s", user_id, user.session_version)
    return user.session_version


class UserDirectory:
    """Read access to user identity for the token services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: str | UUID) -> User | None:
        parsed = parse_user_id(user_id)
        if parsed is None:
            return None
        with translate_db_errors(self.db, "get_user"):
            return self.db.get(User, parsed)

