"""Database engine and session lifecycle helpers."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from herit_auth.core.config import settings
from herit_auth.core.exceptions import TransientStoreError

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    # Bound parameters carry token hashes and must stay out of error messages.
    return create_engine(url, pool_pre_ping=True, hide_parameters=True, connect_args=connect_args)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def translate_db_errors(db: Session, operation: str) -> Iterator[None]:
    """Roll back and re-raise driver failures as :class:`TransientStoreError`."""
    try:
        yield
    except IntegrityError:
        raise
    except (OperationalError, DBAPIError) as exc:
        db.rollback()
        logger.error("Session store operation failed: %s", operation, exc_info=True)
        raise TransientStoreError(operation=operation) from exc
