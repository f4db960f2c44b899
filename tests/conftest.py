from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{Path(tempfile.gettempdir()) / 'herit_auth_import.db'}")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from herit_auth.core.tokens import TokenCodec  # noqa: E402
from herit_auth.db.base import Base  # noqa: E402
from herit_auth.db.session import build_engine  # noqa: E402
from herit_auth.models.user import User  # noqa: E402
from herit_auth.services.audit import AuthEvent  # noqa: E402
from herit_auth import models  # noqa: E402,F401


class RecordingAuditSink:
    def __init__(self) -> None:
        self.events: list[AuthEvent] = []

    def emit(self, event: AuthEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [event.kind.value for event in self.events]


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'auth.db'}")
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(
        access_secret="test-session-secret",
        refresh_secret="test-refresh-secret",
        leeway_seconds=30,
    )


@pytest.fixture
def audit() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def make_user(db):
    def _make(email: str = "alice@example.com", *, password_hash: str | None = None) -> User:
        user = User(email=email, password_hash=password_hash, session_version=1)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def user(make_user) -> User:
    return make_user()
