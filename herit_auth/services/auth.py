"""Login, logout and sign-out-everywhere boundaries of the session layer."""

from __future__ import annotations

import logging
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from herit_auth.core.config import settings
from herit_auth.core.exceptions import ExpiredTokenError, InvalidTokenError
from herit_auth.core.security import (
    burn_password_check,
    hash_password,
    hash_refresh_token,
    password_needs_rehash,
    verify_password,
)
from herit_auth.core.tokens import TokenCodec
from herit_auth.db.session import translate_db_errors
from herit_auth.models.enums import AuthEventKind
from herit_auth.models.user import User
from herit_auth.services.audit import AuditSink, AuthEvent, LoggingAuditSink, emit_all
from herit_auth.services.context import AuthTokens
from herit_auth.services.session_store import SessionStore
from herit_auth.services.users import bump_session_version, find_user_by_email

logger = logging.getLogger(__name__)


def _codec(codec: TokenCodec | None) -> TokenCodec:
    return codec or TokenCodec.from_settings(settings)


def _store(db: Session) -> SessionStore:
    return SessionStore(db, leeway_seconds=settings.TOKEN_CLOCK_SKEW_SECONDS)


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    user = find_user_by_email(db, email)
    if not user or not user.password_hash:
        burn_password_check()
        logger.warning("Login failed: unknown user or no password set")
        return None
    if not verify_password(password, user.password_hash):
        logger.warning("Login failed: invalid password for user=%s", user.id)
        return None
    if password_needs_rehash(user.password_hash):
        with translate_db_errors(db, "rehash_password"):
            user.password_hash = hash_password(password)
            db.add(user)
            db.commit()
        logger.info("Password hash upgraded for user=%s", user.id)
    logger.info("User authenticated: %s", user.id)
    return user


def begin_session(db: Session, user: User, *, codec: TokenCodec | None = None) -> AuthTokens:
    """Start a new refresh family for ``user`` and mint its first token pair."""
    codec = _codec(codec)
    family_id = str(uuid4())
    refresh_token = codec.sign_refresh_token(sub=str(user.id), family_id=family_id, jti=str(uuid4()))
    claims = codec.verify_refresh_token(refresh_token)
    _store(db).create_record(
        user_id=user.id,
        family_id=family_id,
        token_hash=hash_refresh_token(refresh_token),
        expires_at=claims.expires_at,
    )
    access_token = codec.sign_access_token(
        sub=str(user.id),
        email=user.email,
        session_version=user.session_version,
    )
    logger.info("Session started: user=%s family=%s", user.id, family_id)
    return AuthTokens(access_token=access_token, refresh_token=refresh_token, family_id=family_id)


def logout(db: Session, refresh_token: str | None, *, codec: TokenCodec | None = None) -> bool:
    """Retire the record behind ``refresh_token`` on this device.

    Returns ``True`` only when an active record was deactivated. Logging out
    an already retired session is a no-op.
    """
    if not refresh_token:
        return False
    try:
        _codec(codec).verify_refresh_token(refresh_token, verify_exp=False)
    except (InvalidTokenError, ExpiredTokenError):
        return False

    store = _store(db)
    record = store.find_any_by_hash(hash_refresh_token(refresh_token))
    if record is None or not record.is_active:
        return False
    deactivated = store.deactivate_record(record.id)
    if deactivated:
        logger.info("Session ended: family=%s", record.family_id)
    return deactivated


def logout_everywhere(db: Session, user_id: UUID, *, audit: AuditSink | None = None) -> int:
    revoked = _store(db).revoke_all_for_user(user_id)
    emit_all(
        audit or LoggingAuditSink(),
        [AuthEvent(kind=AuthEventKind.all_sessions_revoked, user_id=user_id, affected=revoked)],
    )
    return revoked


def sign_out_everywhere(db: Session, user_id: UUID, *, audit: AuditSink | None = None) -> int | None:
    """Invalidate every access token and refresh record of ``user_id``.

    Returns the new session version, or ``None`` if the user does not exist.
    """
    audit = audit or LoggingAuditSink()
    new_version = bump_session_version(db, user_id)
    if new_version is None:
        return None
    emit_all(audit, [AuthEvent(kind=AuthEventKind.session_version_bumped, user_id=user_id)])
    logout_everywhere(db, user_id, audit=audit)
    return new_version
