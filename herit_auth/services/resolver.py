"""Per-request resolution of credential strings into an auth context."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from herit_auth.core.config import Settings, settings as default_settings
from herit_auth.core.exceptions import ExpiredTokenError, InvalidTokenError, TransientStoreError
from herit_auth.core.tokens import TokenCodec
from herit_auth.models.enums import AuthFailureReason, ContextSource
from herit_auth.services.audit import AuditSink, LoggingAuditSink, emit_all
from herit_auth.services.context import (
    AuthContext,
    Authenticated,
    ResolveResult,
    RotationSuccess,
    Unauthenticated,
)
from herit_auth.services.rotation import RotationEngine
from herit_auth.services.session_store import SessionStore
from herit_auth.services.users import UserDirectory

logger = logging.getLogger(__name__)


def _present(token: str | None) -> str | None:
    if token is None:
        return None
    cleaned = token.strip()
    return cleaned or None


class AuthContextResolver:
    """Turns the raw access/refresh strings of one request into a result.

    A valid access token whose session version matches the user's current one
    resolves without touching the refresh token table. Otherwise the refresh
    token, if any, is rotated; a successful rotation is returned as
    ``Authenticated(rotated=...)`` and the caller must send the new pair to the
    client. ``resolve`` may therefore write to the store and must be called
    at most once per incoming refresh token.
    """

    def __init__(
        self,
        codec: TokenCodec,
        users: UserDirectory,
        rotation: RotationEngine,
        *,
        audit: AuditSink | None = None,
    ) -> None:
        self.codec = codec
        self.users = users
        self.rotation = rotation
        self.audit = audit or LoggingAuditSink()

    def resolve(self, access_token: str | None, refresh_token: str | None) -> ResolveResult:
        access_token = _present(access_token)
        refresh_token = _present(refresh_token)
        if access_token is None and refresh_token is None:
            return Unauthenticated(AuthFailureReason.token_missing)

        access_failure: AuthFailureReason | None = None
        if access_token is not None:
            try:
                result = self._from_access_token(access_token)
            except TransientStoreError:
                return Unauthenticated(AuthFailureReason.transient_store_error)
            if isinstance(result, Authenticated):
                return result
            access_failure = result.reason

        if refresh_token is None:
            return Unauthenticated(access_failure or AuthFailureReason.token_missing)

        result = self.refresh(refresh_token)
        if isinstance(result, Unauthenticated):
            logger.info(
                "Unauthenticated: access=%s refresh=%s",
                access_failure.value if access_failure else "absent",
                result.reason.value,
            )
        return result

    def refresh(self, refresh_token: str | None) -> ResolveResult:
        """Rotate ``refresh_token`` unconditionally, forwarding any security events."""
        refresh_token = _present(refresh_token)
        if refresh_token is None:
            return Unauthenticated(AuthFailureReason.token_missing)
        outcome = self.rotation.rotate(refresh_token)
        if isinstance(outcome, RotationSuccess):
            return Authenticated(context=outcome.context, rotated=outcome.tokens)
        emit_all(self.audit, outcome.events)
        return Unauthenticated(outcome.reason)

    def _from_access_token(self, token: str) -> ResolveResult:
        try:
            claims = self.codec.verify_access_token(token)
        except ExpiredTokenError:
            return Unauthenticated(AuthFailureReason.expired_access_token)
        except InvalidTokenError:
            return Unauthenticated(AuthFailureReason.invalid_access_token)

        user = self.users.get(claims.sub)
        if user is None:
            return Unauthenticated(AuthFailureReason.user_not_found)
        if user.session_version != claims.session_version:
            logger.info("Access token rejected: stale session version for user=%s", user.id)
            return Unauthenticated(AuthFailureReason.session_version_mismatch)

        return Authenticated(
            context=AuthContext(
                user_id=user.id,
                email=user.email,
                session_version=user.session_version,
                source=ContextSource.access_token,
            )
        )


def build_resolver(
    db: Session,
    *,
    config: Settings | None = None,
    codec: TokenCodec | None = None,
    audit: AuditSink | None = None,
) -> AuthContextResolver:
    config = config or default_settings
    codec = codec or TokenCodec.from_settings(config)
    users = UserDirectory(db)
    store = SessionStore(db, leeway_seconds=config.TOKEN_CLOCK_SKEW_SECONDS)
    return AuthContextResolver(codec, users, RotationEngine(store, codec, users), audit=audit)
