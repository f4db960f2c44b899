"""Refresh token rotation with reuse detection."""

from __future__ import annotations

import logging
from uuid import uuid4

from herit_auth.core.exceptions import ExpiredTokenError, InvalidTokenError, TransientStoreError
from herit_auth.core.security import hash_refresh_token
from herit_auth.core.tokens import TokenCodec
from herit_auth.models.enums import AuthEventKind, AuthFailureReason, ContextSource
from herit_auth.models.refresh_token import RefreshToken
from herit_auth.services.audit import AuthEvent
from herit_auth.services.context import (
    AuthContext,
    AuthTokens,
    RotationFailure,
    RotationResult,
    RotationSuccess,
)
from herit_auth.services.session_store import SessionStore
from herit_auth.services.users import UserDirectory

logger = logging.getLogger(__name__)


class RotationEngine:
    """Exchanges a refresh token for a new access/refresh pair.

    The presented token is verified, looked up by its keyed hash and, if it is
    the live record of its family, retired and replaced in one transaction.
    A hash that matches a retired record means the token was replayed: the
    whole family is revoked and ``reuse_detected`` is returned along with the
    events the caller should forward to its audit sink. The same happens to
    the loser of two concurrent rotations of one record.
    """

    def __init__(
        self,
        store: SessionStore,
        codec: TokenCodec,
        users: UserDirectory,
        *,
        token_hasher=hash_refresh_token,
    ) -> None:
        self.store = store
        self.codec = codec
        self.users = users
        self._hash = token_hasher

    def rotate(self, refresh_token: str) -> RotationResult:
        try:
            return self._rotate(refresh_token)
        except TransientStoreError:
            return RotationFailure(AuthFailureReason.transient_store_error)

    def _rotate(self, refresh_token: str) -> RotationResult:
        try:
            claims = self.codec.verify_refresh_token(refresh_token)
        except ExpiredTokenError:
            return RotationFailure(AuthFailureReason.expired_refresh_token)
        except InvalidTokenError:
            return RotationFailure(AuthFailureReason.invalid_refresh_token)

        record = self.store.find_any_by_hash(self._hash(refresh_token))
        if record is None:
            logger.info("Refresh rejected: unknown token for user=%s", claims.sub)
            return RotationFailure(AuthFailureReason.unknown_refresh_token)
        if str(record.user_id) != claims.sub or record.family_id != claims.family_id:
            logger.warning("Refresh rejected: record does not match claims for user=%s", claims.sub)
            return RotationFailure(AuthFailureReason.invalid_refresh_token)
        if not record.is_active:
            return self._reuse_detected(record)
        if self.store.is_expired(record):
            logger.info("Refresh rejected: record expired family=%s", record.family_id)
            return RotationFailure(AuthFailureReason.expired_refresh_token)

        user = self.users.get(record.user_id)
        if user is None:
            return RotationFailure(AuthFailureReason.user_not_found)

        # Signed first: the new record is keyed by this token's hash.
        new_refresh_token = self.codec.sign_refresh_token(
            sub=str(user.id),
            family_id=record.family_id,
            jti=str(uuid4()),
        )
        new_claims = self.codec.verify_refresh_token(new_refresh_token)
        new_record_id = self.store.rotate_record(
            record,
            new_token_hash=self._hash(new_refresh_token),
            expires_at=new_claims.expires_at,
        )
        if new_record_id is None:
            logger.warning("Refresh rotation raced on family=%s", record.family_id)
            return self._reuse_detected(record)

        access_token = self.codec.sign_access_token(
            sub=str(user.id),
            email=user.email,
            session_version=user.session_version,
        )
        context = AuthContext(
            user_id=user.id,
            email=user.email,
            session_version=user.session_version,
            source=ContextSource.rotation,
            family_id=record.family_id,
        )
        logger.debug("Refresh rotated: family=%s record=%s", record.family_id, new_record_id)
        return RotationSuccess(
            tokens=AuthTokens(
                access_token=access_token,
                refresh_token=new_refresh_token,
                family_id=record.family_id,
            ),
            context=context,
        )

    def _reuse_detected(self, record: RefreshToken) -> RotationFailure:
        user_id = record.user_id
        family_id = record.family_id
        revoked = self.store.revoke_family(family_id)
        logger.warning("Refresh token reuse detected: user=%s family=%s", user_id, family_id)
        return RotationFailure(
            AuthFailureReason.reuse_detected,
            events=(
                AuthEvent(kind=AuthEventKind.reuse_detected, user_id=user_id, family_id=family_id),
                AuthEvent(
                    kind=AuthEventKind.family_revoked,
                    user_id=user_id,
                    family_id=family_id,
                    affected=revoked,
                ),
            ),
        )
