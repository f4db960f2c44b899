"""Signing and verification of access and refresh JWTs."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from herit_auth.core.config import Settings, settings as default_settings
from herit_auth.core.exceptions import ExpiredTokenError, InvalidTokenError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

_ACCESS_CLAIMS = frozenset({"sub", "email", "sv", "type", "iat", "exp"})
_REFRESH_CLAIMS = frozenset({"sub", "fam", "jti", "type", "iat", "exp"})


@dataclass(frozen=True)
class AccessClaims:
    sub: str
    email: str
    session_version: int
    iat: int
    exp: int


@dataclass(frozen=True)
class RefreshClaims:
    sub: str
    family_id: str
    jti: str
    iat: int
    exp: int

    @property
    def expires_at(self) -> dt.datetime:
        return dt.datetime.fromtimestamp(self.exp, tz=dt.timezone.utc)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _check_shape(payload: dict[str, Any], *, expected: frozenset[str], token_type: str) -> None:
    if set(payload) != expected:
        raise InvalidTokenError()
    if payload.get("type") != token_type:
        raise InvalidTokenError()
    if not (_is_int(payload["iat"]) and _is_int(payload["exp"])):
        raise InvalidTokenError()
    if not _is_text(payload["sub"]):
        raise InvalidTokenError()


class TokenCodec:
    """Pure JWT transform for both token kinds.

    Access and refresh tokens are signed with different secrets, so a leaked
    access secret cannot be used to forge refresh tokens. Verification splits
    failures into :class:`ExpiredTokenError` (authentic but past ``exp``) and
    :class:`InvalidTokenError` (everything else).
    """

    def __init__(
        self,
        *,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl: dt.timedelta = dt.timedelta(hours=24),
        refresh_ttl: dt.timedelta = dt.timedelta(days=30),
        leeway_seconds: int = 30,
    ) -> None:
        if not access_secret or not refresh_secret:
            raise ValueError("token secrets must not be empty")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.leeway_seconds = leeway_seconds

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "TokenCodec":
        config = config or default_settings
        return cls(
            access_secret=config.SESSION_SECRET,
            refresh_secret=config.refresh_secret,
            algorithm=config.JWT_ALGORITHM,
            access_ttl=dt.timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=dt.timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS),
            leeway_seconds=config.TOKEN_CLOCK_SKEW_SECONDS,
        )

    def _encode(self, data: dict[str, Any], *, secret: str, expires_delta: dt.timedelta) -> str:
        now = dt.datetime.now(dt.timezone.utc)
        to_encode = dict(data)
        to_encode.update({"iat": int(now.timestamp()), "exp": int((now + expires_delta).timestamp())})
        return jwt.encode(to_encode, secret, algorithm=self.algorithm)

    def _decode(self, token: str, *, secret: str, verify_exp: bool) -> dict[str, Any]:
        if not isinstance(token, str) or token.count(".") != 2:
            raise InvalidTokenError()
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"verify_exp": verify_exp, "leeway": self.leeway_seconds},
            )
        except ExpiredSignatureError as exc:
            raise ExpiredTokenError() from exc
        except (JWTError, ValueError) as exc:
            raise InvalidTokenError() from exc

    def sign_access_token(
        self,
        *,
        sub: str,
        email: str,
        session_version: int,
        expires_delta: dt.timedelta | None = None,
    ) -> str:
        return self._encode(
            {"sub": str(sub), "email": email, "sv": int(session_version), "type": ACCESS_TOKEN_TYPE},
            secret=self._access_secret,
            expires_delta=self.access_ttl if expires_delta is None else expires_delta,
        )

    def verify_access_token(self, token: str) -> AccessClaims:
        payload = self._decode(token, secret=self._access_secret, verify_exp=True)
        _check_shape(payload, expected=_ACCESS_CLAIMS, token_type=ACCESS_TOKEN_TYPE)
        if not _is_text(payload["email"]) or not _is_int(payload["sv"]):
            raise InvalidTokenError()
        return AccessClaims(
            sub=payload["sub"],
            email=payload["email"],
            session_version=payload["sv"],
            iat=payload["iat"],
            exp=payload["exp"],
        )

    def sign_refresh_token(
        self,
        *,
        sub: str,
        family_id: str,
        jti: str,
        expires_delta: dt.timedelta | None = None,
    ) -> str:
        return self._encode(
            {"sub": str(sub), "fam": str(family_id), "jti": str(jti), "type": REFRESH_TOKEN_TYPE},
            secret=self._refresh_secret,
            expires_delta=self.refresh_ttl if expires_delta is None else expires_delta,
        )

    def verify_refresh_token(self, token: str, *, verify_exp: bool = True) -> RefreshClaims:
        payload = self._decode(token, secret=self._refresh_secret, verify_exp=verify_exp)
        _check_shape(payload, expected=_REFRESH_CLAIMS, token_type=REFRESH_TOKEN_TYPE)
        if not _is_text(payload["fam"]) or not _is_text(payload["jti"]):
            raise InvalidTokenError()
        return RefreshClaims(
            sub=payload["sub"],
            family_id=payload["fam"],
            jti=payload["jti"],
            iat=payload["iat"],
            exp=payload["exp"],
        )
