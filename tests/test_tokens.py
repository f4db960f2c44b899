from __future__ import annotations

import base64
import datetime as dt
import json

import pytest
from jose import jwt

from herit_auth.core.exceptions import ExpiredTokenError, InvalidTokenError
from herit_auth.core.tokens import AccessClaims, RefreshClaims, TokenCodec

USER_ID = "4f1f5a8e-1b8a-4a53-9c4e-2d8f6f0f2a11"


def _tamper_payload(token: str, **changes) -> str:
    header, payload, signature = token.split(".")
    padded = payload + "=" * (-len(payload) % 4)
    data = json.loads(base64.urlsafe_b64decode(padded))
    data.update(changes)
    encoded = base64.urlsafe_b64encode(json.dumps(data).encode()).decode().rstrip("=")
    return ".".join([header, encoded, signature])


def test_access_token_round_trip(codec: TokenCodec) -> None:
    token = codec.sign_access_token(sub=USER_ID, email="alice@example.com", session_version=3)

    claims = codec.verify_access_token(token)

    assert isinstance(claims, AccessClaims)
    assert claims.sub == USER_ID
    assert claims.email == "alice@example.com"
    assert claims.session_version == 3
    assert claims.exp - claims.iat == 24 * 60 * 60


def test_refresh_token_round_trip(codec: TokenCodec) -> None:
    token = codec.sign_refresh_token(sub=USER_ID, family_id="fam-1", jti="jti-1")

    claims = codec.verify_refresh_token(token)

    assert isinstance(claims, RefreshClaims)
    assert (claims.sub, claims.family_id, claims.jti) == (USER_ID, "fam-1", "jti-1")
    assert claims.exp - claims.iat == 30 * 24 * 60 * 60
    assert claims.expires_at.tzinfo is not None


def test_expired_token_is_reported_as_expired_not_invalid(codec: TokenCodec) -> None:
    access = codec.sign_access_token(
        sub=USER_ID,
        email="alice@example.com",
        session_version=1,
        expires_delta=dt.timedelta(minutes=-5),
    )
    refresh = codec.sign_refresh_token(
        sub=USER_ID,
        family_id="fam-1",
        jti="jti-1",
        expires_delta=dt.timedelta(minutes=-5),
    )

    with pytest.raises(ExpiredTokenError):
        codec.verify_access_token(access)
    with pytest.raises(ExpiredTokenError):
        codec.verify_refresh_token(refresh)


def test_clock_skew_leeway_accepts_recently_expired_token(codec: TokenCodec) -> None:
    token = codec.sign_access_token(
        sub=USER_ID,
        email="alice@example.com",
        session_version=1,
        expires_delta=dt.timedelta(seconds=-10),
    )

    assert codec.verify_access_token(token).sub == USER_ID


def test_refresh_verification_can_skip_expiry(codec: TokenCodec) -> None:
    token = codec.sign_refresh_token(
        sub=USER_ID,
        family_id="fam-1",
        jti="jti-1",
        expires_delta=dt.timedelta(days=-1),
    )

    assert codec.verify_refresh_token(token, verify_exp=False).family_id == "fam-1"


def test_tampered_token_is_invalid(codec: TokenCodec) -> None:
    token = codec.sign_access_token(sub=USER_ID, email="alice@example.com", session_version=1)

    with pytest.raises(InvalidTokenError):
        codec.verify_access_token(_tamper_payload(token, sv=99))


def test_expired_token_with_bad_signature_is_invalid(codec: TokenCodec) -> None:
    token = codec.sign_access_token(
        sub=USER_ID,
        email="alice@example.com",
        session_version=1,
        expires_delta=dt.timedelta(minutes=-5),
    )

    with pytest.raises(InvalidTokenError):
        codec.verify_access_token(_tamper_payload(token, email="mallory@example.com"))


def test_access_and_refresh_secrets_are_not_interchangeable(codec: TokenCodec) -> None:
    refresh = codec.sign_refresh_token(sub=USER_ID, family_id="fam-1", jti="jti-1")
    access = codec.sign_access_token(sub=USER_ID, email="alice@example.com", session_version=1)

    with pytest.raises(InvalidTokenError):
        codec.verify_access_token(refresh)
    with pytest.raises(InvalidTokenError):
        codec.verify_refresh_token(access)


def test_token_signed_with_other_secret_is_invalid(codec: TokenCodec) -> None:
    other = TokenCodec(access_secret="other-access", refresh_secret="other-refresh")
    token = other.sign_access_token(sub=USER_ID, email="alice@example.com", session_version=1)

    with pytest.raises(InvalidTokenError):
        codec.verify_access_token(token)


@pytest.mark.parametrize("token", ["", "garbage", "a.b", "a.b.c", "\ud800.a.b", "..", None])
def test_malformed_tokens_are_invalid(codec: TokenCodec, token) -> None:
    with pytest.raises(InvalidTokenError):
        codec.verify_access_token(token)
    with pytest.raises(InvalidTokenError):
        codec.verify_refresh_token(token)


def _forge(claims: dict, secret: str = "test-session-secret") -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def _base_access_claims() -> dict:
    now = int(dt.datetime.now(dt.timezone.utc).timestamp())
    return {"sub": USER_ID, "email": "alice@example.com", "sv": 1, "type": "access", "iat": now, "exp": now + 600}


def test_unexpected_claim_is_rejected(codec: TokenCodec) -> None:
    claims = _base_access_claims()
    claims["role"] = "admin"

    with pytest.raises(InvalidTokenError):
        codec.verify_access_token(_forge(claims))


@pytest.mark.parametrize("missing", ["sub", "email", "sv", "type", "iat", "exp"])
def test_missing_claim_is_rejected(codec: TokenCodec, missing: str) -> None:
    claims = _base_access_claims()
    claims.pop(missing)

    with pytest.raises(InvalidTokenError):
        codec.verify_access_token(_forge(claims))


def test_wrong_claim_types_are_rejected(codec: TokenCodec) -> None:
    for field, value in (("sv", "1"), ("sv", True), ("type", "refresh"), ("email", "")):
        claims = _base_access_claims()
        claims[field] = value
        with pytest.raises(InvalidTokenError):
            codec.verify_access_token(_forge(claims))


def test_codec_requires_both_secrets() -> None:
    with pytest.raises(ValueError):
        TokenCodec(access_secret="", refresh_secret="x")
