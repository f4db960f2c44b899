"""Credential hashing for passwords and refresh tokens."""

from __future__ import annotations

import hashlib
import hmac
from functools import lru_cache

from passlib.context import CryptContext

from herit_auth.core.config import settings

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__memory_cost=settings.ARGON2_MEMORY_COST,
    argon2__rounds=settings.ARGON2_TIME_COST,
    argon2__parallelism=settings.ARGON2_PARALLELISM,
)

_DUMMY_PASSWORD = "herit-auth-timing-equalizer"


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return pwd_context.hash(_DUMMY_PASSWORD)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str | None) -> bool:
    """Check ``password`` against a stored argon2 hash.

    A missing or corrupt hash costs one full verification against a dummy hash
    and returns ``False``, so callers cannot tell it apart from a wrong password.
    """
    if not hashed or not isinstance(password, str):
        burn_password_check()
        return False
    try:
        return pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        burn_password_check()
        return False


def burn_password_check() -> None:
    pwd_context.verify(_DUMMY_PASSWORD, _dummy_hash())


def password_needs_rehash(hashed: str) -> bool:
    try:
        return pwd_context.needs_update(hashed)
    except (ValueError, TypeError):
        return True


def hash_refresh_token(token: str, *, key: str | None = None) -> str:
    secret = (key or settings.refresh_token_pepper).encode("utf-8")
    return hmac.new(secret, token.encode("utf-8"), hashlib.sha256).hexdigest()
