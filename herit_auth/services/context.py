"""Value types passed between the session services and their callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union
from uuid import UUID

from herit_auth.models.enums import AuthFailureReason, ContextSource
from herit_auth.services.audit import AuthEvent


@dataclass(frozen=True)
class AuthContext:
    user_id: UUID
    email: str
    session_version: int
    source: ContextSource
    family_id: str | None = None


@dataclass(frozen=True)
class AuthTokens:
    access_token: str
    refresh_token: str
    family_id: str


@dataclass(frozen=True)
class RotationSuccess:
    tokens: AuthTokens
    context: AuthContext


@dataclass(frozen=True)
class RotationFailure:
    reason: AuthFailureReason
    events: tuple[AuthEvent, ...] = field(default_factory=tuple)


RotationResult = Union[RotationSuccess, RotationFailure]


@dataclass(frozen=True)
class Authenticated:
    context: AuthContext
    # Set when the request was authenticated through rotation; the caller must persist it.
    rotated: AuthTokens | None = None

    @property
    def is_authenticated(self) -> bool:
        return True


@dataclass(frozen=True)
class Unauthenticated:
    reason: AuthFailureReason

    @property
    def is_authenticated(self) -> bool:
        return False


ResolveResult = Union[Authenticated, Unauthenticated]
