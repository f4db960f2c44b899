"""Auth-related response schemas."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel

from herit_auth.models.enums import ContextSource
from herit_auth.services.context import AuthContext


class SessionOut(BaseModel):
    user_id: UUID
    email: str
    session_version: int
    source: ContextSource

    @classmethod
    def from_context(cls, context: AuthContext) -> "SessionOut":
        return cls(
            user_id=context.user_id,
            email=context.email,
            session_version=context.session_version,
            source=context.source,
        )


class SessionResponse(BaseModel):
    authenticated: bool
    session: SessionOut | None = None


class MessageResponse(BaseModel):
    message: str


class LogoutAllResponse(BaseModel):
    message: str
    revoked_sessions: int
