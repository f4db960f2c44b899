"""Shared enum values used by the auth services and schemas."""

from __future__ import annotations

import enum


class AuthFailureReason(str, enum.Enum):
    token_missing = "token_missing"
    invalid_access_token = "invalid_access_token"
    expired_access_token = "expired_access_token"
    session_version_mismatch = "session_version_mismatch"
    invalid_refresh_token = "invalid_refresh_token"
    expired_refresh_token = "expired_refresh_token"
    unknown_refresh_token = "unknown_refresh_token"
    reuse_detected = "reuse_detected"
    user_not_found = "user_not_found"
    transient_store_error = "transient_store_error"


class AuthEventKind(str, enum.Enum):
    reuse_detected = "reuse_detected"
    family_revoked = "family_revoked"
    all_sessions_revoked = "all_sessions_revoked"
    session_version_bumped = "session_version_bumped"


class ContextSource(str, enum.Enum):
    access_token = "access_token"
    rotation = "rotation"
