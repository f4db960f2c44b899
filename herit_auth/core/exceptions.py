"""Custom exceptions for application-specific error handling."""

from __future__ import annotations

from typing import Optional, Dict, Any


class HeritAuthException(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ConflictError(HeritAuthException):
    """Raised when a request conflicts with current state."""

    def __init__(self, message: str = "conflict", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="CONFLICT", details=details, status_code=409)


class RateLimitExceeded(HeritAuthException):
    """Raised when a client exceeds rate limits."""

    def __init__(self, *, retry_after: int, limit: int, window_seconds: int):
        headers = {
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Window": str(window_seconds),
        }
        super().__init__(
            "rate_limit_exceeded",
            error_code="RATE_LIMIT",
            details={"retry_after": retry_after, "limit": limit, "window_seconds": window_seconds},
            status_code=429,
            headers=headers,
        )


# ===== CONFIGURATION EXCEPTIONS =====


class InvalidConfigurationError(HeritAuthException):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, setting: Optional[str] = None):
        details = {"setting": setting} if setting else {}
        super().__init__(message, error_code="INVALID_CONFIG", details=details, status_code=500)


# ===== TOKEN EXCEPTIONS =====


class TokenError(HeritAuthException):
    """Base exception for token verification failures."""


class InvalidTokenError(TokenError):
    """Raised when a token has a bad signature, wrong type or malformed claims."""

    def __init__(self, message: str = "invalid_token"):
        super().__init__(message, error_code="INVALID_TOKEN", status_code=401)


class ExpiredTokenError(TokenError):
    """Raised when a token is well formed and signed but past its expiry."""

    def __init__(self, message: str = "expired_token"):
        super().__init__(message, error_code="EXPIRED_TOKEN", status_code=401)


# ===== STORE EXCEPTIONS =====


class TransientStoreError(HeritAuthException):
    """Raised when the session store is unavailable or timed out."""

    def __init__(self, message: str = "session_store_unavailable", *, operation: Optional[str] = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message, error_code="STORE_UNAVAILABLE", details=details, status_code=503)


# ===== AUTHENTICATION EXCEPTIONS =====


class AuthenticationException(HeritAuthException):
    """Base exception for authentication errors surfaced over HTTP."""

    def __init__(self, message: str = "not_authenticated", *, error_code: str = "NOT_AUTHENTICATED", status_code: int = 401):
        super().__init__(message, error_code=error_code, status_code=status_code)


class ServiceUnavailableError(HeritAuthException):
    """Raised when authentication cannot be decided because a dependency is down."""

    def __init__(self, message: str = "service_unavailable"):
        super().__init__(message, error_code="SERVICE_UNAVAILABLE", status_code=503, headers={"Retry-After": "1"})
