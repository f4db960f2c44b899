"""FastAPI dependencies that bridge requests to the session services."""

from __future__ import annotations

import logging

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from herit_auth.core.config import settings
from herit_auth.core.exceptions import AuthenticationException, ServiceUnavailableError
from herit_auth.core.sanitize import clean_token
from herit_auth.core.tokens import TokenCodec
from herit_auth.db.session import get_db
from herit_auth.models.enums import AuthFailureReason
from herit_auth.services.audit import AuditSink, LoggingAuditSink
from herit_auth.services.context import AuthContext, AuthTokens, Authenticated, ResolveResult
from herit_auth.services.resolver import AuthContextResolver, build_resolver

logger = logging.getLogger(__name__)


def _extract_bearer_token(request: Request) -> str | None:
    authorization = request.headers.get("Authorization", "")
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return clean_token(token)


def set_auth_cookies(response: Response, tokens: AuthTokens) -> None:
    is_secure = settings.is_production
    response.set_cookie(
        settings.ACCESS_COOKIE_NAME,
        tokens.access_token,
        httponly=True,
        samesite="lax",
        secure=is_secure,
        path="/",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        tokens.refresh_token,
        httponly=True,
        samesite="lax",
        secure=is_secure,
        path="/",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


def clear_auth_cookies(response: Response) -> None:
    response.delete_cookie(settings.ACCESS_COOKIE_NAME, path="/")
    response.delete_cookie(settings.REFRESH_COOKIE_NAME, path="/")


def get_token_codec() -> TokenCodec:
    return TokenCodec.from_settings(settings)


def get_audit_sink() -> AuditSink:
    return LoggingAuditSink()


def get_resolver(
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
    audit: AuditSink = Depends(get_audit_sink),
) -> AuthContextResolver:
    return build_resolver(db, codec=codec, audit=audit)


def resolve_request(
    request: Request,
    response: Response,
    resolver: AuthContextResolver = Depends(get_resolver),
) -> ResolveResult:
    """Resolve the request's credentials and persist a rotated pair on ``response``."""
    access_token = _extract_bearer_token(request) or clean_token(request.cookies.get(settings.ACCESS_COOKIE_NAME))
    refresh_token = clean_token(request.cookies.get(settings.REFRESH_COOKIE_NAME))
    result = resolver.resolve(access_token, refresh_token)
    if isinstance(result, Authenticated) and result.rotated is not None:
        set_auth_cookies(response, result.rotated)
    return result


def get_auth_context(result: ResolveResult = Depends(resolve_request)) -> AuthContext:
    if isinstance(result, Authenticated):
        return result.context
    if result.reason == AuthFailureReason.transient_store_error:
        raise ServiceUnavailableError()
    logger.debug("Request rejected: %s", result.reason.value)
    # One message for every reason so clients cannot probe token state.
    raise AuthenticationException("not_authenticated")
