"""Authentication endpoints (register, login, refresh, logout, session)."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from herit_auth.core.config import settings
from herit_auth.core.deps import (
    clear_auth_cookies,
    get_audit_sink,
    get_auth_context,
    get_resolver,
    get_token_codec,
    resolve_request,
    set_auth_cookies,
)
from herit_auth.core.exceptions import AuthenticationException, ConflictError, ServiceUnavailableError
from herit_auth.core.rate_limit import rate_limit
from herit_auth.core.sanitize import clean_token
from herit_auth.core.tokens import TokenCodec
from herit_auth.db.session import get_db
from herit_auth.models.enums import AuthFailureReason
from herit_auth.schemas.auth import LogoutAllResponse, MessageResponse, SessionOut, SessionResponse
from herit_auth.schemas.user import UserCreate, UserLogin, UserOut
from herit_auth.services.audit import AuditSink
from herit_auth.services.auth import authenticate_user, begin_session, logout, logout_everywhere, sign_out_everywhere
from herit_auth.services.context import AuthContext, Authenticated, ResolveResult
from herit_auth.services.resolver import AuthContextResolver
from herit_auth.services.users import create_user, find_user_by_email

router = APIRouter()
logger = logging.getLogger(__name__)


def _reject(result: ResolveResult) -> None:
    if result.reason == AuthFailureReason.transient_store_error:
        raise ServiceUnavailableError()
    raise AuthenticationException("not_authenticated")


@router.post("/register", response_model=UserOut, status_code=201, dependencies=[Depends(rate_limit("register"))])
def register_user(
    payload: UserCreate,
    response: Response,
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
) -> UserOut:
    if find_user_by_email(db, payload.email):
        raise ConflictError("email_exists")
    try:
        user = create_user(db, payload.email, payload.password)
    except IntegrityError:
        db.rollback()
        raise ConflictError("email_exists") from None
    tokens = begin_session(db, user, codec=codec)
    set_auth_cookies(response, tokens)
    return UserOut.model_validate(user)


@router.post("/login", response_model=UserOut, dependencies=[Depends(rate_limit("login"))])
def login_user(
    payload: UserLogin,
    response: Response,
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
) -> UserOut:
    user = authenticate_user(db, payload.email, payload.password)
    if not user:
        raise AuthenticationException("invalid_credentials", error_code="INVALID_CREDENTIALS")
    tokens = begin_session(db, user, codec=codec)
    set_auth_cookies(response, tokens)
    return UserOut.model_validate(user)


@router.post("/refresh", response_model=SessionResponse)
def refresh_session(
    request: Request,
    response: Response,
    resolver: AuthContextResolver = Depends(get_resolver),
) -> SessionResponse:
    result = resolver.refresh(clean_token(request.cookies.get(settings.REFRESH_COOKIE_NAME)))
    if not isinstance(result, Authenticated):
        _reject(result)
    set_auth_cookies(response, result.rotated)
    return SessionResponse(authenticated=True, session=SessionOut.from_context(result.context))


@router.post("/logout", response_model=MessageResponse)
def logout_user(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
) -> MessageResponse:
    logout(db, clean_token(request.cookies.get(settings.REFRESH_COOKIE_NAME)), codec=codec)
    clear_auth_cookies(response)
    return MessageResponse(message="logged_out")


@router.post("/logout-all", response_model=LogoutAllResponse)
def logout_all_devices(
    response: Response,
    context: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> LogoutAllResponse:
    revoked = logout_everywhere(db, context.user_id, audit=audit)
    clear_auth_cookies(response)
    return LogoutAllResponse(message="logged_out_everywhere", revoked_sessions=revoked)


@router.post("/sign-out-everywhere", response_model=MessageResponse)
def sign_out_all(
    response: Response,
    context: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    audit: AuditSink = Depends(get_audit_sink),
) -> MessageResponse:
    sign_out_everywhere(db, context.user_id, audit=audit)
    clear_auth_cookies(response)
    return MessageResponse(message="signed_out_everywhere")


@router.get("/session", response_model=SessionResponse)
def get_session(response: Response, result: ResolveResult = Depends(resolve_request)) -> SessionResponse:
    if isinstance(result, Authenticated):
        return SessionResponse(authenticated=True, session=SessionOut.from_context(result.context))
    if result.reason == AuthFailureReason.transient_store_error:
        raise ServiceUnavailableError()
    if result.reason != AuthFailureReason.token_missing:
        clear_auth_cookies(response)
    return SessionResponse(authenticated=False)
