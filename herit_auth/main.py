"""FastAPI application exposing the session layer."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from herit_auth.core.config import settings
from herit_auth.core.exceptions import HeritAuthException
from herit_auth.core.logging import setup_logging
from herit_auth.core.security_headers import install_security_headers_middleware
from herit_auth.routers import auth


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL)
    settings.validate_runtime_security()

    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_security_headers_middleware(app, settings)

    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])

    @app.exception_handler(HeritAuthException)
    async def handle_auth_exception(_: Request, exc: HeritAuthException) -> JSONResponse:
        headers = exc.headers if getattr(exc, "headers", None) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    return app


app = create_app()
