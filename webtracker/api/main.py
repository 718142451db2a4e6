"""
FastAPI Backend for Webtracker

Location tracking API shared by logged-in users (bearer token) and linked
devices (Ed25519-signed requests).
"""
from fastapi import FastAPI, Request as FastAPIRequest
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from typing import Optional
import logging
import re
import threading
import uuid

from webtracker.api.routes import health, devices, location, notifications, trusted, export
from webtracker.core.auth import Authenticator
from webtracker.core.auth.bearer import build_bearer_verifier
from webtracker.core.config import AuthConfig, Settings, get_settings
from webtracker.core.database import SqlAuthStore, create_tables, init_db, purge_expired_nonces

logger = logging.getLogger(__name__)
error_logger = logging.getLogger("api.errors")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


def _sanitize_error_message(message: str) -> str:
    """
    Scrub potential secrets from exception messages before logging.

    Covers database URLs with passwords, bearer tokens / JWTs, and
    key-like assignments.
    """
    sanitized = re.sub(
        r'(postgresql|postgres|mysql|sqlite)://[^:]+:[^@]+@',
        r'\1://[USER]:[REDACTED]@',
        message,
        flags=re.IGNORECASE
    )
    sanitized = re.sub(r'(Bearer)\s+[^\s,;]+', r'\1 [REDACTED]', sanitized, flags=re.IGNORECASE)
    sanitized = re.sub(
        r'(password|passwd|secret|token|key)["\']?\s*[=:]\s*["\']?[^"\'\s,;]+',
        r'\1=[REDACTED]',
        sanitized,
        flags=re.IGNORECASE
    )
    sanitized = re.sub(r'eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+', '[REDACTED_JWT]', sanitized)
    return sanitized


def build_authenticator(settings: Settings, session_factory) -> Authenticator:
    """Wire the Authenticator from configuration. Called once per process."""
    store = SqlAuthStore(session_factory)
    return Authenticator(
        config=AuthConfig.from_settings(settings),
        devices=store,
        nonces=store,
        bearer=build_bearer_verifier(settings),
    )


def start_nonce_cleanup_thread(settings: Settings, session_factory, stop_event: threading.Event) -> threading.Thread:
    """Purge old nonce claims every nonce_cleanup_interval_seconds until stopped."""
    def cleanup_loop():
        while not stop_event.wait(settings.nonce_cleanup_interval_seconds):
            session = session_factory()
            try:
                purge_expired_nonces(
                    session,
                    retention_seconds=settings.nonce_retention_seconds,
                    min_retention_seconds=settings.clock_skew_seconds,
                )
            except Exception as e:
                logger.error(f"Nonce cleanup failed: {_sanitize_error_message(str(e))}")
                session.rollback()
            finally:
                session.close()

    thread = threading.Thread(target=cleanup_loop, name="nonce-cleanup", daemon=True)
    thread.start()
    return thread


def create_app(settings: Optional[Settings] = None, authenticator: Optional[Authenticator] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Configuration (defaults to get_settings())
        authenticator: Pre-built authenticator; when given, startup does not
            touch the database (used by tests)
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Webtracker API",
        description="Location tracking backend with user and device authentication",
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.authenticator = authenticator
    app.state.cleanup_stop = threading.Event()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: FastAPIRequest, exc: StarletteHTTPException):
        """Render errors as {"ok": false, "error": ...}."""
        if isinstance(exc.detail, dict):
            content = {"ok": False, **exc.detail}
        else:
            content = {"ok": False, "error": exc.detail}
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: FastAPIRequest, exc: Exception):
        """
        Log unexpected errors with an error id and return a generic message.
        """
        error_id = str(uuid.uuid4())
        error_logger.error(
            f"Error {error_id}: {type(exc).__name__}: {_sanitize_error_message(str(exc))}",
            exc_info=True,
            extra={
                "error_id": error_id,
                "path": request.url.path,
                "method": request.method,
            }
        )
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "internal_error", "error_id": error_id},
        )

    @app.on_event("startup")
    async def startup_event():
        """Initialize database and the authenticator"""
        if app.state.authenticator is not None:
            return

        session_factory = init_db(settings.database_url)
        if settings.auto_create_tables:
            create_tables()
        app.state.authenticator = build_authenticator(settings, session_factory)
        start_nonce_cleanup_thread(settings, session_factory, app.state.cleanup_stop)
        logger.info("✅ Authentication initialized")

    @app.on_event("shutdown")
    async def shutdown_event():
        app.state.cleanup_stop.set()

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "Authorization",
            # Signed device headers
            "X-Device-Id",
            "X-Ts",
            "X-Nonce",
            "X-Sig",
        ],
        max_age=3600,
    )

    app.include_router(health.router)
    app.include_router(devices.router)
    app.include_router(location.router)
    app.include_router(notifications.router)
    app.include_router(trusted.router)
    app.include_router(export.router)

    return app


_settings = get_settings()
logging.basicConfig(level=_settings.log_level.upper(), format=_settings.log_format)

app = create_app(_settings)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=_settings.api_port)
