"""
ClipSync Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app(database) returns a configured app with
       the store handle attached to app.state.
Who:   uvicorn (`uvicorn clipsync.main:app`) and the test suite, which builds
       one app per test around an in-memory SQLite Database.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  Rate Limit → Request ID → Logging → Security → GZip     │
    │             → CORS                                       │
    │                                                          │
    │  Routes (/api/v1):                                       │
    │  /auth/*   /user/*   /clipboard/*   /system/*            │
    │                                                          │
    │  Exception Handlers:                                     │
    │  Validation→400  TooLarge→413  Auth→401  Disabled→403    │
    │  NotFound→404  Conflict→409  RateLimit→429  DB/Hash→500  │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check, schema creation for SQLite or
              when DB_AUTO_CREATE is set (otherwise `alembic upgrade head`)
    Shutdown: dispose the engine (close pooled connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from clipsync import __version__
from clipsync.config import settings
from clipsync.database import Database
from clipsync.exceptions import (
    AccountDisabledError,
    AuthError,
    ClipSyncError,
    ConflictError,
    ContentTooLargeError,
    DatabaseError,
    HashingError,
    NotFoundError,
    RateLimitExceededError,
    ValidationError,
)
from clipsync.middleware.logging import RequestLoggingMiddleware
from clipsync.middleware.rate_limit import RateLimitMiddleware
from clipsync.middleware.request_id import RequestIDLogFilter, RequestIDMiddleware, request_id_var
from clipsync.middleware.security import SecurityHeadersMiddleware
from clipsync.routes import auth, clipboard, health

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, at startup.

    Format: %(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s
    The request id comes from RequestIDLogFilter; records logged outside a
    request show "-".
    """
    handler = logging.StreamHandler(sys.stdout)  # Docker captures stdout
    handler.addFilter(RequestIDLogFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Third-party libraries are noisy at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("ClipSync Backend %s starting up (%s)", __version__, settings.environment)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    database: Database = app.state.database
    if settings.db_auto_create or database.dialect == "sqlite":
        await database.create_all()

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("ClipSync Backend shutting down...")
    await database.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request_id_var.get("") or None


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "details": details or None,
            "request_id": _request_id(request),
        },
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the exception hierarchy to HTTP responses.

    Starlette picks the handler registered for the most specific class in
    the exception's MRO, so subclasses (ContentTooLargeError,
    AccountDisabledError) get their own status codes.

    Server-side errors (DatabaseError, HashingError, anything unexpected)
    return a generic message; their context is logged only.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("Validation error: %s", exc.message)
        return _error_response(request, 400, "validation_error", exc.message, exc.context)

    @app.exception_handler(ContentTooLargeError)
    async def handle_content_too_large(request: Request, exc: ContentTooLargeError):
        logger.warning("Content too large: %d > %d bytes", exc.size, exc.max_size)
        return _error_response(request, 413, "content_too_large", exc.message, exc.context)

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        return _error_response(
            request,
            401,
            "unauthorized",
            exc.message,
            exc.context,
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(AccountDisabledError)
    async def handle_account_disabled(request: Request, exc: AccountDisabledError):
        return _error_response(request, 403, "account_disabled", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        # No details: a foreign item must look exactly like a missing one
        return _error_response(request, 404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error_response(request, 409, "conflict", exc.message, exc.context)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error_response(
            request,
            429,
            "rate_limit_exceeded",
            exc.message,
            exc.context,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("Database error: %s | Context: %s", exc.message, exc.context)
        return _error_response(
            request, 500, "server_error", "An internal error occurred. Please try again later."
        )

    @app.exception_handler(HashingError)
    async def handle_hashing_error(request: Request, exc: HashingError):
        logger.error("Hashing error: %s | Context: %s", exc.message, exc.context)
        return _error_response(
            request, 500, "server_error", "An internal error occurred. Please try again later."
        )

    @app.exception_handler(ClipSyncError)
    async def handle_clipsync_error(request: Request, exc: ClipSyncError):
        logger.error("Unhandled application error %s: %s", type(exc).__name__, exc.message)
        return _error_response(
            request, 500, "server_error", "An internal error occurred. Please try again later."
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return _error_response(
            request,
            422,
            "invalid_request",
            "request body or parameters failed validation",
            {"errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        return _error_response(
            request,
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    Assemble the application around a store handle.

    Args:
        database: store handle to serve from; a Database built from settings
                  when omitted. Tests pass an in-memory SQLite instance.
    """
    app = FastAPI(
        title="ClipSync API",
        description=(
            "Multi-device clipboard synchronization backend. Devices authenticate "
            "with a bearer token and push, pull and reconcile clipboard items."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.database = database or Database()

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RateLimit → RequestID → Logging → Security → GZip → CORS
    origins = settings.cors_origins_list
    wildcard = "*" in origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if wildcard else origins,
        # Browsers refuse credentials with a wildcard origin
        allow_credentials=not wildcard,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-Total-Count",
            "Retry-After",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
        ],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.auth_router)
    app.include_router(auth.user_router)
    app.include_router(clipboard.router)
    app.include_router(health.router)

    return app


# uvicorn expects `clipsync.main:app` to be importable
app = create_app()


def run() -> None:
    """Console entry point: `clipsync-server`."""
    import uvicorn

    uvicorn.run(
        "clipsync.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
    )
