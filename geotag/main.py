"""
GeoTag Backend - FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() returns a configured FastAPI instance; uvicorn loads the
       module-level `app` (uvicorn geotag.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────┐ ┌──────────┐ │
    │  │  Rate Limit  │→│ Req ID   │→│ Logging │→│GZip, CORS│ │
    │  └──────────────┘ └──────────┘ └─────────┘ └──────────┘ │
    │                                                          │
    │  Routes:                                                 │
    │  ┌────────────┐ ┌──────────────┐ ┌─────────┐ ┌────────┐ │
    │  │ /api/auth  │ │ /api/entries │ │/uploads │ │/health │ │
    │  └────────────┘ └──────────────┘ └─────────┘ └────────┘ │
    │                                                          │
    │  app.state.access_gate = AccessGate(sessions, creds,     │
    │                                     token cache)         │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config validation → storage dir → (dev) create tables
    Shutdown: dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from geotag import __version__
from geotag.config import settings
from geotag.database import create_all_tables, dispose_engine
from geotag.exceptions import (
    DatabaseError,
    DuplicateKeyError,
    FileStorageError,
    GeoTagError,
    NotFoundError,
    RateLimitExceededError,
    UnauthenticatedError,
    ValidationError,
)
from geotag.middleware.logging import RequestLoggingMiddleware
from geotag.middleware.rate_limit import RateLimitMiddleware
from geotag.middleware.request_id import RequestIDMiddleware, request_id_var
from geotag.routes import auth, entries, health, uploads
from geotag.services.access_gate import AccessGate
from geotag.services.credential_service import credential_service
from geotag.services.session_service import SessionAuthority
from geotag.services.token_cache import TokenCache

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the whole process.

    Format: 2026-03-01T10:00:00 [INFO] geotag.access: POST /api/entries 201 ...

    Called once at startup before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-request noise from libraries; geotag.access already covers it
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("GeoTag Backend %s starting up (%s)...", __version__, settings.environment)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving /health so the misconfiguration is visible to operators
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())

    if settings.auto_create_tables:
        await create_all_tables()
        logger.info("Database tables ensured (auto_create_tables)")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("GeoTag Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {
        "error": error,
        "message": message,
        "request_id": request_id_var.get(""),
    }
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to status codes and the shared error body.

        ValidationError, MissingImageError → 400
        DuplicateKeyError                  → 400
        UnauthenticatedError (+ subclasses)→ 401 with WWW-Authenticate
        NotFoundError                      → 404
        RateLimitExceededError             → 429 with Retry-After
        DatabaseError, FileStorageError    → 500 generic message
        GeoTagError / Exception            → 500 generic message

    The `error` field carries the exception's error_code, so subclasses
    (missing_image, invalid_token, token_expired) report their own kind.
    Internal details (SQL, paths, stack traces) stay in the server log.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body(exc.error_code, exc.message, exc.context),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        """Malformed form/query/JSON input that never reached a service."""
        errors = []
        seen = set()
        for err in exc.errors():
            loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
            # Union members add their own loc suffix (latitude.int, latitude.str);
            # report each request field once
            field = loc[0] if loc else "request"
            if field in seen:
                continue
            seen.add(field)
            errors.append({"field": field, "message": err.get("msg", "Invalid value")})
        fields = ", ".join(e["field"] for e in errors)
        return JSONResponse(
            status_code=400,
            content=_error_body(
                ValidationError.error_code,
                f"Validation failed: {fields}" if fields else "Validation failed",
                {"errors": errors},
            ),
        )

    @app.exception_handler(DuplicateKeyError)
    async def handle_duplicate_key(request: Request, exc: DuplicateKeyError):
        return JSONResponse(
            status_code=400,
            content=_error_body(exc.error_code, exc.message, exc.context),
        )

    @app.exception_handler(UnauthenticatedError)
    async def handle_unauthenticated(request: Request, exc: UnauthenticatedError):
        return JSONResponse(
            status_code=401,
            content=_error_body(exc.error_code, exc.message),
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body(exc.error_code, exc.message),
        )

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content=_error_body(exc.error_code, exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                exc.error_code, "An internal error occurred. Please try again later."
            ),
        )

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error(
            "[%s] File storage error: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(exc.error_code, exc.message),
        )

    @app.exception_handler(GeoTagError)
    async def handle_geotag_error(request: Request, exc: GeoTagError):
        logger.error("[%s] Unhandled application error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=500,
            content=_error_body(exc.error_code, "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        details = {"type": type(exc).__name__} if settings.is_development else None
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
                details,
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def build_access_gate() -> AccessGate:
    cache = TokenCache(ttl_seconds=settings.token_cache_ttl) if settings.token_cache_ttl > 0 else None
    return AccessGate(SessionAuthority(), credential_service, cache)


def create_app(access_gate: Optional[AccessGate] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        access_gate: Pre-built gate (tests pass one with a fake clock or
                     no cache). Defaults to one built from settings.
    """
    app = FastAPI(
        title="GeoTag API",
        description=(
            "Geotagged photo journal backend. Register, sign in, and keep a "
            "private log of photos pinned to the coordinates they were taken at."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.access_gate = access_gate or build_access_gate()

    # Middleware executes in REVERSE order of addition:
    # RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(entries.router)
    app.include_router(uploads.router)
    app.include_router(health.router)

    return app


app = create_app()
