"""
NoteDrop Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, route mounting, error mapping
       and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn notedrop.main:app).

Exception → HTTP mapping:
    ValidationError 400 │ UnauthorizedError 401 │ NotFoundError 404
    ConflictError 409   │ UnsupportedContentTypeError 415
    CorruptDocumentError 500 (429 comes from RateLimitMiddleware)
    RemoteReadError / RemoteWriteError 502 │ TransientError 503

Lifecycle:
    Startup:  logging, configuration check, log ready
    Shutdown: close the shared HTTP client
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from notedrop import __version__
from notedrop.config import settings
from notedrop.dependencies import close_http_client
from notedrop.exceptions import (
    ConflictError,
    CorruptDocumentError,
    NoteDropError,
    NotFoundError,
    RemoteReadError,
    RemoteWriteError,
    TransientError,
    UnauthorizedError,
    UnsupportedContentTypeError,
    ValidationError,
)
from notedrop.middleware.logging import RequestLoggingMiddleware
from notedrop.middleware.rate_limit import RateLimitMiddleware
from notedrop.middleware.request_id import RequestIDMiddleware, request_id_var
from notedrop.routes import health, notes

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: 2024-01-15T12:00:00 [INFO] notedrop.services.note_service: ...
    Called once during app startup, before any other initialization.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # These log every request they make at INFO/DEBUG
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("NoteDrop Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health still answers and requests fail with clear errors
        logger.error("Configuration error: %s", str(e))

    logger.info(
        "Notes document: %s/%s@%s:%s",
        settings.github_repo_owner or "?",
        settings.github_repo_name or "?",
        settings.github_branch,
        settings.notes_document_path,
    )
    if settings.conflict_retry_attempts:
        logger.info("Conflict retry enabled: %d extra attempts", settings.conflict_retry_attempts)

    yield

    logger.info("NoteDrop Backend shutting down...")
    await close_http_client()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    content: Dict[str, Any] = {
        "error": error,
        "message": message,
        "request_id": request_id_var.get(""),
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Security: handlers never put repository payloads, decode diagnostics or
    stack traces in the response. Those go to the server log only.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, details=exc.context)

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(request: Request, exc: UnauthorizedError):
        logger.warning("[%s] Submission refused: bad password", request_id_var.get(""))
        return _error_response(401, "unauthorized", "Unauthorized")

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        logger.warning("[%s] Write conflict: %s", request_id_var.get(""), exc.context)
        return _error_response(
            409,
            "conflict",
            exc.message,
            details={"retryable": True},
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(UnsupportedContentTypeError)
    async def handle_unsupported_type(request: Request, exc: UnsupportedContentTypeError):
        return _error_response(415, "unsupported_media_type", exc.message)

    @app.exception_handler(CorruptDocumentError)
    async def handle_corrupt_document(request: Request, exc: CorruptDocumentError):
        logger.error(
            "[%s] Corrupt notes document: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(
            500,
            "server_error",
            "The notes could not be read. Please try again later.",
        )

    @app.exception_handler(RemoteReadError)
    async def handle_remote_read(request: Request, exc: RemoteReadError):
        logger.error("[%s] Repository read refused: %s", request_id_var.get(""), exc.context)
        return _error_response(502, "repository_error", exc.message)

    @app.exception_handler(RemoteWriteError)
    async def handle_remote_write(request: Request, exc: RemoteWriteError):
        logger.error(
            "[%s] Repository write rejected (%s): %s",
            request_id_var.get(""),
            exc.status_code,
            exc.payload,
        )
        return _error_response(
            502,
            "repository_error",
            "The note could not be saved to the repository.",
        )

    @app.exception_handler(TransientError)
    async def handle_transient(request: Request, exc: TransientError):
        logger.error("[%s] Repository unavailable: %s", request_id_var.get(""), exc.context)
        return _error_response(
            503,
            "service_unavailable",
            exc.message,
            headers={"Retry-After": "5"},
        )

    @app.exception_handler(NoteDropError)
    async def handle_app_error(request: Request, exc: NoteDropError):
        logger.error("[%s] %s: %s | Context: %s", request_id_var.get(""),
                     type(exc).__name__, exc.message, exc.context)
        return _error_response(500, "server_error", "An internal error occurred.")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="NoteDrop API",
        description=(
            "Minimal note publishing. Anyone can list notes; content is shown "
            "only to matching clients; password holders can publish."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in REVERSE order of addition:
    # RateLimit → RequestID → Logging → CORS → route
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(notes.router)
    app.include_router(health.router)

    return app


app = create_app()
