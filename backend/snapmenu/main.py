"""
SnapMenu Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn snapmenu.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────────────┐       │
    │  │  Rate Limit  │→│ Req ID   │→│  Logging        │       │
    │  └──────────────┘ └──────────┘ └─────────────────┘       │
    │                                                          │
    │  Routes:                                                 │
    │  ┌──────────────┐ ┌──────────────┐ ┌──────────────────┐  │
    │  │ POST extract │ │ POST share/* │ │ GET/POST menu    │  │
    │  └──────────────┘ └──────────────┘ └──────────────────┘  │
    │                                                          │
    │  Exception Handlers:                                     │
    │  ┌────────────────────────────────────────────────────┐  │
    │  │ Validation→400 │ Link→404 │ QR→422 │ Extraction→503 │  │
    │  └────────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, validate configuration, log the share base.
    Shutdown: log. There is no database or file storage to release; every
              menu lives in its share link.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from snapmenu import __version__
from snapmenu.config import settings
from snapmenu.exceptions import (
    CircuitBreakerOpenError,
    EncodingError,
    ExtractionError,
    InvalidMenuLinkError,
    QRCapacityError,
    RateLimitExceededError,
    SnapMenuError,
    ValidationError,
)
from snapmenu.middleware.logging import RequestLoggingMiddleware
from snapmenu.middleware.rate_limit import RateLimitMiddleware
from snapmenu.middleware.request_id import RequestIDMiddleware, request_id_var
from snapmenu.routes import extract, health, menu, share

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once during startup, before anything else logs.
    """
    log_format = (
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),  # Docker captures stdout
        ],
        force=True,
    )

    # Reduce noise from third-party libraries
    # uvicorn's access log includes query strings, i.e. whole shared menus
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: logging + configuration checks. Shutdown: log only."""
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("SnapMenu Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")
        # Don't exit: share links and the viewer work without Gemini

    logger.info("Share links point at: %s?%s=<token>", settings.share_base_url, settings.share_param)
    logger.info("QR advisory length: %d characters", settings.qr_advisory_length)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("SnapMenu Backend shutting down...")
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    exc: SnapMenuError,
    include_details: bool = True,
    headers=None,
) -> JSONResponse:
    content = {
        "error": error,
        "message": exc.message,
        "request_id": request_id_var.get(""),
    }
    if include_details and exc.context:
        content["details"] = exc.context
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        ValidationError         → 400 Bad Request
        InvalidMenuLinkError    → 404 Not Found
        QRCapacityError         → 422 Unprocessable Entity
        RateLimitExceededError  → 429 Too Many Requests
        EncodingError           → 500 Internal Server Error
        ExtractionError         → 503 Service Unavailable (retry later)
        CircuitBreakerOpenError → 503 Service Unavailable (circuit open)
        SnapMenuError (base)    → 500 Internal Server Error
        Exception (fallback)    → 500 Internal Server Error

    Security: stack traces are logged server-side only, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        """Client sent invalid input; the message says what to fix."""
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc)

    @app.exception_handler(InvalidMenuLinkError)
    async def handle_invalid_link(request: Request, exc: InvalidMenuLinkError):
        """Every bad token gets the same message and no details."""
        logger.info("[%s] Invalid menu link: %s", request_id_var.get(""), exc.context)
        return _error_response(404, "invalid_menu_link", exc, include_details=False)

    @app.exception_handler(QRCapacityError)
    async def handle_qr_capacity(request: Request, exc: QRCapacityError):
        logger.warning("[%s] QR capacity exceeded: %d characters", request_id_var.get(""), exc.length)
        return _error_response(422, "qr_capacity_exceeded", exc)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error_response(
            429, "rate_limit_exceeded", exc,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(EncodingError)
    async def handle_encoding_error(request: Request, exc: EncodingError):
        logger.error("[%s] Encoding error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "encoding_error", exc, include_details=False)

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        """Circuit breaker is open; Gemini has been failing too much."""
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return _error_response(
            503, "service_unavailable", exc,
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(ExtractionError)
    async def handle_extraction_error(request: Request, exc: ExtractionError):
        """Gemini failed; the message is shown to the owner verbatim."""
        logger.error("[%s] Extraction error: %s", request_id_var.get(""), exc.message)
        headers = {}
        if exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        return _error_response(503, "extraction_error", exc, headers=headers)

    @app.exception_handler(SnapMenuError)
    async def handle_snapmenu_error(request: Request, exc: SnapMenuError):
        logger.error("[%s] Application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", exc, include_details=False)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all: generic 500 with a request ID for support tickets."""
        rid = request_id_var.get("")
        logger.error(
            "[%s] Unexpected error: %s",
            rid,
            str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns: Fully configured FastAPI instance ready to receive requests.
    Tests call this for a fresh app with fresh rate-limit state.
    """
    app = FastAPI(
        title="SnapMenu API",
        description=(
            "Turn photos of a paper menu into a digital menu that lives entirely "
            "inside a shareable link. Google Gemini extracts the menu; the link "
            "and its QR code carry it to customers with no server-side storage."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added = first to execute:
    # RateLimit → RequestID → Logging → GZip → CORS → route
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "Retry-After",
            "Content-Disposition",
            "X-Share-Url",
            "X-Exceeds-Qr-Capacity",
        ],
    )

    # Menus and QR PNGs are small; compress only the larger JSON bodies
    app.add_middleware(GZipMiddleware, minimum_size=500)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(extract.router)
    app.include_router(share.router)
    app.include_router(menu.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn expects `snapmenu.main:app` to be importable
app = create_app()
