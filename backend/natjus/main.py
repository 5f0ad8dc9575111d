"""
NatJus Backend — FastAPI Application Factory
==============================================

What:  Builds the FastAPI application: logging, lifespan, middleware,
       exception handlers and routers.
Who:   uvicorn (uvicorn natjus.main:app) and the test client.

Application Layout:
    Middleware:  RateLimit → RequestID → Logging → GZip → CORS
    Routers:     uploads, notas (+ /api/files), dashboard, chat,
                 configuracao, drive, health
    Errors:      every NatJusError subclass maps to one status code and the
                 {"error", "message", "details", "request_id"} body

Lifecycle:
    Startup:   configure logging, validate settings (log, never exit),
               create the storage root
    Shutdown:  close the shared Drive clients, dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from natjus import __version__
from natjus.config import settings
from natjus.database import dispose_engine
from natjus.exceptions import (
    CircuitBreakerOpenError,
    ConfigurationError,
    DatabaseError,
    FileStorageError,
    NatJusError,
    NotFoundError,
    ProviderError,
    RateLimitExceededError,
    ValidationError,
)
from natjus.middleware.logging import RequestLoggingMiddleware
from natjus.middleware.rate_limit import RateLimitMiddleware
from natjus.middleware.request_id import RequestIDMiddleware, request_id_var
from natjus.routes import chat, configuracao, dashboard, drive, health, notas, uploads
from natjus.services.google_drive_service import close_drive_services

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "Ocorreu um erro interno. Tente novamente mais tarde."


# ═══════════════════════════════════════════════════════════════════════════
# Logging
# ═══════════════════════════════════════════════════════════════════════════


def setup_logging() -> None:
    """One stdout handler on the root logger; noisy libraries held at WARNING."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "pdfminer", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("NatJus Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Health checks and the admin screens must stay reachable to fix this
        logger.error("Configuration error: %s", e)

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("NatJus Backend shutting down...")
    await close_drive_services()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ═══════════════════════════════════════════════════════════════════════════
# Exception handlers
# ═══════════════════════════════════════════════════════════════════════════


def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Status mapping:
        ValidationError, ConfigurationError  → 400
        NotFoundError                        → 404
        RateLimitExceededError               → 429
        ProviderError                        → 502 (503 when upstream is overloaded)
        CircuitBreakerOpenError              → 503
        FileStorageError, DatabaseError      → 500, generic message
        anything else                        → 500, logged with traceback

    Internal details (paths, SQL, stack traces) stay in the server log.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("Validation error on %s: %s", request.url.path, exc.message)
        return _error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(request: Request, exc: ConfigurationError):
        logger.warning("Configuration error on %s: %s", request.url.path, exc.message)
        return _error_response(400, "configuration_error", exc.message, exc.context)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error_response(
            429,
            "rate_limit_exceeded",
            exc.message,
            exc.context,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(ProviderError)
    async def handle_provider_error(request: Request, exc: ProviderError):
        logger.error("Provider error on %s: %s", request.url.path, exc.message)
        status_code = 503 if exc.status in (429, 503) else 502
        return _error_response(status_code, "provider_error", exc.message, exc.context)

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("Circuit breaker open on %s: %s", request.url.path, exc.message)
        return _error_response(
            503,
            "service_unavailable",
            exc.message,
            {"recovery_time": exc.recovery_time},
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error("File storage error: %s | Context: %s", exc.message, exc.context)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("Database error: %s | Context: %s", exc.message, exc.context)
        return _error_response(500, "server_error", GENERIC_SERVER_ERROR)

    @app.exception_handler(NatJusError)
    async def handle_natjus_error(request: Request, exc: NatJusError):
        logger.error("Unhandled %s: %s", type(exc).__name__, exc.message)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error on %s: %s", request.url.path, exc, exc_info=True)
        return _error_response(500, "internal_server_error", GENERIC_SERVER_ERROR)


# ═══════════════════════════════════════════════════════════════════════════
# Application factory
# ═══════════════════════════════════════════════════════════════════════════


def create_app() -> FastAPI:
    app = FastAPI(
        title="NatJus API",
        description=(
            "Gestão de notas técnicas do NatJus: upload de PDFs, estruturação por IA, "
            "biblioteca, busca, dashboard e chat sobre as notas."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    for module in (uploads, notas, dashboard, chat, configuracao, drive, health):
        app.include_router(module.router)

    return app


app = create_app()
