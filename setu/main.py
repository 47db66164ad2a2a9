"""Bharat-Setu FastAPI application entry point.

Creates the FastAPI app, includes routers, maps the engine's error
taxonomy onto HTTP responses, and manages the lifecycle of the backend
services (catalog store, reasoning gateway, eligibility engine).
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, AsyncIterator, Final
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.settings import settings
from setu.api.router import api_router
from setu.data.seed import load_catalog
from setu.exceptions import (
    CatalogIntegrityError,
    CatalogUnavailableError,
    ExternalReasoningTimeoutError,
    SchemeNotFoundError,
    SetuError,
    UndeterminedEligibilityError,
    ValidationError,
)
from setu.services.catalog import CatalogStore
from setu.services.engine import EligibilityEngine
from setu.services.reasoning import HttpNarrativeReasoner, ReasoningGateway

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_STATUS_CODES: Final[dict[type[SetuError], int]] = {
    ValidationError: 422,
    SchemeNotFoundError: 404,
    CatalogUnavailableError: 503,
    UndeterminedEligibilityError: 503,
    CatalogIntegrityError: 409,
    ExternalReasoningTimeoutError: 504,
}


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging() -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            settings.log_level,
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of the engine's services.

    On startup:
      1. Load and publish the scheme catalog snapshot
      2. Initialise the reasoning gateway (HTTP reasoner when configured)
      3. Create the EligibilityEngine
      4. Store everything on ``app.state``

    On shutdown:
      - Close the reasoning HTTP client.
    """
    _configure_logging()
    logger.info("app.startup", env=settings.env, catalog_path=str(settings.catalog_path))

    app.state.start_time = time.time()

    # -- 1. Catalog ---------------------------------------------------------
    store = CatalogStore()
    try:
        store.publish(load_catalog(settings.catalog_path, version=settings.catalog_version))
    except (FileNotFoundError, CatalogIntegrityError):
        # Serve health checks; matching answers 503 until a reload succeeds
        logger.error("app.catalog_load_failed", path=str(settings.catalog_path), exc_info=True)
    app.state.catalog_store = store

    # -- 2. Reasoning gateway -----------------------------------------------
    reasoner: HttpNarrativeReasoner | None = None
    if settings.reasoning_url:
        reasoner = HttpNarrativeReasoner(
            settings.reasoning_url, timeout=settings.reasoning_timeout_seconds
        )
    else:
        logger.warning("app.reasoning_not_configured", note="narrative rules will be undetermined")
    gateway = ReasoningGateway(
        reasoner,
        max_concurrent=settings.reasoning_max_concurrent,
        timeout=settings.reasoning_timeout_seconds,
        max_attempts=settings.reasoning_max_attempts,
        backoff_max=settings.reasoning_backoff_max_seconds,
    )
    app.state.reasoning_gateway = gateway

    # -- 3. Engine ----------------------------------------------------------
    app.state.engine = EligibilityEngine.from_settings(settings, store, gateway)

    logger.info("app.startup_complete", catalog_ready=store.is_ready)

    yield

    # -- Shutdown -----------------------------------------------------------
    logger.info("app.shutdown_start")
    if reasoner is not None:
        await reasoner.close()
    logger.info("app.shutdown_complete")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Bharat-Setu Eligibility API",
    description=(
        "Bharat-Setu eligibility matching and document checklist engine. "
        "Matches citizen profiles against government welfare schemes, "
        "explains each match and lists the documents needed to apply."
    ),
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS", "HEAD"],
    allow_headers=["Content-Type", "Accept", "X-Request-ID", "X-Admin-API-Key"],
)


# -- Error envelope ---------------------------------------------------------


def _error_response(
    request: Request,
    status_code: int,
    *,
    code: str,
    message: str,
    details: Any = None,
    retryable: bool = False,
    headers: dict[str, str] | None = None,
) -> ORJSONResponse:
    request_id = request.headers.get("X-Request-ID") or uuid4().hex
    return ORJSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": jsonable_encoder(details),
                "retryable": retryable,
            },
            "request_id": request_id,
            "timestamp": datetime.now(UTC).isoformat(),
        },
        headers={**(headers or {}), "X-Request-ID": request_id},
    )


@app.exception_handler(SetuError)
async def setu_error_handler(request: Request, exc: SetuError) -> ORJSONResponse:
    status_code = next(
        (code for cls, code in _STATUS_CODES.items() if isinstance(exc, cls)), 500
    )
    log = logger.error if status_code >= 500 else logger.info
    log("api.error", path=request.url.path, code=exc.code, status_code=status_code)
    return _error_response(
        request,
        status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
        retryable=exc.retryable,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    return _error_response(
        request,
        422,
        code=ValidationError.code,
        message="Request validation failed",
        details=exc.errors(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> ORJSONResponse:
    return _error_response(
        request,
        exc.status_code,
        code=f"http_{exc.status_code}",
        message=str(exc.detail),
        retryable=exc.status_code == 503,
        headers=getattr(exc, "headers", None),
    )


# -- Include routers -------------------------------------------------------
app.include_router(api_router)


@app.get("/api")
async def api_info() -> dict:
    """API information endpoint."""
    return {
        "name": "Bharat-Setu Eligibility API",
        "version": app.version,
        "docs": "/docs",
        "endpoints": {
            "health": "/api/v1/health",
            "schemes": "/api/v1/schemes",
            "checklist": "/api/v1/schemes/{scheme_id}/checklist",
            "match": "/api/v1/eligibility/match",
            "catalog_reload": "/api/v1/admin/catalog/reload",
        },
    }
