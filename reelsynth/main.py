"""Main FastAPI application."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reelsynth import __version__
from reelsynth.api import api_router
from reelsynth.api.deps import close_catalog_client
from reelsynth.config import get_settings
from reelsynth.db import get_db, init_db
from reelsynth.exceptions import (
    InsufficientDataError,
    LLMServiceError,
    NoDataError,
    ParseFailure,
    RecommendationServiceUnavailable,
    ReelSynthError,
    UserNotFoundError,
)
from reelsynth.utils.logging import setup_logging

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    await init_db()
    logger.info("Database initialized")

    yield

    await close_catalog_client()
    logger.info("Catalog HTTP client closed")
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    lifespan=lifespan,
)

if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:8080", "http://127.0.0.1:8080"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router)


# Error taxonomy -> HTTP status, most specific first
_ERROR_STATUS: list[tuple[type[ReelSynthError], int, str | None]] = [
    (UserNotFoundError, 404, None),
    (InsufficientDataError, 400, None),
    (NoDataError, 400, None),
    (RecommendationServiceUnavailable, 503, "Recommendation service temporarily unavailable, please try again later"),
    (LLMServiceError, 503, "Recommendation service temporarily unavailable, please try again later"),
    (ParseFailure, 502, "Recommendation service returned a malformed response, please try again"),
]


@app.exception_handler(ReelSynthError)
async def reelsynth_error_handler(request: Request, exc: ReelSynthError) -> JSONResponse:
    """Map pipeline errors to HTTP responses."""
    for error_type, status_code, message in _ERROR_STATUS:
        if isinstance(exc, error_type):
            if status_code >= 500:
                logger.error(f"{request.method} {request.url.path} failed: {exc}")
            return JSONResponse(status_code=status_code, content={"detail": message or str(exc)})

    logger.error(f"Unhandled pipeline error on {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal error"})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Invalid input that passed request validation (e.g. blank embedding text)."""
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# Store app start time for uptime tracking
_app_start_time = datetime.now(UTC)


@app.get("/health", include_in_schema=True, tags=["monitoring"])
async def health_check(db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """Health check endpoint for monitoring and load balancers.

    Returns:
        JSONResponse with status, uptime, and service health checks.
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "uptime_seconds": (datetime.now(UTC) - _app_start_time).total_seconds(),
        "version": __version__,
        "checks": {},
    }

    # Check database connection
    try:
        await db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = {"status": "healthy"}
    except SQLAlchemyError:
        health_status["checks"]["database"] = {"status": "unhealthy"}
        health_status["status"] = "degraded"

    health_status["checks"]["llm"] = {
        "status": "configured" if settings.openai_api_key and settings.perplexity_api_key else "not_configured"
    }
    health_status["checks"]["catalog"] = {
        "status": "configured" if settings.tmdb_api_key else "not_configured"
    }

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)
