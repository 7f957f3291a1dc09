"""DealGalaxy Backend -- FastAPI Application Entry Point."""

from contextlib import asynccontextmanager
from typing import Dict, Type

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dealgalaxy.api.v1.router import api_v1_router
from dealgalaxy.config import settings
from dealgalaxy.core.exceptions import (
    DealGalaxyException,
    DuplicateTracking,
    ExtractionFailed,
    IdentifierMissing,
    InvalidRequestError,
    NavigationTimeout,
    NotFoundError,
    SessionError,
    UnauthorizedError,
)
from dealgalaxy.core.logging import configure_logging
from dealgalaxy.db.session import async_session_factory, create_tables
from dealgalaxy.schemas import ErrorDetail, ErrorResponse
from dealgalaxy.scrapers.amazon import AmazonScraper
from dealgalaxy.scrapers.scheduler import PipelineScheduler

logger = structlog.get_logger(__name__)

ERROR_STATUS: Dict[Type[DealGalaxyException], int] = {
    InvalidRequestError: 400,
    IdentifierMissing: 400,
    ExtractionFailed: 400,
    UnauthorizedError: 403,
    NotFoundError: 404,
    DuplicateTracking: 409,
    SessionError: 502,
    NavigationTimeout: 504,
}

ERROR_CODES: Dict[Type[DealGalaxyException], str] = {
    InvalidRequestError: "invalid_request",
    IdentifierMissing: "identifier_missing",
    ExtractionFailed: "extraction_failed",
    UnauthorizedError: "unauthorized",
    NotFoundError: "not_found",
    DuplicateTracking: "duplicate_tracking",
    SessionError: "session_error",
    NavigationTimeout: "navigation_timeout",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)
    logger.info("api_starting", environment=settings.ENVIRONMENT, debug=settings.DEBUG)

    await create_tables()
    logger.info("database_tables_ready")

    app.state.scheduler = None
    if settings.SCHEDULER_ENABLED and settings.ENVIRONMENT != "test":
        config = settings.pipeline_config()
        scheduler = PipelineScheduler(
            async_session_factory,
            source_factory=lambda: AmazonScraper(config),
            config=config,
        )
        scheduler.start(
            deals_interval_minutes=settings.DEALS_REFRESH_INTERVAL_MINUTES,
            tracking_interval_minutes=settings.TRACKING_REFRESH_INTERVAL_MINUTES,
        )
        app.state.scheduler = scheduler
    else:
        logger.info("scheduler_disabled")

    yield

    logger.info("api_stopping")
    if app.state.scheduler is not None:
        app.state.scheduler.stop()


app = FastAPI(
    title="DealGalaxy API",
    description="Amazon deal acquisition and price tracking API",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DealGalaxyException)
async def handle_pipeline_error(request: Request, exc: DealGalaxyException) -> JSONResponse:
    """Render pipeline errors in the standard error envelope."""
    status_code = 500
    code = "internal_error"
    for exc_type in type(exc).__mro__:
        if exc_type in ERROR_STATUS:
            status_code = ERROR_STATUS[exc_type]
            code = ERROR_CODES[exc_type]
            break

    log = logger.warning if status_code < 500 else logger.error
    log("request_failed", path=request.url.path, status_code=status_code, error=exc.message)

    body = ErrorResponse(error=ErrorDetail(code=code, message=exc.message))
    return JSONResponse(status_code=status_code, content=body.model_dump())


# Register API v1 router
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "DealGalaxy API",
        "version": "0.1.0",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
