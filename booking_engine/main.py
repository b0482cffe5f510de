"""FastAPI application setup and configuration."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from booking_engine.config import settings
from booking_engine.api import api_router
from booking_engine.cache import get_cache
from booking_engine.database import get_db_manager
from booking_engine.middleware import ErrorHandlerMiddleware, LoggingMiddleware
from booking_engine.schemas.common import HealthResponse
from booking_engine.utils.dependencies import get_engine
from booking_engine.utils.logging_config import setup_logging

# Set up logging
setup_logging(
    log_level="DEBUG" if settings.debug else settings.log_level,
    log_file=settings.log_file,
    enable_json_logging=settings.enable_json_logging or settings.environment == "production",
)

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting booking engine")
    db = get_db_manager()
    await db.initialize()

    # Redis is only needed for cross-process event locks
    cache = get_cache()
    if settings.event_lock_backend == "redis":
        await cache.initialize()

    engine = get_engine()
    logger.info(
        f"Booking engine ready (locks={settings.event_lock_backend}, "
        f"reconciliation={settings.reconciliation_dispatcher})"
    )
    yield

    logger.info("Shutting down booking engine")
    await engine.drain()
    await cache.close()
    await db.close()
    logger.info("Connections closed")


app = FastAPI(
    title="Booking Engine API",
    description="""
    ## Booking Engine

    Multi-tenant booking lifecycle and capacity engine for scheduled events.

    ### Key Features

    * **Capacity-aware booking**: bookings are confirmed while slots remain and waitlisted otherwise
    * **Waitlist promotion**: a freed slot is given to the oldest waitlisted booking
    * **Audit trail**: every status change is recorded
    * **Notifications**: users get an inbox entry for every change to their bookings

    ### Authentication

    Send the identity service's token as `Authorization: Bearer <token>`.
    Tenant scope is always taken from the token.
    """,
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "bookings", "description": "Booking creation, cancellation and listing"},
        {"name": "waitlist", "description": "Waitlist promotion and event booking administration"},
        {"name": "notifications", "description": "User notification inbox"},
        {"name": "dashboard", "description": "Organizer overview of upcoming events"},
        {"name": "health", "description": "System health endpoints"},
    ],
    lifespan=lifespan,
)

# Middleware stack: the last one added runs first

# Error handling (innermost, so logging sees the mapped response)
app.add_middleware(
    ErrorHandlerMiddleware,
    debug=settings.debug
)

# Request logging and request-id propagation
if settings.enable_request_logging:
    app.add_middleware(LoggingMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=settings.cors_expose_headers
)

# Include API routes
app.include_router(api_router)


@app.get("/", tags=["health"])
async def root():
    """Basic information about the API."""
    return {
        "message": "Booking Engine API",
        "version": VERSION,
        "docs_url": "/docs",
        "status": "operational"
    }


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check():
    """
    Health check endpoint.

    Reports the store and, when Redis locks are enabled, Redis connectivity.
    """
    checks = {"database": "up" if get_db_manager().is_initialized else "down"}
    if settings.event_lock_backend == "redis":
        checks["redis"] = "up" if await get_cache().ping() else "down"

    overall = "healthy" if all(value == "up" for value in checks.values()) else "degraded"
    return HealthResponse(status=overall, service="booking-engine", version=VERSION, checks=checks)
