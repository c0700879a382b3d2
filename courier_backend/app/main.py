"""
FastAPI Application Entry Point.

This is the main application file for the Courier Platform Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from courier_backend.app.core.config import settings
from courier_backend.app.api.v1.router import router as api_v1_router
from courier_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from courier_backend.app.core.redis_client import close_redis, ping_redis
from courier_backend.app.db.session import engine, Base
from courier_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from courier_backend.app.services.notification_hub import notification_hub

# Import models to ensure they are registered with Base
from courier_backend.app.models.courier_company import CourierCompany
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.package import Package
from courier_backend.app.models.tracking_event import TrackingEvent
from courier_backend.app.models.payment import Payment
from courier_backend.app.models.notification import Notification
from courier_backend.app.models.audit_log import AuditLog

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Stops the notification worker and closes Redis on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s started (api %s)", settings.app_name, settings.api_version)
    yield
    await notification_hub.shutdown()
    await close_redis()
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Package lifecycle backend for a multi-company courier platform",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "ok" if await ping_redis() else "unavailable",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the Courier Platform Backend API",
        "docs": "/docs",
        "health": "/health",
    }
