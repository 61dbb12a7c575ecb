"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rover.config import settings
from rover.api.v1.router import api_router
from rover.api.v1.routes import events
from rover.core.exceptions import register_exception_handlers, StoreUnavailable
from rover.middleware import RequestLoggingMiddleware, setup_logging
from rover.realtime import ConnectionManager, HazardEventService, SubscriptionRegistry
from rover.services.hazard_store import HazardStore, create_hazard_store


# Setup logging early
setup_logging()
logger = logging.getLogger(__name__)


def validate_startup_configuration() -> None:
    """
    Validate configuration at startup.
    Exits with error in production if requirements are not met.
    """
    errors = settings.validate_production_settings()

    if errors:
        logger.error("=" * 60)
        logger.error("CONFIGURATION ERRORS")
        logger.error("=" * 60)
        for error in errors:
            logger.error(f"  - {error}")
        logger.error("=" * 60)

        if settings.is_production():
            logger.critical("Refusing to start in production with unsafe configuration!")
            sys.exit(1)

    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Hazard store: {settings.hazard_store_backend}")
    logger.info(f"Region precision: {settings.region_precision} decimal places")
    logger.info(f"Debug Mode: {settings.debug}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    logger.info(f"Starting {settings.app_name}...")

    validate_startup_configuration()

    store: HazardStore = app.state.hazard_store or create_hazard_store()
    try:
        await store.start()
        logger.info("Hazard store connection established")
    except StoreUnavailable as e:
        logger.error(f"Hazard store connection failed: {e}")
        if settings.is_production():
            sys.exit(1)

    app.state.hazard_store = store
    app.state.event_service = HazardEventService(
        store=store,
        registry=SubscriptionRegistry(),
        connections=ConnectionManager(),
    )

    logger.info(f"{settings.app_name} started successfully")

    yield

    logger.info("Shutting down...")
    await store.close()
    logger.info("Hazard store closed")


def create_app(hazard_store: Optional[HazardStore] = None) -> FastAPI:
    """Build the application. ``hazard_store`` overrides the configured backend."""
    app = FastAPI(
        title=settings.app_name,
        description="""
Real-time, location-scoped hazard reporting.

## Realtime events

Connect a WebSocket to `/ws` and exchange JSON frames `{"event": ..., "data": ...}`:

- `join-location {lat, lng}` subscribes to the surrounding region
- `report-hazard {type, location: {lat, lng}, userId}` broadcasts `new-hazard` to the region
- `verify-hazard {hazardId, userId}` broadcasts `hazard-updated` to everyone
- `delete-hazard {hazardId, userId}` broadcasts `hazard-deleted` to everyone

## Error Responses

All HTTP errors follow a consistent format:
```json
{
  "error": {
    "code": "ERROR_CODE",
    "message": "Human-readable message",
    "request_id": "abc123"
  }
}
```
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production() else None,
        redoc_url="/redoc" if not settings.is_production() else None,
        openapi_url="/openapi.json" if not settings.is_production() else None,
    )
    app.state.hazard_store = hazard_store

    register_exception_handlers(app)

    # Request logging (outermost - captures everything)
    app.add_middleware(RequestLoggingMiddleware)

    # CORS (innermost for preflight handling)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        expose_headers=["X-Request-ID"],
        max_age=600,
    )

    app.include_router(api_router, prefix="/api/v1")
    app.include_router(events.router, tags=["Realtime"])

    @app.get("/health", tags=["Health"])
    async def health_check():
        """
        Basic health check endpoint.
        Returns service status without touching the hazard store.
        """
        return {
            "status": "healthy",
            "service": settings.app_name,
            "environment": settings.app_env,
        }

    @app.get("/", tags=["Root"])
    async def root():
        """
        Root endpoint with API information.
        """
        response = {
            "name": settings.app_name,
            "version": "1.0.0",
            "health": "/health",
            "events": "/ws",
        }

        if not settings.is_production():
            response["docs"] = "/docs"
            response["redoc"] = "/redoc"

        return response

    return app


app = create_app()
