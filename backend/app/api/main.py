"""Entry point for the FastAPI application.

This module constructs the FastAPI app, includes all routers and
sets up startup and shutdown events. When run with uvicorn it
initialises the database, creates the report cache and loads
configuration from ``app.core.config``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.observability import init_sentry
from app.core.database import init_db, get_db_debug_info
from app.api.endpoints.health import router as health_router
from app.api.routes.reports import router as reports_router
from app.api.routes.budgets import router as budgets_router
from app.api.routes.households import router as households_router
from app.api.error_handlers import register_exception_handlers
from app.services.cache import ReportCache

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    # Startup
    logger.info("Starting up...")
    if init_sentry("api"):
        logger.info("Sentry SDK initialized (api)")
    await init_db()
    app.state.report_cache = ReportCache.from_settings()
    logger.info("Report cache enabled=%s ttl=%ss", app.state.report_cache.enabled, settings.REPORT_CACHE_TTL_SECONDS)
    yield
    # Shutdown
    cache = app.state.report_cache
    if cache.enabled:
        await cache.client.aclose()
    logger.info("Shutting down...")


# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    lifespan=lifespan,
)

env_is_dev = (settings.ENVIRONMENT or "development").lower() == "development"
allow_origins = ["*"] if env_is_dev else list(settings.BACKEND_CORS_ORIGINS or [])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register custom exception handlers
register_exception_handlers(app)

# Include routers
app.include_router(health_router)
app.include_router(reports_router)
app.include_router(budgets_router)
app.include_router(households_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": f"Welcome to {settings.PROJECT_NAME}"}


@app.get("/debug/db")
async def db_debug():
    """Return non-sensitive DB diagnostics (development only)."""
    if not env_is_dev:
        return {"ok": False, "message": "disabled in non-development env"}
    return get_db_debug_info()
