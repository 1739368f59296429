"""Database configuration and session management.

This module constructs an asynchronous SQLAlchemy engine and session
factory for the application.  The connection string comes from
``settings.DATABASE_URL``; a plain ``sqlite://`` URL is upgraded to the
``aiosqlite`` driver and Postgres URLs are normalised to ``psycopg`` so
the same settings work for local development and deployment.

Repositories take the session *factory* rather than a session so that
per-household fetches can run concurrently, each on its own session.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base

from app.core.config import settings

logger = logging.getLogger(__name__)


def normalise_database_url(raw_url: str) -> str:
    """Return ``raw_url`` with an async driver selected."""
    url_obj = make_url(raw_url)
    driver = url_obj.drivername or ""
    if driver == "sqlite":
        url_obj = url_obj.set(drivername="sqlite+aiosqlite")
    elif driver in {"postgresql", "postgres", "postgresql+psycopg2", "postgresql+asyncpg"}:
        url_obj = url_obj.set(drivername="postgresql+psycopg")
    return url_obj.render_as_string(hide_password=False)


db_url = normalise_database_url(settings.DATABASE_URL)

engine = create_async_engine(db_url, echo=settings.DATABASE_ECHO, pool_pre_ping=True)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Declarative base
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields a database session.

    This function is intended for FastAPI dependency injection.  Each
    session is scoped to the request and closed after use.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency returning the shared session factory."""
    return AsyncSessionLocal


async def init_db() -> None:
    """Create all tables declared on ``Base``.

    Typically called during application startup in development.  Schema
    migrations for deployed databases are managed outside this service.
    """
    async with engine.begin() as conn:
        # Import all models to ensure metadata is populated
        from app.models import tables  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)
    logger.info("[db] tables ensured driver=%s", engine.url.drivername)


def get_db_debug_info() -> Dict[str, Any]:
    """Return non-sensitive information about the current DB engine for debugging."""
    url_obj = make_url(db_url)
    return {
        "environment": (settings.ENVIRONMENT or "development"),
        "drivername": url_obj.drivername,
        "host": url_obj.host,
        "port": url_obj.port,
        "database": url_obj.database,
        "url": url_obj.render_as_string(hide_password=True),
    }
