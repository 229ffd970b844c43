"""Database configuration and session management.

This module constructs an asynchronous SQLAlchemy engine and session
factory for the application.  The connection string comes from
``DATABASE_URL``.  Plain ``sqlite`` and ``postgresql`` URLs are
upgraded to their async drivers (``aiosqlite`` and ``psycopg``).  A
fallback to a local SQLite file is permitted in development if
``DB_DEV_FALLBACK_SQLITE`` is enabled.
"""

from __future__ import annotations

import logging
import os
from typing import AsyncGenerator, Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base

from invoice_api.core.config import settings

logger = logging.getLogger(__name__)

SQLITE_FALLBACK_URL = "sqlite+aiosqlite:///./invoices.db"


def normalise_database_url(url: str) -> str:
    """Return ``url`` rewritten to use an async driver.

    - ``sqlite`` becomes ``sqlite+aiosqlite``
    - ``postgres``/``postgresql``/``postgresql+psycopg2``/``postgresql+asyncpg``
      become ``postgresql+psycopg``

    URLs that already name an async driver are returned unchanged.
    """
    url_obj = make_url(url)
    driver = url_obj.drivername or ""
    if driver == "sqlite":
        url_obj = url_obj.set(drivername="sqlite+aiosqlite")
    elif driver in {"postgresql", "postgres", "postgresql+psycopg2", "postgresql+asyncpg"}:
        url_obj = url_obj.set(drivername="postgresql+psycopg")
    return url_obj.render_as_string(hide_password=False)


db_url: Optional[str] = settings.DATABASE_URL or os.getenv("DATABASE_URL")

if not db_url:
    # Fail fast when no DB URL is provided and fallback is disabled; otherwise
    # use a local SQLite database for development convenience.
    if not settings.DB_DEV_FALLBACK_SQLITE:
        raise RuntimeError(
            "No database URL provided via DATABASE_URL; with "
            "DB_DEV_FALLBACK_SQLITE=false, a database URL is required."
        )
    db_url = SQLITE_FALLBACK_URL

db_url = normalise_database_url(db_url)

engine_kwargs: dict[str, Any] = dict(echo=False, pool_pre_ping=True)

logger.info("Creating async engine for %s", make_url(db_url).render_as_string(hide_password=True))
engine = create_async_engine(db_url, **engine_kwargs)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
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


async def init_db() -> None:
    """Initialize database tables.

    This helper creates all database tables as defined on the declarative
    ``Base``.  It is typically called during application startup.
    """
    async with engine.begin() as conn:
        # Import all models to ensure metadata is populated
        from invoice_api.models import tables  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)
