"""
database/session.py

Builds the SQLAlchemy asynchronous engine and session factory.
Provides an AsyncGenerator for database session dependency injection and
translates store outages into retryable `TransientStoreError`s.

The engine is created by the application lifespan (see fixlink/main.py) and
kept on `app.state`; nothing here is created at import time.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Request
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fixlink.core.config import settings
from fixlink.core.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError, asyncio.TimeoutError)


# -----------------------------------------------------
# SQLAlchemy Async Engine / Session Factory
# -----------------------------------------------------
def build_engine(url: str | None = None) -> AsyncEngine:
    """Creates the async engine for `url` (defaults to the configured database)."""
    url = url or settings.db_url
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=False,  # Set to True for SQL debugging output
        pool_pre_ping=True,
        pool_timeout=settings.DB_POOL_TIMEOUT,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,  # Prevents auto-expiration of ORM objects after commit
    )


# -----------------------------------------------------
# Dependency: Get Async DB Session
# -----------------------------------------------------
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function for FastAPI endpoints to provide an async DB session.
    Yields a single session per request, rolls back on exceptions, and closes cleanly.
    """
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as db:
        try:
            yield db
        except Exception:
            await db.rollback()
            raise


# -----------------------------------------------------
# Store Error Translation
# -----------------------------------------------------
@asynccontextmanager
async def store_errors(db: AsyncSession, operation: str) -> AsyncIterator[None]:
    """
    Wraps a unit of work; connectivity failures and timeouts become
    `TransientStoreError` after the session is rolled back.
    """
    try:
        yield
    except STORE_UNAVAILABLE_ERRORS as e:
        logger.error(f"[STORE] {operation} failed, store unavailable: {e}")
        await db.rollback()
        raise TransientStoreError() from e
