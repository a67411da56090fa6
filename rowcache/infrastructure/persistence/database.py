"""Persistence: async engine, session factory, and Base for SQLAlchemy ORM.

Engine and session factory are created lazily on first use (get_db) so
import does not trigger Settings validation.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from rowcache.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Set by _ensure_engine() on first use; avoids get_settings() at import time.
engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.endswith("://"))


def build_engine(settings: Settings) -> AsyncEngine:
    """Create an async engine for settings.database_url.

    In-memory SQLite shares one connection (StaticPool) so every session
    sees the same database; other backends get a sized pool.
    """
    kwargs: dict[str, Any] = {"echo": settings.database_echo}
    if _is_memory_sqlite(settings.database_url):
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    elif not settings.database_url.startswith("sqlite"):
        kwargs["pool_pre_ping"] = True
        kwargs["pool_size"] = settings.db_pool_size if settings.db_pool_size is not None else 20
        kwargs["max_overflow"] = (
            settings.db_max_overflow if settings.db_max_overflow is not None else 30
        )
        kwargs["pool_recycle"] = 3600
    return create_async_engine(settings.database_url, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def _ensure_engine() -> None:
    """Create engine and AsyncSessionLocal on first use."""
    global engine, AsyncSessionLocal
    if AsyncSessionLocal is not None:
        return
    engine = build_engine(get_settings())
    AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Session for read operations. Does not commit."""
    _ensure_engine()
    assert AsyncSessionLocal is not None
    async with AsyncSessionLocal() as session:
        yield session


async def get_db_transactional() -> AsyncIterator[AsyncSession]:
    """Session for write operations.

    Begins a transaction, commits on success, rolls back on exception.
    """
    _ensure_engine()
    assert AsyncSessionLocal is not None
    async with AsyncSessionLocal() as session:
        async with session.begin():
            yield session


async def dispose_engine() -> None:
    """Dispose the lazily created engine (call on shutdown)."""
    global engine, AsyncSessionLocal
    if engine is not None:
        await engine.dispose()
        logger.info("Database engine disposed")
    engine = None
    AsyncSessionLocal = None
