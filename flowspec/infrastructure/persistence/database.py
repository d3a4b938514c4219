"""Persistence: async engine, session factory, and Base for SQLAlchemy ORM.

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) for local runs and
tests. Schema is managed by Alembic migrations.

Engine and session factory are created lazily on first use (get_db /
get_db_transactional / get_session_factory) so import does not trigger
Settings validation.
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

from flowspec.core.config import get_settings

logger = logging.getLogger(__name__)

# Set by _ensure_engine() on first use; avoids get_settings() at import time.
engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the project's session options."""
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
    settings = get_settings()
    kwargs: dict[str, Any] = {"echo": settings.database_echo, "pool_pre_ping": True}
    if not settings.is_sqlite:
        kwargs["pool_size"] = settings.db_pool_size or 10
        kwargs["max_overflow"] = settings.db_max_overflow or 20
        kwargs["pool_recycle"] = 3600
        kwargs["connect_args"] = {"command_timeout": settings.db_command_timeout or 60}
    engine = create_async_engine(settings.database_url, **kwargs)
    AsyncSessionLocal = build_session_factory(engine)
    logger.info("Database engine created (%s)", settings.database_url.split("://", 1)[0])


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the shared session factory, creating the engine on first use."""
    _ensure_engine()
    if AsyncSessionLocal is None:
        raise RuntimeError("Database engine could not be initialized")
    return AsyncSessionLocal


def get_engine() -> AsyncEngine:
    """Return the shared engine, creating it on first use."""
    _ensure_engine()
    if engine is None:
        raise RuntimeError("Database engine could not be initialized")
    return engine


async def dispose_engine() -> None:
    """Dispose the engine (shutdown); the next use creates a fresh one."""
    global engine, AsyncSessionLocal
    if engine is not None:
        await engine.dispose()
    engine = None
    AsyncSessionLocal = None


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


async def get_db() -> AsyncIterator[AsyncSession]:
    """Database session dependency for read operations.

    Does not commit; use get_db_transactional for writes.
    """
    async with get_session_factory()() as session:
        yield session


async def get_db_transactional() -> AsyncIterator[AsyncSession]:
    """Database session dependency for write operations.

    Begins a transaction, commits on success, rolls back on exception.
    Use for POST, PUT, PATCH, DELETE endpoints.
    """
    async with get_session_factory()() as session:
        async with session.begin():
            yield session
