"""
Database Infrastructure
=======================

Manages database connections, session lifecycle, and engine configuration.

Uses SQLAlchemy 2.0 with asyncpg for async PostgreSQL operations.
Repositories receive the session maker rather than a session: the triage
pipeline runs outside any request and each store call is its own unit of work.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from helpdesk.config import Settings, settings as default_settings


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    SQLAlchemy 2.0 style using DeclarativeBase.
    """
    pass


# Global engine and session maker
_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """
    Get the database engine.

    Raises:
        RuntimeError: If engine has not been initialized
    """
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call init_database() first.")
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """
    Get the session maker handed to repositories.

    Raises:
        RuntimeError: If the database has not been initialized
    """
    if _session_maker is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _session_maker


def init_database(config: Settings | None = None) -> AsyncEngine:
    """
    Build the engine and session maker from settings.

    Called from the application lifespan when STORAGE_BACKEND=postgres.
    No connection is opened until the first query.
    """
    global _engine, _session_maker
    config = config or default_settings

    # asyncpg expects ssl= rather than libpq's sslmode=
    url = config.database_url.replace("sslmode=", "ssl=")

    _engine = create_async_engine(
        url,
        echo=config.debug,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_pre_ping=True,
    )

    _session_maker = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    return _engine


async def close_database() -> None:
    """
    Close the database engine and dispose of connections.

    Should be called during application shutdown.
    """
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None


@asynccontextmanager
async def get_session_context(
    session_maker: async_sessionmaker[AsyncSession] | None = None
) -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager for database sessions.

    Commits on success, rolls back and re-raises on error.

    Usage:
        async with get_session_context() as session:
            result = await session.execute(select(TicketModel))

    Args:
        session_maker: Explicit maker; defaults to the one built by init_database()
    """
    maker = session_maker or get_session_maker()
    async with maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """
    Create all database tables.

    This should only be used for development/testing.
    Production should use migrations (Alembic).
    """
    # Registers the triage models on Base.metadata
    from helpdesk.triage.infrastructure import models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
