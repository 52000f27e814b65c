"""Database connection and session management for testvault."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.ext.asyncio import (
    create_async_engine as _create_async_engine,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

from testvault.storage.config import Settings
from testvault.storage.logging import get_logger
from testvault.storage.models import Base

logger = get_logger(__name__)


def normalize_database_url(database_url: str) -> str:
    """Rewrite ``postgresql://`` URLs to use the asyncpg driver."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


def create_async_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    pool_timeout: float = 30.0,
) -> AsyncEngine:
    """
    Create an async SQLAlchemy engine.

    Args:
        database_url: PostgreSQL connection URL.
        echo: Whether to log SQL statements.
        pool_size: Maximum number of pooled connections.
        pool_timeout: Seconds to wait for a pooled connection.

    Returns:
        AsyncEngine instance.
    """
    return _create_async_engine(
        normalize_database_url(database_url),
        echo=echo,
        pool_pre_ping=True,
        pool_size=pool_size,
        pool_timeout=pool_timeout,
    )


def get_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session maker bound to the engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


# Global instances (initialized by the CLI before any command runs)
_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def init_db(settings: Settings) -> async_sessionmaker[AsyncSession]:
    """
    Initialize database engine and session maker.

    Args:
        settings: Application settings.

    Returns:
        The session maker, also kept as the module-level default.
    """
    global _engine, _session_maker
    _engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=settings.db_pool_size,
        pool_timeout=settings.db_pool_timeout,
    )
    _session_maker = get_session_maker(_engine)
    return _session_maker


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_maker is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_maker


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a session that commits on success and rolls back on error.

    Yields:
        AsyncSession for database operations.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def check_connection() -> bool:
    """Return True if the database answers a trivial query."""
    try:
        async with session_scope() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("database_connection_failed", error=str(e))
        return False
    logger.info("database_connection_ok")
    return True


async def create_schema() -> None:
    """Create all tables that do not exist yet."""
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None
