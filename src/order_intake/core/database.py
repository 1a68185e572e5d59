"""Async database engine and session management."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from order_intake.models.base import Base

logger = structlog.get_logger(__name__)


def async_database_url(url: str) -> str:
    """Map a plain PostgreSQL URL onto the asyncpg driver.

    Args:
        url: Database URL as configured.

    Returns:
        URL usable with ``create_async_engine``.
    """
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix) :]
    return url


class Database:
    """Owns the async engine and hands out sessions."""

    def __init__(self, database_url: str, *, echo: bool = False) -> None:
        """Initialize database wrapper.

        Args:
            database_url: Database URL.
            echo: Log emitted SQL.
        """
        self.database_url = async_database_url(database_url)
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_connected(self) -> bool:
        """Check if the engine has been created."""
        return self._engine is not None

    async def connect(self) -> None:
        """Create the engine and session factory."""
        if self._engine is not None:
            return
        self._engine = create_async_engine(self.database_url, echo=self.echo, pool_pre_ping=True)
        self._sessionmaker = async_sessionmaker(self._engine, expire_on_commit=False)
        await logger.ainfo("database_connected")

    async def disconnect(self) -> None:
        """Dispose of the engine."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        await logger.ainfo("database_disconnected")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Open a session.

        Yields:
            AsyncSession bound to the engine.

        Raises:
            RuntimeError: If connect() has not been called.
        """
        if self._sessionmaker is None:
            raise RuntimeError("Database is not connected")
        async with self._sessionmaker() as session:
            yield session

    async def create_schema(self) -> None:
        """Create all tables known to the models (development helper)."""
        if self._engine is None:
            raise RuntimeError("Database is not connected")
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await logger.ainfo("schema_created", tables=sorted(Base.metadata.tables))

    async def drop_schema(self) -> None:
        """Drop all tables known to the models (development helper)."""
        if self._engine is None:
            raise RuntimeError("Database is not connected")
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await logger.ainfo("schema_dropped")
