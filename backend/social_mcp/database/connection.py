"""Database connection management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


def normalize_url(database_url: str) -> str:
    """Map plain driver URLs onto their async drivers."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


class Database:
    """Async database connection manager.

    PostgreSQL (asyncpg) in production, SQLite (aiosqlite) for local
    runs and tests. An in-memory SQLite URL shares one connection so all
    sessions see the same data. SQLite transactions take the write lock
    when they begin, and a writer that finds it held waits up to
    ``busy_timeout`` seconds for it.
    """

    def __init__(self, database_url: str, echo: bool = False, busy_timeout: float = 30.0):
        """Initialize database connection.

        Args:
            database_url: Database connection URL.
            echo: Log every SQL statement.
            busy_timeout: Seconds a SQLite writer waits for the lock.
        """
        database_url = normalize_url(database_url)
        url = make_url(database_url)
        self.is_sqlite = url.get_backend_name() == "sqlite"

        engine_kwargs: dict = {"echo": echo}
        if self.is_sqlite:
            engine_kwargs["connect_args"] = {"timeout": busy_timeout}
            if url.database in (None, "", ":memory:"):
                engine_kwargs["poolclass"] = StaticPool
            else:
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        else:
            engine_kwargs.update(pool_size=10, max_overflow=20, pool_pre_ping=True)

        self.engine: AsyncEngine = create_async_engine(database_url, **engine_kwargs)
        if self.is_sqlite:
            _configure_sqlite_transactions(self.engine)

        self.async_session = sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session with automatic commit/rollback.

        Yields:
            AsyncSession: Database session.
        """
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Create all database tables."""
        # Import models so they register on Base.metadata
        from social_mcp.database import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database connection."""
        await self.engine.dispose()


def _configure_sqlite_transactions(engine: AsyncEngine) -> None:
    """Open every SQLite transaction with BEGIN IMMEDIATE.

    SQLAlchemy, not the driver, opens transactions so SAVEPOINT works.
    Taking the write lock at BEGIN makes a concurrent writer wait on the
    busy timeout rather than fail when upgrading a read lock.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
