"""Database configuration and session management.

Provides an explicitly constructed ``Database`` handle wrapping the async
SQLAlchemy engine and session factory. The handle is built once in the
application lifespan and injected into every service; there is no
module-level engine.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from fulfillment.domain.exceptions import StoreUnavailableError
from fulfillment.infrastructure.config import Settings

logger = structlog.get_logger()

# Base class for models
Base = declarative_base()

# Errors that mean the store is unreachable or too slow, not that the
# statement itself was wrong.
_TRANSIENT_ERRORS = (OperationalError, PoolTimeoutError, asyncio.TimeoutError, TimeoutError)


def _engine_options(settings: Settings) -> dict[str, Any]:
    """Build engine keyword arguments for the configured driver."""
    options: dict[str, Any] = {"echo": settings.debug}
    if settings.database_url.startswith("sqlite"):
        return options
    options["pool_pre_ping"] = True
    options["pool_timeout"] = settings.database_pool_timeout_seconds
    if settings.database_url.startswith("postgresql+asyncpg"):
        options["connect_args"] = {
            "timeout": settings.database_command_timeout_seconds,
            "command_timeout": settings.database_command_timeout_seconds,
        }
    return options


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    """Make SQLite emit a real BEGIN so savepoints and rollbacks behave.

    The sqlite3 driver otherwise defers BEGIN until the first write,
    which lets a SAVEPOINT release commit the surrounding transaction.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class Database:
    """Handle to the transactional relational store.

    Example usage:
        db = Database.from_settings(settings)
        async with db.transaction() as session:
            session.add(product)
    """

    def __init__(self, engine: AsyncEngine) -> None:
        """Initialize database handle.

        Args:
            engine: Async SQLAlchemy engine.
        """
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Create a database handle from application settings."""
        engine = create_async_engine(settings.database_url, **_engine_options(settings))
        if settings.database_url.startswith("sqlite"):
            _enable_sqlite_transactions(engine)
        return cls(engine)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Open a session inside a single all-or-nothing transaction.

        The transaction commits when the block exits normally and rolls
        back on any exception, including task cancellation. Transient
        driver failures are re-raised as ``StoreUnavailableError``.

        Yields:
            AsyncSession bound to the open transaction.
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield session
        except _TRANSIENT_ERRORS as e:
            logger.warning("Store unavailable", error=str(e))
            raise StoreUnavailableError() from e
        except DBAPIError as e:
            if e.connection_invalidated:
                logger.warning("Store connection invalidated", error=str(e))
                raise StoreUnavailableError() from e
            raise

    async def create_all(self) -> None:
        """Create database tables if they don't exist."""
        # Import models so their tables are registered on Base.metadata
        from fulfillment.infrastructure import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """Check database connectivity.

        Returns:
            True if a trivial query succeeds.
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (*_TRANSIENT_ERRORS, DBAPIError) as e:
            logger.warning("Database ping failed", error=str(e))
            return False

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()
