"""
Database Connection Management

Explicitly constructed storage handle around an SQLAlchemy 2.0 async
engine. One ``Database`` is created by the application and passed into every
component; sessions and transactions are acquired and released per request
or per ingestion batch.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from retail_analytics.config import get_settings
from retail_analytics.database.models import Base

logger = structlog.get_logger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Storage handle for the sales store.

    Example:
        database = Database("sqlite+aiosqlite:///./retail.db")
        await database.connect()
        async with database.transaction() as session:
            session.add(Brand(name="Acme"))
        await database.dispose()
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        settings = get_settings()
        self.url = url or settings.database.async_url
        self.echo = settings.database.echo if echo is None else echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def engine(self) -> AsyncEngine:
        """
        Get the database engine.

        Raises:
            RuntimeError: If the handle is not connected
        """
        if self._engine is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._engine

    async def connect(self) -> AsyncEngine:
        """
        Create the engine and session factory and verify connectivity.

        Returns:
            AsyncEngine: The initialized database engine
        """
        if self._engine is not None:
            logger.warning("Database already connected")
            return self._engine

        # asyncpg and aiosqlite manage their own connections
        self._engine = create_async_engine(
            self.url,
            echo=self.echo,
            poolclass=NullPool,
        )
        if self.is_sqlite:
            event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        try:
            async with self._engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Database connection established", url=self._engine.url.render_as_string(hide_password=True))
        except Exception as e:
            logger.error("Failed to connect to database", error=str(e))
            await self.dispose()
            raise

        return self._engine

    async def create_all(self) -> None:
        """Create the schema if it does not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema initialized")

    async def dispose(self) -> None:
        """Close the engine and release all connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connection closed")

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            logger.error("Database not connected when a session was requested")
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._session_factory

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Read session for aggregation queries.

        Example:
            async with database.session() as session:
                result = await session.execute(query)
        """
        async with self._factory()() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session inside a single transaction.

        Commits when the block exits normally; rolls back and re-raises on
        any exception so nothing from the block is visible.
        """
        async with self._factory()() as session:
            try:
                async with session.begin():
                    yield session
                logger.debug("Database transaction committed")
            except Exception as e:
                logger.error(
                    "Database transaction rolled back",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

    async def health(self) -> Dict[str, Any]:
        """
        Check database health status.

        Returns:
            dict: Health status with latency information
        """
        try:
            start = time.perf_counter()
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            latency_ms = (time.perf_counter() - start) * 1000
            return {"status": "healthy", "latency_ms": round(latency_ms, 2)}
        except Exception as e:
            return {"status": "unhealthy", "error": str(e)}
