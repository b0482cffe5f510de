"""
Database connection management and session handling.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
    AsyncEngine,
)
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, get_settings
from .models.base import Base
from .utils.exceptions import UnavailableError

logger = logging.getLogger(__name__)


def create_database_engine(database_url: str, settings: Settings) -> AsyncEngine:
    """Create and configure the database engine with connection pooling."""
    engine_kwargs = {
        # Echo SQL queries in development
        "echo": settings.debug,
    }

    if not database_url.startswith("sqlite"):
        # Connection pool configuration for concurrent access
        engine_kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,  # Validate connections before use
            pool_recycle=3600,   # Recycle connections every hour
            isolation_level="READ COMMITTED",
        )

    if "+asyncpg" in database_url:
        engine_kwargs["connect_args"] = {
            "server_settings": {
                "application_name": "booking_engine",
            }
        }
    elif database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"timeout": 30}

    engine = create_async_engine(database_url, **engine_kwargs)

    if database_url.startswith("sqlite"):
        _use_immediate_transactions(engine)

    return engine


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """
    Make SQLite take its write lock at BEGIN.

    Deferred transactions that read and then write can deadlock against a
    concurrent writer and fail with SQLITE_BUSY instead of waiting.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory for database sessions."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=True,
    )


class DatabaseManager:
    """
    Store handle owning one engine and its session factory.

    Services receive a manager explicitly instead of reaching for a global,
    so the API process, Celery workers and tests each build their own.
    """

    def __init__(self, database_url: Optional[str] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.database_url = database_url or self.settings.database_url
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_initialized(self) -> bool:
        return self.session_factory is not None

    async def initialize(self, create_tables: Optional[bool] = None) -> None:
        """Initialize the database manager."""
        if self.is_initialized:
            return

        logger.info("Initializing database connection...")
        self.engine = create_database_engine(self.database_url, self.settings)
        self.session_factory = create_session_factory(self.engine)

        if create_tables is None:
            create_tables = self.settings.create_tables_on_startup

        if create_tables:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        logger.info("Database manager initialized")

    async def close(self) -> None:
        """Close database connections."""
        if self.engine:
            logger.info("Closing database connections...")
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("Database connections closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a database session scoped to one unit of work.

        Usage:
            async with db_manager.session() as session:
                result = await session.execute(query)

        The session commits when the block exits normally and rolls back
        when it raises. Driver errors surface as ``UnavailableError``.
        """
        if self.session_factory is None:
            raise RuntimeError("Database manager not initialized")

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Database error, transaction rolled back: {type(e).__name__}")
                raise UnavailableError() from e
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()


# Global database manager instance used by the API process
db_manager = DatabaseManager()


def get_db_manager() -> DatabaseManager:
    """FastAPI dependency returning the process-wide store handle."""
    return db_manager
