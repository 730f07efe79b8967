"""
Database session management with async SQLAlchemy 2.0.

Provides:
- Async engine with connection pooling
- Session factory with proper lifecycle
- Dependency injection for route handlers

The manager is constructed by the application factory and stored on
``app.state.db``; connect and disconnect are driven by the lifespan.
"""

import logging
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

logger = logging.getLogger(__name__)


# Base class for all ORM models
class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class DatabaseManager:
    """
    Manages database engine and session lifecycle.

    One instance per process, owned by the application.
    """

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        pooled: bool = True,
        pool_size: int = 10,
        max_overflow: int = 5,
        connect_timeout: int = 30,
    ) -> None:
        self.url = url
        self.echo = echo
        self.pooled = pooled
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.connect_timeout = connect_timeout
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    def init(self) -> None:
        """
        Initialize database engine and session factory.

        Called during application startup (lifespan event).
        """
        if self._engine is not None:
            return

        logger.info("Initializing database connection...")

        engine_kwargs: dict = {
            "echo": self.echo,
            "pool_pre_ping": True,  # Verify connections before using
            "connect_args": {"timeout": self.connect_timeout},
        }
        if self.pooled and not self.url.startswith("sqlite"):
            engine_kwargs["pool_size"] = self.pool_size
            engine_kwargs["max_overflow"] = self.max_overflow
            engine_kwargs["pool_timeout"] = self.connect_timeout
        else:
            engine_kwargs["poolclass"] = NullPool

        self.attach(create_async_engine(self.url, **engine_kwargs))

        logger.info("Database connection initialized successfully")

    def attach(self, engine: AsyncEngine) -> None:
        """Use an already-built engine (tests, scripts)."""
        self._engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,  # Don't expire objects after commit
            autoflush=False,  # Manual control over flushes
        )

    async def close(self) -> None:
        """
        Close database connections.

        Called during application shutdown (lifespan event).
        """
        if self._engine:
            logger.info("Closing database connections...")
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connections closed")

    @property
    def engine(self) -> AsyncEngine:
        """Get the database engine."""
        if not self._engine:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._engine

    def session(self) -> AsyncSession:
        """Open a new session; the caller owns its lifecycle."""
        if not self._session_factory:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._session_factory()

    async def create_all(self) -> None:
        """Create all tables (development and tests)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session with commit-on-success and rollback-on-error.

        Yields:
            AsyncSession: Database session with automatic cleanup
        """
        async with self.session() as session:
            try:
                yield session
                await session.commit()  # Auto-commit on success
            except Exception:
                await session.rollback()  # Auto-rollback on error
                raise


def get_db_manager(request: Request) -> DatabaseManager:
    """Return the store handle owned by the running application."""
    return request.app.state.db


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        from app.core.database import get_db

        @router.get("/plans")
        async def list_plans(db: AsyncSession = Depends(get_db)):
            ...
    """
    async for session in get_db_manager(request).get_session():
        yield session
