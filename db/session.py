"""Database session management for the salon booking engine."""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.pool import NullPool

from core.settings import settings


DATABASE_URL = settings.database_url

# Ensure async driver is used
if DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)
elif DATABASE_URL.startswith("sqlite://"):
    DATABASE_URL = DATABASE_URL.replace("sqlite://", "sqlite+aiosqlite://", 1)


class DatabaseConfig:
    """Database configuration settings."""

    # Connection pool settings
    POOL_SIZE: int = settings.db_pool_size
    MAX_OVERFLOW: int = settings.db_max_overflow
    POOL_TIMEOUT: int = settings.db_pool_timeout
    POOL_RECYCLE: int = settings.db_pool_recycle
    POOL_PRE_PING: bool = True

    # Query settings
    ECHO: bool = settings.db_echo

    # SQLite waits this long for the write lock held by a concurrent booking
    SQLITE_BUSY_TIMEOUT: int = 30

    @staticmethod
    def connect_args(url: str) -> dict:
        """Driver-specific connection arguments."""
        if url.startswith("postgresql+asyncpg"):
            return {
                "server_settings": {
                    "application_name": "salon_booking",
                },
                "command_timeout": 60,
                "timeout": 10,
            }
        if url.startswith("sqlite"):
            return {"timeout": DatabaseConfig.SQLITE_BUSY_TIMEOUT}
        return {}


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores foreign keys unless asked per connection."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_engine(
    url: str = DATABASE_URL,
    pool_size: int = DatabaseConfig.POOL_SIZE,
    max_overflow: int = DatabaseConfig.MAX_OVERFLOW,
    echo: bool = DatabaseConfig.ECHO,
) -> AsyncEngine:
    """
    Create async SQLAlchemy engine.

    Args:
        url: Database URL
        pool_size: Number of connections to maintain in pool
        max_overflow: Max number of connections to create beyond pool_size
        echo: Whether to log all SQL statements

    Returns:
        Async SQLAlchemy engine
    """
    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            echo=echo,
            poolclass=NullPool,
            connect_args=DatabaseConfig.connect_args(url),
        )
        _enable_sqlite_foreign_keys(engine)
        return engine

    return create_async_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=DatabaseConfig.POOL_TIMEOUT,
        pool_recycle=DatabaseConfig.POOL_RECYCLE,
        pool_pre_ping=DatabaseConfig.POOL_PRE_PING,
        connect_args=DatabaseConfig.connect_args(url),
    )


def create_test_engine(url: str) -> AsyncEngine:
    """
    Create async engine for testing with NullPool.

    Every session gets its own connection, so concurrent bookings in a test
    contend on the database exactly as separate request handlers would.

    Args:
        url: Database URL

    Returns:
        Async SQLAlchemy engine with NullPool
    """
    engine = create_async_engine(
        url,
        echo=False,
        poolclass=NullPool,
        connect_args=DatabaseConfig.connect_args(url),
    )
    if url.startswith("sqlite"):
        _enable_sqlite_foreign_keys(engine)
    return engine


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the options every caller relies on."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Global engine instance
engine: AsyncEngine = create_engine()

# Async session factory
AsyncSessionLocal = create_session_factory(engine)


async def init_db(bind: AsyncEngine = engine) -> None:
    """Initialize database by creating all tables."""
    from .base import Base
    from . import models_sqlalchemy  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database engine and all connections."""
    await engine.dispose()
