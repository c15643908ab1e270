from typing import Any, AsyncGenerator
import logging

from fastapi import Depends
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from travelquest.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def build_engine(url: str, **kwargs: Any) -> AsyncEngine:
    """Create an async engine for ``url``.

    SQLite engines get a shared static pool for in-memory databases and
    explicit BEGIN handling so SAVEPOINTs behave like they do on Postgres.
    """
    if url.startswith("sqlite"):
        if ":memory:" in url:
            kwargs.setdefault("poolclass", StaticPool)
        engine = create_async_engine(url, **kwargs)

        @event.listens_for(engine.sync_engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return engine

    kwargs.setdefault("pool_size", settings.DATABASE_POOL_SIZE)
    kwargs.setdefault("max_overflow", settings.DATABASE_MAX_OVERFLOW)
    kwargs.setdefault("pool_timeout", settings.DATABASE_POOL_TIMEOUT)
    kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, **kwargs)


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
AsyncSessionLocal = build_sessionmaker(engine)


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Dependency for the session factory used by transactional services."""
    return AsyncSessionLocal


async def get_db(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database session."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine = engine):
    """Initialize database, create tables if they don't exist."""
    # Registers every mapped class on Base.metadata
    import travelquest.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


async def close_db(bind: AsyncEngine = engine):
    """Close database connections."""
    await bind.dispose()
