"""
Async engine and session factory for the growth analytics database.

Request handlers get a session through ``get_db``; the aggregation
scheduler opens its own sessions from ``async_session_maker`` and owns
their transactions.
"""
import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import get_settings
from .models.base import Base

logger = logging.getLogger(__name__)

settings = get_settings()


def connect_args_for(environment: str) -> dict:
    """asyncpg connect arguments; production connections require SSL."""
    if environment == "production":
        return {"ssl": "require"}
    return {}


engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_timeout=10,
    pool_recycle=3600,
    connect_args=connect_args_for(settings.environment),
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session. Rolls back if the handler raises."""
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables. Alembic owns the schema outside development."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Growth analytics tables ensured")


async def close_db() -> None:
    await engine.dispose()
