"""PostgreSQL store with async SQLAlchemy.

Handles:
- Database session management
- Connection pooling
- Small query helpers shared by services
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from indigo_api.settings import get_settings


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


def utcnow() -> datetime:
    """Timezone-aware 'now' used as the Python-side column default."""
    return datetime.now(timezone.utc)


# Engine and session factory (initialized on startup)
_engine = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_db() -> None:
    """Initialize database connection pool."""
    global _engine, _session_factory

    settings = get_settings()
    url = settings.async_database_url
    pool_kwargs: dict[str, Any] = {}
    if url.startswith("postgresql"):
        pool_kwargs = {"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True}

    _engine = create_async_engine(
        url,
        echo=settings.debug,
        connect_args=settings.asyncpg_connect_args,
        **pool_kwargs,
    )
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def close_db() -> None:
    """Close database connection pool."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None


async def ping_db() -> None:
    """Run a trivial query to validate connectivity."""
    async with get_session() as session:
        await session.execute(select(1))


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session context manager.

    Usage:
        async with get_session() as session:
            result = await session.execute(query)
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def count_rows(session: AsyncSession, model: Any, *where: Any) -> int:
    """COUNT(*) over a model with optional WHERE clauses."""
    result = await session.execute(select(func.count()).select_from(model).where(*where))
    return int(result.scalar_one())
