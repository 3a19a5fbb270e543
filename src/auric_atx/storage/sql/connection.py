"""SQLAlchemy async engine and session helpers.

``build_service`` owns the engine it creates and registers
``engine.dispose`` as a service close hook, so the API lifespan releases
pooled connections on shutdown.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from .models import Base

logger = logging.getLogger(__name__)


def create_engine(
    url: str,
    *,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False,
) -> AsyncEngine:
    """Create an :class:`AsyncEngine` for ``postgresql+asyncpg`` or ``sqlite+aiosqlite``.

    SQLite engines get a :class:`NullPool`; every session opens its own
    connection.
    """
    pool_kwargs: dict = {}
    if url.startswith("sqlite"):
        pool_kwargs["poolclass"] = NullPool
    else:
        pool_kwargs.update(pool_size=pool_size, max_overflow=max_overflow, pool_pre_ping=True)

    engine = create_async_engine(url, echo=echo, **pool_kwargs)
    logger.info("ATX storage engine created for %s", url.split("@")[-1])
    return engine


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create the trade, epoch-state and epoch-log tables if missing."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("ATX tables created / verified")


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Commit on success, roll back on error, always close."""
    session = factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
