"""Async SQLAlchemy engine (asyncpg).

``engine`` and ``session_factory`` are None when DATABASE_URL is unset;
callers check for that and use the in-memory repos instead.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from coursehub.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
else:
    engine = None
    session_factory = None


@asynccontextmanager
async def transaction() -> AsyncIterator[AsyncSession]:
    """One session inside one transaction.

    ``session.begin()`` commits when the block exits cleanly and rolls
    back when it raises.
    """
    if session_factory is None:
        raise RuntimeError("DATABASE_URL is not configured")
    async with session_factory() as session, session.begin():
        yield session


@asynccontextmanager
async def lifespan_db():
    if engine is None:
        logger.info("No DATABASE_URL configured, catalog and progress live in memory")
        yield
        return

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database reachable: %s", engine.url.render_as_string(hide_password=True))
    except Exception:
        # /ready reports the outage; startup continues.
        logger.exception("Database unreachable on startup")

    yield

    await engine.dispose()
    logger.info("Database engine disposed")
