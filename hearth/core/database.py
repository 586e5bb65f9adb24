"""
Async SQLAlchemy engine and session factory. One engine per runtime.
"""

import logging
from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base. All models inherit from this."""
    pass


def create_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> AsyncEngine:
    settings = get_settings()
    url = url or settings.database_url

    # Ensure we're using async drivers
    if url.startswith("sqlite:///"):
        url = url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)

    # SQLite doesn't support pool_size / max_overflow
    is_sqlite = "sqlite" in url
    kwargs = {
        "echo": settings.debug if echo is None else echo,
    }
    if is_sqlite:
        kwargs["connect_args"] = {"timeout": 30}
    else:
        kwargs["pool_size"] = 10
        kwargs["max_overflow"] = 5
        kwargs["pool_pre_ping"] = True

    engine = create_async_engine(url, **kwargs)

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def _sqlite_pragmas(dbapi_conn, _record):
            # WAL lets readers proceed while the single writer commits
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    logger.info("Database engine created (%s)", url.split("://", 1)[0])
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables. Called on startup."""
    async with engine.begin() as conn:
        # Import all models so they register with Base.metadata
        from ..models import (  # noqa: F401
            conversation,
            memory,
            job,
            workspace_file,
        )
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/verified")


async def close_db(engine: AsyncEngine) -> None:
    """Dispose engine. Called on shutdown."""
    await engine.dispose()
    logger.info("Database engine disposed")
