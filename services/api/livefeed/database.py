"""
Async SQLAlchemy engine + session factory.

The engine is created once at startup from `settings.database_url` and reused
across all requests. Any SQLAlchemy async driver works; production runs on a
MySQL-protocol store (aiomysql), tests on SQLite (aiosqlite).
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None


class Base(DeclarativeBase):
    pass


async def init_db(url: str, pool_size: int = 20, max_overflow: int = 10) -> None:
    """Create the engine and all tables if they don't exist (idempotent)."""
    global _engine, _sessionmaker

    options: dict = {"pool_pre_ping": True, "echo": False}
    if not url.startswith("sqlite"):
        options.update(pool_size=pool_size, max_overflow=max_overflow)

    _engine = create_async_engine(url, **options)
    _sessionmaker = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    # models must be imported so their tables are registered on Base.metadata
    from livefeed import models  # noqa: F401

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def dispose_db() -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    if _sessionmaker is None:
        raise RuntimeError("Database not initialised — call init_db() at startup")
    return _sessionmaker


async def get_db():
    """FastAPI dependency that yields an async DB session."""
    async with get_sessionmaker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
