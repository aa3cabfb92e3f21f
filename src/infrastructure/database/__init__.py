"""
Metadata Store Connection
=========================

One async engine per process, created in the application lifespan and
disposed on shutdown. PostgreSQL goes through asyncpg; SQLite URLs
(aiosqlite) are accepted for local runs and tests and get no pool options.
"""

from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.config import settings


class Base(DeclarativeBase):
    """Declarative base shared by every ORM model."""


_engine: Optional[AsyncEngine] = None
_sessions: Optional[async_sessionmaker[AsyncSession]] = None


def _engine_options(url: str) -> dict:
    options: dict = {"echo": settings.debug}
    if url.startswith("sqlite"):
        return options
    options["pool_size"] = settings.db_pool_size
    options["max_overflow"] = settings.db_max_overflow
    options["pool_pre_ping"] = True
    return options


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("init_database() has not been called")
    return _engine


def init_database(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Create the engine and session factory.

    Args:
        database_url: Overrides settings.database_url

    Returns:
        The new engine
    """
    global _engine, _sessions

    url = database_url or settings.database_url
    # asyncpg takes ssl=, not libpq's sslmode=
    url = url.replace("sslmode=", "ssl=")

    _engine = create_async_engine(url, **_engine_options(url))
    _sessions = async_sessionmaker(_engine, expire_on_commit=False, autoflush=False)
    return _engine


async def close_database() -> None:
    global _engine, _sessions

    if _engine is None:
        return
    await _engine.dispose()
    _engine, _sessions = None, None


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a request-scoped session.

    Repositories commit their own writes; whatever is still pending when the
    request raises is rolled back here.
    """
    if _sessions is None:
        raise RuntimeError("init_database() has not been called")

    async with _sessions() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create missing tables from model metadata; no migrations are run."""
    import src.knowledge_base.infrastructure.models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ping_database() -> bool:
    if _engine is None:
        return False
    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        return False
    return True
