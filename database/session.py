"""
Async engine and session handling for the SQL queue store.

Plain database URLs are upgraded to their asyncio driver:
  postgresql:// | postgres://   → postgresql+asyncpg://   (requires asyncpg)
  mysql:// | mysql+pymysql://   → mysql+aiomysql://       (requires aiomysql)
  sqlite://                     → sqlite+aiosqlite://     (requires aiosqlite)

Two ways in:
    engine = create_engine_for_url(url)            # explicit, e.g. tests or a second database
    store = SqlQueueStore(create_session_factory(engine))

    await init_db()                                # global engine from settings.database.url
    async with get_session() as db: ...
    await close_db()
"""
from __future__ import annotations

import structlog
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker,
)

from config.settings import get_settings
from database.models import Base

logger = structlog.get_logger()

_ASYNC_DRIVERS = {
    "postgresql": "asyncpg",
    "mysql": "aiomysql",
    "sqlite": "aiosqlite",
}

# server databases only; SQLite gets the default pool
_POOL_OPTIONS = {
    "pool_size": 10,
    "max_overflow": 20,
    "pool_timeout": 30,
    "pool_recycle": 1800,
    "pool_pre_ping": True,
}

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _to_async_url(db_url: str) -> str:
    url = make_url(db_url)
    backend, _, driver = url.drivername.partition("+")
    if backend == "postgres":
        backend = "postgresql"
    async_driver = _ASYNC_DRIVERS.get(backend)
    if async_driver is None or driver == async_driver:
        return url.render_as_string(hide_password=False)
    return url.set(drivername=f"{backend}+{async_driver}").render_as_string(hide_password=False)


def _engine_kwargs(db_url: str, echo: bool = False) -> dict[str, Any]:
    if make_url(db_url).get_backend_name() == "sqlite":
        return {"echo": echo, "connect_args": {"check_same_thread": False}}
    return {"echo": echo, **_POOL_OPTIONS}


def create_engine_for_url(db_url: str, echo: bool = False) -> AsyncEngine:
    async_url = _to_async_url(db_url)
    return create_async_engine(async_url, **_engine_kwargs(async_url, echo))


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_engine() -> AsyncEngine:
    """Return the process-wide engine for ``settings.database.url``."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine_for_url(settings.database.url, echo=settings.debug)
        logger.info("database_engine_created",
                    dialect=_engine.dialect.name,
                    url=_engine.url.render_as_string(hide_password=True))
    return _engine


@asynccontextmanager
async def session_scope(factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Commit on clean exit, roll back and re-raise on error."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    async with session_scope(_session_factory) as session:
        yield session


async def init_db(engine: AsyncEngine = None) -> None:
    """Create the queue table and its indexes if missing."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_initialized",
                dialect=engine.dialect.name,
                tables=sorted(Base.metadata.tables))


async def close_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("database_closed", dialect=_engine.dialect.name)
    _engine = None
    _session_factory = None
