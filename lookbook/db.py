"""SQLAlchemy 2.x database setup using asyncpg and pgvector.

The engine (and its connection pool) is process-wide state with an explicit
lifecycle: ``init_engine`` at startup, ``dispose_engine`` at shutdown.
Sessions are scoped to a single unit of work and released immediately.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings
from .models import Base

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None
_schema_ready = False

# ivfflat indexes are not expressible through the ORM metadata.
_VECTOR_INDEXES = (
    "CREATE INDEX IF NOT EXISTS people_index_vec_idx "
    "ON people_index USING ivfflat (embedding vector_cosine_ops) WITH (lists=100)",
    "CREATE INDEX IF NOT EXISTS projects_index_vec_idx "
    "ON projects_index USING ivfflat (embedding vector_cosine_ops) WITH (lists=100)",
)


def init_engine(url: str | None = None) -> AsyncEngine:
    """Create the process-wide engine if it does not exist yet."""
    global _engine, _session_maker
    if _engine is None:
        _engine = create_async_engine(
            url or settings.db.url,
            echo=settings.db.echo,
            pool_size=settings.db.pool_size,
            max_overflow=settings.db.max_overflow,
            pool_pre_ping=True,
        )
        _session_maker = async_sessionmaker(bind=_engine, expire_on_commit=False, class_=AsyncSession)
        logger.info("Database engine initialized")
    return _engine


def get_engine() -> AsyncEngine:
    return init_engine()


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    init_engine()
    assert _session_maker is not None
    return _session_maker


async def dispose_engine() -> None:
    """Drain the connection pool. Safe to call when never initialized."""
    global _engine, _session_maker, _schema_ready
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_maker = None
    _schema_ready = False


async def ensure_schema() -> None:
    """Create the vector extension, index tables and event log if absent.

    Runs the DDL once per process; later calls return immediately.
    """
    global _schema_ready
    if _schema_ready:
        return

    async with get_engine().begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
        for ddl in _VECTOR_INDEXES:
            await conn.execute(text(ddl))

    _schema_ready = True
    logger.debug("Schema ensured")


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI-friendly async session dependency.

    Usage:
        async def endpoint(session: AsyncSession = Depends(get_session)):
            ...
    """

    async with get_session_maker()() as session:
        yield session
