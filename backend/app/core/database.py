"""Async SQLAlchemy engine and session management.

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) for local runs and tests.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Session
from sqlalchemy.pool import NullPool, AsyncAdaptedQueuePool

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


# =============================================================================
# Post-commit side effects
# =============================================================================

_AFTER_COMMIT_KEY = "after_commit_callbacks"

# Strong references to in-flight post-commit tasks
_background_tasks: set[asyncio.Task] = set()


def run_after_commit(session: AsyncSession, callback: Callable[[], Awaitable[Any]]) -> None:
    """Queue ``callback`` to be started once ``session`` commits.

    The callback is not awaited by the committing request. A rollback
    discards everything queued on the session.
    """
    session.info.setdefault(_AFTER_COMMIT_KEY, []).append(callback)


def pending_after_commit(session: AsyncSession) -> int:
    return len(session.info.get(_AFTER_COMMIT_KEY, []))


@event.listens_for(Session, "after_commit")
def _start_after_commit_callbacks(session: Session) -> None:
    callbacks = session.info.pop(_AFTER_COMMIT_KEY, [])
    if not callbacks:
        return
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.warning(f"[DB] {len(callbacks)} post-commit callback(s) dropped: no running event loop")
        return
    for callback in callbacks:
        task = loop.create_task(callback())
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)


@event.listens_for(Session, "after_rollback")
def _discard_after_commit_callbacks(session: Session) -> None:
    dropped = session.info.pop(_AFTER_COMMIT_KEY, [])
    if dropped:
        logger.info(f"[DB] Rollback discarded {len(dropped)} post-commit callback(s)")


# Engine and session factory (lazy initialization)
_engine = None
_async_session_factory = None


def get_engine():
    """Get or create the async engine.

    Pool settings:
    - PostgreSQL: queue pool with pre-ping
    - SQLite: NullPool
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        is_sqlite = "sqlite" in settings.database_url

        if is_sqlite:
            pool_config = {
                "poolclass": NullPool,
                "connect_args": {"check_same_thread": False},
            }
        else:
            pool_config = {
                "poolclass": AsyncAdaptedQueuePool,
                "pool_size": 5,
                "max_overflow": 10,
                "pool_timeout": 30,
                "pool_recycle": 1800,
                "pool_pre_ping": True,
            }

        _engine = create_async_engine(
            settings.database_url,
            echo=False,
            **pool_config,
        )
    return _engine


def get_session_factory():
    """Get or create the session factory."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions.

    Rolls back on any exception so a failed lease operation never leaves a
    partial write behind.
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Async context manager for sessions outside FastAPI routes (sweeps, scripts)."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """Create all tables (development and tests; production uses Alembic)."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Dispose the engine."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
