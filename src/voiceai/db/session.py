"""Async engine and session management.

The engine is created lazily from ``settings.database`` and shared by the
API, the in-process scheduler and the CLI. ``close_db`` disposes it so the
next call builds a fresh one.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from voiceai.config import DatabaseSettings, get_settings
from voiceai.db.base import Base


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _engine_options(config: DatabaseSettings) -> dict[str, Any]:
    if config.url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
    }


def _ensure_sqlite_directory(url: str) -> None:
    if not url.startswith("sqlite") or "///" not in url:
        return
    db_path = url.split("///", 1)[1]
    if db_path and db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)


def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Have SQLAlchemy emit BEGIN itself on SQLite connections.

    The sqlite3 driver defers BEGIN until the first write, so a savepoint
    opened before it would commit on release instead of nesting.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_engine() -> AsyncEngine:
    """Get or create the async database engine."""
    global _engine

    if _engine is None:
        config = get_settings().database
        _ensure_sqlite_directory(config.url)
        _engine = create_async_engine(
            config.url,
            echo=config.echo,
            pool_pre_ping=True,
            **_engine_options(config),
        )
        if config.url.startswith("sqlite"):
            _enable_sqlite_savepoints(_engine)

    return _engine


def _make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory."""
    global _session_factory

    if _session_factory is None:
        _session_factory = _make_session_factory(get_engine())

    return _session_factory


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Session scope for code outside a request.

    Commits when the block exits normally, rolls back on any exception.
    The report pipeline opens one of these per step.

    Usage:
        async with get_db_context() as db:
            await UserRepository(db).get_eligible_for_monthly_report(now)
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency wrapping ``get_db_context``."""
    async with get_db_context() as session:
        yield session


async def init_db() -> None:
    """Create all tables that do not exist yet."""
    from voiceai.db import models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose the engine; call during application shutdown."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


# Testing utilities
async def create_test_engine(url: str = "sqlite+aiosqlite:///:memory:") -> AsyncEngine:
    """Create an engine (in-memory SQLite by default) with all tables."""
    from voiceai.db import models  # noqa: F401

    engine = create_async_engine(
        url,
        connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
    )
    if url.startswith("sqlite"):
        _enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return engine


def get_test_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to a test engine."""
    return _make_session_factory(engine)
