"""Async database engine construction.

The application talks to its store through SQLAlchemy's asyncio extension.
SQLite (via aiosqlite) is the default backend; any async URL SQLAlchemy
understands works as long as its dialect supports ``ON CONFLICT DO NOTHING``.

Engines are built on demand rather than at import time so tests and the CLI
can point at their own database files.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import settings


def create_engine(url: str | None = None, echo: bool | None = None) -> AsyncEngine:
    """Create an async engine for ``url`` (defaults to ``settings.database_url``).

    SQLite connections get WAL journaling and a busy timeout so concurrent
    backfills writing to the same file wait for the lock instead of failing.
    """
    db_url = url or settings.database_url
    engine = create_async_engine(
        db_url,
        echo=settings.debug if echo is None else echo,
        pool_pre_ping=True,
    )

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _sqlite_pragmas(dbapi_connection, connection_record):  # noqa: ARG001
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with explicit transaction control."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )
