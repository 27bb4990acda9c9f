"""Async SQLite engine shared by every DAO."""

from __future__ import annotations

from typing import Any, ClassVar

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Declarative base for watchtower tables."""


def _is_memory_sqlite(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def _enable_sqlite_pragmas(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Process-wide engine plus the session factory handed to DAOs.

    ``init()`` runs once in the app factory; the lifespan creates tables
    on startup and calls ``close()`` on shutdown.
    """

    _engine: ClassVar[AsyncEngine | None] = None

    @staticmethod
    def init(database_url: str, *, echo: bool = False) -> async_sessionmaker[AsyncSession]:
        """Build the engine and return a session factory for DAOs.

        An in-memory SQLite URL is pinned to a single shared connection so
        every session sees the same database.
        """
        kwargs: dict[str, Any] = {"echo": echo}
        if _is_memory_sqlite(database_url):
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        engine = create_async_engine(database_url, **kwargs)
        if engine.dialect.name == "sqlite":
            event.listen(engine.sync_engine, "connect", _enable_sqlite_pragmas)
        Database._engine = engine
        return async_sessionmaker(engine, expire_on_commit=False)

    @staticmethod
    async def create_tables() -> None:
        """Create any missing tables for the device and admin models."""
        from watchtower import models  # noqa: F401  registers tables on Base.metadata

        assert Database._engine is not None, "call Database.init() first"
        async with Database._engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)

    @staticmethod
    async def close() -> None:
        """Dispose the engine. Safe to call when never initialized."""
        engine, Database._engine = Database._engine, None
        if engine is not None:
            await engine.dispose()
