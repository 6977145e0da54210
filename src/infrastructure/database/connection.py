# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Async SQLAlchemy engine for the progression database.

The API process holds one engine, created by init_database() at startup.
Request handlers get sessions through get_session(), which commits when
the handler returns and rolls back when it raises. Workers build their
own short-lived engine with create_engine_and_sessionmaker().
"""

import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from src.core.config.settings import Settings

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


class DatabaseError(Exception):
    """The database is unavailable or an operation on it failed."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error is None:
            return self.message
        return f"{self.message}: {self.original_error}"


def create_engine_and_sessionmaker(
    settings: "Settings",
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Build an asyncpg engine and a sessionmaker bound to it."""
    engine = create_async_engine(
        settings.db.url,
        pool_size=settings.db.pool_size,
        max_overflow=settings.db.max_overflow,
        pool_pre_ping=True,
        pool_recycle=1800,
        echo=settings.debug and settings.log_level == "DEBUG",
    )
    return engine, async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def init_database(settings: "Settings") -> None:
    """Create the process-wide engine.

    Raises:
        DatabaseError: If the engine cannot be created.
    """
    global _engine, _sessionmaker

    try:
        _engine, _sessionmaker = create_engine_and_sessionmaker(settings)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to initialize database connection", e) from e


async def close_database() -> None:
    global _engine, _sessionmaker

    engine, _engine, _sessionmaker = _engine, None, None
    if engine is not None:
        await engine.dispose()


def _require_engine() -> AsyncEngine:
    if _engine is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _engine


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """A session committed on success and rolled back on error.

    Raises:
        DatabaseError: If the database is not initialized or SQLAlchemy fails.
    """
    if _sessionmaker is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")

    async with _sessionmaker() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise DatabaseError("Database operation failed", e) from e
        except Exception:
            await session.rollback()
            raise


async def ping_database() -> float:
    """Run ``SELECT 1`` and return the round trip in milliseconds.

    Raises:
        DatabaseError: If the database is not initialized or unreachable.
    """
    engine = _require_engine()
    started = time.perf_counter()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise DatabaseError("Database is unreachable", e) from e
    return (time.perf_counter() - started) * 1000
