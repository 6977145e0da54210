# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the database connection helpers (no server required)."""

import pytest

from src.core.config.settings import Settings
from src.infrastructure.database import connection
from src.infrastructure.database.connection import (
    DatabaseError,
    close_database,
    create_engine_and_sessionmaker,
    get_session,
    ping_database,
)


class TestDatabaseError:
    def test_str_includes_original_error(self) -> None:
        error = DatabaseError("Database operation failed", ValueError("boom"))

        assert str(error) == "Database operation failed: boom"
        assert str(DatabaseError("plain")) == "plain"


class TestUninitialized:
    @pytest.mark.asyncio
    async def test_get_session_requires_init(self) -> None:
        await close_database()

        with pytest.raises(DatabaseError, match="not initialized"):
            async with get_session():
                pass

    @pytest.mark.asyncio
    async def test_ping_requires_init(self) -> None:
        await close_database()

        with pytest.raises(DatabaseError, match="not initialized"):
            await ping_database()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        await close_database()
        await close_database()

        assert connection._engine is None


class TestEngineFactory:
    @pytest.mark.asyncio
    async def test_engine_uses_asyncpg_and_pool_settings(self) -> None:
        settings = Settings()

        engine, sessionmaker = create_engine_and_sessionmaker(settings)
        try:
            assert engine.url.drivername == "postgresql+asyncpg"
            assert engine.pool.size() == settings.db.pool_size
            assert sessionmaker.kw["expire_on_commit"] is False
        finally:
            await engine.dispose()
