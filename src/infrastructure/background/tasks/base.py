# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Running async refresh code from synchronous Dramatiq actors.

Each worker thread keeps one event loop for its whole life. An asyncpg
pool is tied to the loop that created it, so every task builds its own
engine on that loop through worker_session_factory() and disposes it
when the task ends.
"""

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Coroutine, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.config.settings import Settings
from src.infrastructure.database.connection import create_engine_and_sessionmaker

logger = logging.getLogger(__name__)

T = TypeVar("T")

_local = threading.local()


def _thread_loop() -> asyncio.AbstractEventLoop:
    loop: asyncio.AbstractEventLoop | None = getattr(_local, "loop", None)
    if loop is not None and not loop.is_closed():
        return loop

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _local.loop = loop
    logger.debug("Event loop created for worker thread %s", threading.current_thread().name)
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine to completion on the current thread's loop."""
    return _thread_loop().run_until_complete(coro)


@asynccontextmanager
async def worker_session_factory(
    settings: Settings,
) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """A sessionmaker whose engine lives only as long as the task."""
    engine, sessionmaker = create_engine_and_sessionmaker(settings)
    try:
        yield sessionmaker
    finally:
        await engine.dispose()
