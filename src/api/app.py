# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI application factory.

Run with:
    uvicorn src.api.app:create_app --factory --host 0.0.0.0 --port 34000
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from src.api.middleware.auth import AuthMiddleware
from src.api.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from src.api.routes import health
from src.api.v1 import router as v1_router
from src.core.config import get_settings
from src.infrastructure.background import (
    setup_dramatiq,
    shutdown_dramatiq,
    start_scheduler,
    stop_scheduler,
)
from src.infrastructure.database.connection import (
    DatabaseError,
    close_database,
    init_database,
    ping_database,
)
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)


async def _connect_database() -> None:
    await init_database(get_settings())
    try:
        latency = await ping_database()
    except DatabaseError as e:
        logger.warning("Database not reachable yet: %s", e)
    else:
        logger.info("Database ready (%.1f ms)", latency)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the database pool, broker and scheduler; stop them in reverse order.

    A component that fails to start is logged and the API still serves;
    /health/ready reports what is missing.
    """
    settings = get_settings()
    logger.info("Starting CircusProgress API (environment=%s)", settings.environment)

    try:
        await _connect_database()
    except DatabaseError as e:
        logger.warning("Database pool not created: %s", e)

    try:
        setup_dramatiq()
    except Exception as e:
        logger.warning("Dramatiq broker not available: %s", e)

    try:
        await start_scheduler()
    except Exception as e:
        logger.warning("Scheduler not started: %s", e)

    yield

    # The scheduler enqueues, so it stops before the broker.
    await stop_scheduler()
    try:
        shutdown_dramatiq()
    except Exception as e:
        logger.warning("Error closing Dramatiq broker: %s", e)
    await close_database()

    logger.info("CircusProgress API stopped")


def create_app() -> FastAPI:
    """Build the API with logging, middleware and routers configured."""
    settings = get_settings()
    setup_logging(settings)

    docs_enabled = settings.debug
    app = FastAPI(
        title="CircusProgress API",
        description="Figure prerequisite graph and readiness suggestions",
        version=health.API_VERSION,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
        # A slash redirect would drop the Authorization header.
        redirect_slashes=False,
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Last added runs first: CORS answers preflights before authentication.
    app.add_middleware(AuthMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app
