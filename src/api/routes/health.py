# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Liveness and readiness probes."""

import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from src.core.config import get_settings
from src.infrastructure.background import get_broker_manager, get_scheduler
from src.infrastructure.database.connection import DatabaseError, ping_database

logger = logging.getLogger(__name__)

router = APIRouter()

API_VERSION = "1.0.0"

_started_at = time.monotonic()


class ComponentHealth(BaseModel):
    status: str = Field(description="healthy or unhealthy")
    latency_ms: float | None = Field(None, description="Probe round trip in ms")
    message: str | None = Field(None, description="Failure reason")


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str
    uptime_seconds: int


class ReadinessResponse(BaseModel):
    ready: bool = Field(description="True when the database answers")
    checks: dict[str, Any]


async def check_database() -> ComponentHealth:
    try:
        latency = await ping_database()
    except DatabaseError as e:
        logger.error("Database readiness probe failed: %s", e)
        return ComponentHealth(status="unhealthy", message=str(e))
    return ComponentHealth(status="healthy", latency_ms=round(latency, 2))


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness. Never touches a dependency."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=API_VERSION,
        environment=get_settings().environment,
        uptime_seconds=int(time.monotonic() - _started_at),
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check() -> ReadinessResponse:
    """Readiness: database reachability gates traffic, broker and scheduler are informational."""
    database = await check_database()
    return ReadinessResponse(
        ready=database.status == "healthy",
        checks={
            "database": {"status": database.status, "latency_ms": database.latency_ms},
            "broker": get_broker_manager().get_queue_stats(),
            "scheduler": get_scheduler().get_stats(),
        },
    )
