# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""slowapi limiter shared by the v1 routers.

Clients are keyed by user when the request is authenticated and by
address otherwise. Counters live in Redis so every API worker shares
them. RATE_LIMIT_ENABLED=false turns every limit off.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from src.core.config import get_settings

logger = logging.getLogger(__name__)

# Accept, dismiss and restore.
RATE_LIMIT_SUGGESTION_ACTION = "30/minute"
# Prerequisite edge writes.
RATE_LIMIT_GRAPH_MUTATION = "20/minute"

RETRY_AFTER_SECONDS = 60


def get_client_identifier(request: Request) -> str:
    user = getattr(request.state, "user", None)
    if user is not None:
        return f"user:{user.id}"
    return f"ip:{get_remote_address(request)}"


def _build_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=get_client_identifier,
        default_limits=[f"{settings.rate_limit.requests_per_minute}/minute"],
        storage_uri=settings.redis.url,
        enabled=settings.rate_limit.enabled,
    )


limiter = _build_limiter()


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the API's error body shape."""
    logger.warning("Rate limit %s hit by %s", exc.detail, get_client_identifier(request))
    return JSONResponse(
        status_code=429,
        content={
            "detail": {
                "error": "Too many requests. Please try again later.",
                "type": "RATE_LIMITED",
                "details": {"limit": str(exc.detail)},
            }
        },
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )
