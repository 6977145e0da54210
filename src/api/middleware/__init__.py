# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request middleware: bearer authentication and rate limiting."""

from src.api.middleware.auth import AuthMiddleware, CurrentUser
from src.api.middleware.rate_limit import limiter, rate_limit_exceeded_handler

__all__ = [
    "AuthMiddleware",
    "CurrentUser",
    "limiter",
    "rate_limit_exceeded_handler",
]
