# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured HTTP error bodies shared by the v1 routers."""

from typing import Any

from fastapi import HTTPException


def api_error(
    status_code: int,
    error_type: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> HTTPException:
    """Build an HTTPException whose detail carries a machine-readable type.

    The response body is ``{"detail": {"error", "type", "details"}}``.
    """
    return HTTPException(
        status_code=status_code,
        detail={"error": message, "type": error_type, "details": details or {}},
    )
