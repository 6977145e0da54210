# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    prerequisites: Prerequisite graph curation (add, list, update, remove edges).
    suggestions: Readiness suggestions for learners and groups.
"""

from fastapi import APIRouter

from src.api.v1 import prerequisites, suggestions

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

router.include_router(prerequisites.router, prefix="/figures", tags=["Prerequisites"])
router.include_router(suggestions.router, prefix="/suggestions", tags=["Suggestions"])

__all__ = ["router"]
