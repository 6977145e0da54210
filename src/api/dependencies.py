# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependencies: sessions, role guards and services.

Role guards read the user the auth middleware attached to the request.
A missing user is a 401; a user of the wrong type is a 403.
"""

from typing import AsyncGenerator, Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.auth import CurrentUser, get_current_user
from src.core.config import get_settings
from src.core.config.settings import SuggestionSettings
from src.domains.prerequisite import PrerequisiteService
from src.domains.suggestion import SuggestionService
from src.infrastructure.database.connection import get_session

ADMIN_TYPES = ("tenant_admin", "school_admin")
STAFF_TYPES = ("teacher", *ADMIN_TYPES)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with get_session() as session:
        yield session


def require_auth(request: Request) -> CurrentUser:
    """Return the authenticated user or answer 401."""
    user = get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def _require_user_type(*user_types: str, detail: str) -> Callable[[Request], CurrentUser]:
    def guard(request: Request) -> CurrentUser:
        user = require_auth(request)
        if user.user_type not in user_types:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
        return user

    return guard


# Curates the prerequisite graph.
require_admin = _require_user_type(*ADMIN_TYPES, detail="Admin access required")
# Reads the graph, acts on group suggestions and training plans.
require_teacher_or_admin = _require_user_type(
    *STAFF_TYPES, detail="Teacher or admin access required"
)
# Reads and decides on their own suggestions.
require_student = _require_user_type("student", detail="Student access required")


def get_suggestion_settings() -> SuggestionSettings:
    return get_settings().suggestion


def get_prerequisite_service(db: AsyncSession = Depends(get_db)) -> PrerequisiteService:
    return PrerequisiteService(db)


def get_suggestion_service(
    db: AsyncSession = Depends(get_db),
    settings: SuggestionSettings = Depends(get_suggestion_settings),
) -> SuggestionService:
    return SuggestionService(db, settings)
