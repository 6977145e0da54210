# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bearer token authentication.

AuthMiddleware resolves the Authorization header into a CurrentUser on
``request.state.user``. It never rejects a request by itself: a missing
or invalid token leaves the user at None and the route's role guard
decides (see src.api.dependencies).
"""

import logging
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.core.config import get_settings
from src.domains.auth.jwt import JWTError, JWTManager, TokenPayload
from src.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset({
    "/",
    "/health",
    "/health/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
})


class CurrentUser:
    """The caller, as described by a validated access token.

    Attributes:
        id: User ID (learner ID for students).
        user_type: student, teacher, school_admin or tenant_admin.
        roles: Role codes.
        school_ids: Schools the user belongs to, own school first.
    """

    def __init__(self, payload: TokenPayload) -> None:
        self.id = payload.sub
        self.user_type = payload.user_type
        self.roles = list(payload.roles)
        self.school_ids = list(payload.school_ids)

    def __repr__(self) -> str:
        return f"CurrentUser(id={self.id!r}, user_type={self.user_type!r})"

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, *roles: str) -> bool:
        return not set(roles).isdisjoint(self.roles)

    @property
    def is_student(self) -> bool:
        return self.user_type == "student"

    @property
    def is_teacher(self) -> bool:
        return self.user_type == "teacher"

    @property
    def is_admin(self) -> bool:
        return self.user_type in ("tenant_admin", "school_admin")

    @property
    def is_tenant_admin(self) -> bool:
        return self.user_type == "tenant_admin"

    @property
    def primary_school_id(self) -> str | None:
        """The user's own school; scopes a learner's catalogue."""
        return self.school_ids[0] if self.school_ids else None

    @property
    def admin_scope(self) -> str | None:
        """School a staff member acts within. None for tenant admins (every school)."""
        return None if self.is_tenant_admin else self.primary_school_id

    def can_access_school(self, school_id: str | None) -> bool:
        """Public rows (no school) are open to all; tenant admins see every school."""
        return school_id is None or self.is_tenant_admin or school_id in self.school_ids


def _bearer_token(request: Request) -> str | None:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip() or " " in token.strip():
        return None
    return token.strip()


class AuthMiddleware(BaseHTTPMiddleware):
    """Attach the caller to the request and to the log context."""

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self._jwt_manager = JWTManager(get_settings().jwt)

    def _authenticate(self, request: Request) -> CurrentUser | None:
        token = _bearer_token(request)
        if token is None:
            return None
        try:
            payload = self._jwt_manager.decode_token(token, expected_type="access")
        except JWTError as e:
            logger.debug("Ignoring bearer token on %s: %s", request.url.path, e)
            return None
        return CurrentUser(payload)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.url.path in PUBLIC_PATHS:
            request.state.user = None
            return await call_next(request)

        user = self._authenticate(request)
        request.state.user = user
        if user is not None:
            bind_context(user_id=user.id, user_type=user.user_type)

        try:
            return await call_next(request)
        finally:
            clear_context()


def get_current_user(request: Request) -> CurrentUser | None:
    """The user AuthMiddleware attached, or None."""
    return getattr(request.state, "user", None)
