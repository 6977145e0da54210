# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fixtures for API tests.

The application is built with create_app() and never entered as a
context manager, so the lifespan (database, broker, scheduler) does not
run. Services are replaced through dependency overrides.
"""

from typing import Callable
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.core.config import get_settings
from src.domains.auth.jwt import JWTManager

SCHOOL_ID = "550e8400-e29b-41d4-a716-446655440000"


@pytest.fixture
def app() -> FastAPI:
    app = create_app()
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_headers() -> Callable[..., dict[str, str]]:
    """Build an Authorization header for a user of the given type."""
    jwt_manager = JWTManager(get_settings().jwt)

    def _make(
        user_type: str,
        user_id: str | None = None,
        school_ids: list[str] | None = None,
    ) -> dict[str, str]:
        token = jwt_manager.create_access_token(
            user_id=user_id or str(uuid4()),
            user_type=user_type,
            school_ids=[SCHOOL_ID] if school_ids is None else school_ids,
        )
        return {"Authorization": f"Bearer {token}"}

    return _make
