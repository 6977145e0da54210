# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared pytest configuration.

Environment defaults are set before any src module is imported: the
broker and the rate limiter read them at import time.
"""

import os

os.environ.setdefault("DRAMATIQ_TEST_MODE", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only")

import pytest  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    for marker, description in (
        ("unit", "pure logic, no I/O"),
        ("integration", "HTTP layer through TestClient"),
        ("slow", "slow running"),
    ):
        config.addinivalue_line("markers", f"{marker}: {description}")
