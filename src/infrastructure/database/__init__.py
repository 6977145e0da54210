# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progression database: async connection and ORM models."""

from src.infrastructure.database.connection import (
    DatabaseError,
    close_database,
    create_engine_and_sessionmaker,
    get_session,
    init_database,
    ping_database,
)

__all__ = [
    "DatabaseError",
    "close_database",
    "create_engine_and_sessionmaker",
    "get_session",
    "init_database",
    "ping_database",
]
