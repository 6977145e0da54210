# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task actors for CircusProgress.

Usage:
    from src.infrastructure.background.tasks import refresh_suggestion_cache

    refresh_suggestion_cache.send()

Running Workers:
    dramatiq src.infrastructure.background.tasks --processes 2 --threads 4
"""

from src.infrastructure.background.tasks.base import run_async, worker_session_factory
from src.infrastructure.background.tasks.suggestions import (
    get_suggestion_actors,
    refresh_subject_suggestions,
    refresh_suggestion_cache,
)

__all__ = [
    "refresh_suggestion_cache",
    "refresh_subject_suggestions",
    "get_suggestion_actors",
    "get_all_actors",
    "run_async",
    "worker_session_factory",
]


def get_all_actors() -> list:
    """Get all registered actors for worker registration."""
    return get_suggestion_actors()
