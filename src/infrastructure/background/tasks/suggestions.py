# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Suggestion cache background tasks for CircusProgress.

Actors:
    - refresh_suggestion_cache: Nightly refresh of every active subject,
      triggered by the scheduler.
    - refresh_subject_suggestions: Refresh of a single learner or group,
      used to retry one subject after a failed run.
"""

import logging
from typing import Any

import dramatiq

from src.core.config import get_settings
from src.domains.suggestion.models import Subject, SubjectKind
from src.domains.suggestion.refresh import BatchRefreshOrchestrator
from src.domains.suggestion.sources import SqlSubjectDirectory
from src.infrastructure.background.broker import Priority, Queues, setup_dramatiq
from src.infrastructure.background.tasks.base import run_async, worker_session_factory

# Setup broker before defining actors
setup_dramatiq()

logger = logging.getLogger(__name__)


async def _run_refresh(subjects: list[Subject] | None = None) -> dict[str, Any]:
    settings = get_settings()
    async with worker_session_factory(settings) as sessionmaker:
        orchestrator = BatchRefreshOrchestrator(sessionmaker, settings.suggestion)
        summary = await orchestrator.run(subjects)
    return summary.to_dict()


async def _resolve_subject(subject_kind: str, subject_id: str) -> Subject | None:
    settings = get_settings()
    async with worker_session_factory(settings) as sessionmaker:
        async with sessionmaker() as session:
            directory = SqlSubjectDirectory(session)
            if SubjectKind(subject_kind) is SubjectKind.GROUP:
                return await directory.get_group(subject_id)
            return await directory.get_learner(subject_id)


@dramatiq.actor(
    queue_name=Queues.SUGGESTIONS,
    max_retries=1,
    time_limit=3_600_000,  # 1 hour
    priority=Priority.LOW,
)
def refresh_suggestion_cache() -> dict[str, Any]:
    """Recompute pending suggestions for every active learner and group.

    Per-subject failures are recorded in the returned summary and do
    not fail the task.

    Returns:
        Refresh summary as a dictionary.
    """
    logger.info("Suggestion cache refresh triggered")
    return run_async(_run_refresh())


@dramatiq.actor(
    queue_name=Queues.SUGGESTIONS,
    max_retries=3,
    time_limit=300_000,  # 5 minutes
    priority=Priority.NORMAL,
)
def refresh_subject_suggestions(subject_kind: str, subject_id: str) -> dict[str, Any]:
    """Recompute pending suggestions for one learner or group.

    Args:
        subject_kind: "learner" or "group".
        subject_id: User id or group id.

    Returns:
        Refresh summary, or a skipped status when the subject is not active.
    """

    async def _refresh() -> dict[str, Any]:
        subject = await _resolve_subject(subject_kind, subject_id)
        if subject is None:
            logger.warning("Skipping refresh for inactive %s %s", subject_kind, subject_id)
            return {"status": "skipped", "subject_kind": subject_kind, "subject_id": subject_id}
        return await _run_refresh([subject])

    return run_async(_refresh())


def get_suggestion_actors() -> list:
    """Get all suggestion actors."""
    return [refresh_suggestion_cache, refresh_subject_suggestions]
