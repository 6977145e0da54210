# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Batch refresh of the suggestion cache.

One run loads a single graph snapshot and the catalogue entries of every
candidate, enumerates the active subjects, and refreshes each subject in
its own session:

1. Fetch the subject's completion once for every figure involved.
2. Score each candidate the subject can see and has not already
   satisfied; candidates without required prerequisites are skipped.
3. Upsert the pending entries and prune pending entries for candidates
   no longer produced.
4. Commit.

Subjects run with bounded parallelism and a per-subject timeout. A
failure or timeout is logged and recorded in the summary; it never stops
the other subjects. The orchestrator is the only writer of pending
entries and never modifies accepted or dismissed ones.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, AsyncContextManager, Awaitable, Callable

from src.core.config.settings import SuggestionSettings
from src.domains.prerequisite.graph import PrerequisiteGraph
from src.domains.prerequisite.service import PrerequisiteService
from src.domains.suggestion.cache import SuggestionCacheService
from src.domains.suggestion.models import (
    CompletionStatus,
    FigureRef,
    Subject,
    SuggestionError,
)
from src.domains.suggestion.scoring import NotApplicableError, PreparationScoreCalculator
from src.domains.suggestion.sources import (
    CatalogSource,
    CompletionSource,
    SqlCatalogSource,
    SqlCompletionSource,
    SqlSubjectDirectory,
    SubjectDirectory,
)
from src.utils.datetime import utc_now
from src.utils.logging import bind_context

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[Any]]


class SubjectRefreshFailure(SuggestionError):
    """One subject's refresh failed. Recorded in the summary, never propagated."""

    def __init__(self, subject: Subject, reason: str) -> None:
        super().__init__(f"Refresh failed for {subject}: {reason}")
        self.subject = subject
        self.reason = reason


class OutcomeStatus(str, Enum):
    """Result of one subject's refresh."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class SubjectOutcome:
    """Per-subject record in a refresh summary."""

    subject: Subject
    status: OutcomeStatus
    entries_written: int = 0
    entries_pruned: int = 0
    candidates_skipped: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_kind": self.subject.kind.value,
            "subject_id": self.subject.id,
            "status": self.status.value,
            "entries_written": self.entries_written,
            "entries_pruned": self.entries_pruned,
            "candidates_skipped": self.candidates_skipped,
            "error": self.error,
        }


@dataclass
class RefreshSummary:
    """Replayable record of one refresh run, outcomes in subject order."""

    started_at: datetime
    finished_at: datetime
    outcomes: list[SubjectOutcome] = field(default_factory=list)

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return self._count(OutcomeStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        """Failed subjects, timeouts included."""
        return self.processed - self.succeeded

    @property
    def timed_out(self) -> int:
        return self._count(OutcomeStatus.TIMED_OUT)

    @property
    def entries_written(self) -> int:
        return sum(o.entries_written for o in self.outcomes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "timed_out": self.timed_out,
            "entries_written": self.entries_written,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


async def _load_graph(session: Any) -> PrerequisiteGraph:
    return await PrerequisiteService(session).load_graph()


class BatchRefreshOrchestrator:
    """Repopulates pending suggestions for every active subject.

    Collaborators are built per session through factories so the run can
    be exercised against in-memory fakes.

    Attributes:
        settings: Suggestion engine settings.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        settings: SuggestionSettings,
        *,
        graph_loader: Callable[[Any], Awaitable[PrerequisiteGraph]] = _load_graph,
        directory_factory: Callable[[Any], SubjectDirectory] = SqlSubjectDirectory,
        catalog_factory: Callable[[Any], CatalogSource] = SqlCatalogSource,
        completion_factory: Callable[[Any], CompletionSource] | None = None,
        cache_factory: Callable[[Any], SuggestionCacheService] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self.settings = settings
        self._graph_loader = graph_loader
        self._directory_factory = directory_factory
        self._catalog_factory = catalog_factory
        self._completion_factory = completion_factory or (
            lambda session: SqlCompletionSource(session, settings.group_satisfaction_ratio)
        )
        self._cache_factory = cache_factory or (
            lambda session: SuggestionCacheService(session, settings.cache_ttl_hours)
        )
        self._clock = clock

    async def run(self, subjects: list[Subject] | None = None) -> RefreshSummary:
        """Refresh every active subject, or only the given ones.

        Returns:
            Summary with one outcome per subject, in subject order.
        """
        started_at = self._clock()

        async with self._session_factory() as session:
            graph = await self._graph_loader(session)
            if subjects is None:
                subjects = await self._directory_factory(session).list_subjects()
            candidates = await self._catalog_factory(session).get_figures(
                graph.candidate_ids()
            )

        logger.info(
            "Suggestion refresh started: %d subjects, %d candidates, %d edges",
            len(subjects),
            len(candidates),
            len(graph),
        )

        semaphore = asyncio.Semaphore(self.settings.refresh_concurrency)

        async def bounded(subject: Subject) -> SubjectOutcome:
            async with semaphore:
                return await self._refresh_isolated(subject, graph, candidates)

        outcomes = await asyncio.gather(*(bounded(subject) for subject in subjects))

        summary = RefreshSummary(
            started_at=started_at,
            finished_at=self._clock(),
            outcomes=list(outcomes),
        )
        logger.info(
            "Suggestion refresh finished: processed=%d succeeded=%d failed=%d "
            "timed_out=%d entries_written=%d",
            summary.processed,
            summary.succeeded,
            summary.failed,
            summary.timed_out,
            summary.entries_written,
        )
        return summary

    async def _refresh_isolated(
        self,
        subject: Subject,
        graph: PrerequisiteGraph,
        candidates: dict[str, FigureRef],
    ) -> SubjectOutcome:
        timeout = self.settings.refresh_subject_timeout_seconds
        bind_context(subject=str(subject))
        try:
            return await asyncio.wait_for(
                self.refresh_subject(subject, graph, candidates),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            failure = SubjectRefreshFailure(subject, f"timed out after {timeout:g}s")
            logger.error("%s", failure)
            return SubjectOutcome(subject, OutcomeStatus.TIMED_OUT, error=failure.reason)
        except Exception as e:
            failure = SubjectRefreshFailure(subject, str(e) or type(e).__name__)
            logger.error("%s", failure, exc_info=True)
            return SubjectOutcome(subject, OutcomeStatus.FAILED, error=failure.reason)

    async def refresh_subject(
        self,
        subject: Subject,
        graph: PrerequisiteGraph,
        candidates: dict[str, FigureRef],
    ) -> SubjectOutcome:
        """Recompute and store one subject's pending suggestions.

        Args:
            subject: Learner or group.
            graph: Graph snapshot of this run.
            candidates: Catalogue entries of every candidate figure.

        Returns:
            A successful outcome. Errors propagate to the caller.
        """
        visible = sorted(
            figure_id
            for figure_id, figure in candidates.items()
            if figure.visible_to(subject.school_id)
        )

        async with self._session_factory() as session:
            calculator = PreparationScoreCalculator(graph, self._completion_factory(session))
            completion = await calculator.prefetch(subject, visible)
            cache = self._cache_factory(session)
            now = self._clock()

            written = 0
            skipped = 0
            kept: list[str] = []
            for figure_id in visible:
                if completion.get(figure_id) is CompletionStatus.SATISFIED:
                    skipped += 1
                    continue
                try:
                    readiness = await calculator.compute_score(subject, figure_id)
                except NotApplicableError:
                    skipped += 1
                    continue
                kept.append(figure_id)
                if await cache.upsert_pending(subject, figure_id, readiness, now=now):
                    written += 1

            pruned = await cache.prune_pending(subject, kept)
            await session.commit()

        logger.debug(
            "Refreshed %s: written=%d pruned=%d skipped=%d",
            subject,
            written,
            pruned,
            skipped,
        )
        return SubjectOutcome(
            subject,
            OutcomeStatus.SUCCEEDED,
            entries_written=written,
            entries_pruned=pruned,
            candidates_skipped=skipped,
        )
