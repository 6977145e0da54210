# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Suggestion read and decision service.

This module provides the SuggestionService class for the request path:
- Listing a subject's pending suggestions
- Per-prerequisite breakdown of one candidate
- Accept, dismiss and restore decisions
- Learning-plan notifications

Nothing here writes pending scores; only the batch refresh does.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.settings import SuggestionSettings
from src.domains.prerequisite.graph import PrerequisiteGraph
from src.domains.prerequisite.service import PrerequisiteService
from src.domains.suggestion.cache import SuggestionCacheService
from src.domains.suggestion.models import (
    PlanChange,
    Subject,
    SuggestionError,
    TransitionOutcome,
)
from src.domains.suggestion.scoring import (
    NotApplicableError,
    PreparationScoreCalculator,
    describe_prerequisites,
)
from src.domains.suggestion.sources import (
    SqlCatalogSource,
    SqlCompletionSource,
    SqlSubjectDirectory,
)
from src.infrastructure.database.models import FigureSuggestion
from src.models.suggestion import (
    PrerequisiteProgress,
    SuggestionDetailResponse,
    SuggestionListResponse,
    SuggestionResponse,
    TransitionResponse,
)

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "This suggestion is no longer available."


class FigureNotFoundError(SuggestionError):
    """Raised when a figure does not exist or is not visible to the subject."""

    pass


class SuggestionService:
    """Service for reading suggestions and recording decisions.

    Attributes:
        db: Async database session.
        settings: Suggestion engine settings.
    """

    def __init__(self, db: AsyncSession, settings: SuggestionSettings) -> None:
        """Initialize suggestion service.

        Args:
            db: Async database session.
            settings: Suggestion engine settings.
        """
        self.db = db
        self.settings = settings
        self.cache = SuggestionCacheService(db, settings.cache_ttl_hours)
        self.catalog = SqlCatalogSource(db)
        self.completion = SqlCompletionSource(db, settings.group_satisfaction_ratio)
        self.directory = SqlSubjectDirectory(db)

    async def list_suggestions(
        self,
        subject: Subject,
        limit: int | None = None,
        min_score: float | None = None,
    ) -> SuggestionListResponse:
        """List live pending suggestions, highest score first.

        Args:
            subject: Learner or group.
            limit: Maximum results, defaults to the configured list limit.
            min_score: Minimum score, defaults to the configured minimum.

        Returns:
            Suggestion list response.
        """
        entries = await self.cache.list_pending(
            subject,
            limit=limit or self.settings.list_limit,
            min_score=self.settings.min_score if min_score is None else min_score,
        )
        figures = await self.catalog.get_figures(entry.figure_id for entry in entries)
        items = []
        for entry in entries:
            figure = figures.get(entry.figure_id)
            items.append(self._to_response(entry, figure.name if figure else None))
        return SuggestionListResponse(
            subject_kind=subject.kind.value,
            subject_id=subject.id,
            items=items,
            total=len(items),
        )

    async def get_detail(self, subject: Subject, figure_id: str) -> SuggestionDetailResponse:
        """Break a candidate down by prerequisite for display.

        The score shown here is computed from the current completion state
        and is not written to the cache.

        Raises:
            FigureNotFoundError: If the figure is missing or not visible.
        """
        figures = await self.catalog.get_figures([figure_id])
        figure = figures.get(figure_id)
        if figure is None or not figure.visible_to(subject.school_id):
            raise FigureNotFoundError(f"Figure not found: {figure_id}")

        edges = await PrerequisiteService(self.db).edges_for(figure_id)
        graph = PrerequisiteGraph.from_edges(edges)
        calculator = PreparationScoreCalculator(graph, self.completion)
        completion = await calculator.prefetch(subject, [figure_id])
        names = await self.catalog.get_figures([edge.prerequisite_id for edge in edges])

        detail = SuggestionDetailResponse(
            figure_id=figure_id,
            figure_name=figure.name,
            applicable=False,
            prerequisites=[],
        )
        try:
            readiness = await calculator.compute_score(subject, figure_id)
        except NotApplicableError:
            breakdown = describe_prerequisites(edges, completion)
        else:
            breakdown = readiness.breakdown
            detail.applicable = True
            detail.score = float(readiness.score)
            detail.satisfied_count = readiness.satisfied_count
            detail.required_total = readiness.required_total

        detail.prerequisites = [
            PrerequisiteProgress(
                prerequisite_id=state.edge.prerequisite_id,
                name=names[state.edge.prerequisite_id].name
                if state.edge.prerequisite_id in names
                else None,
                order=state.edge.order,
                is_required=state.edge.required,
                weight=state.edge.weight,
                completion=state.completion.value,
                satisfied=state.satisfied,
            )
            for state in breakdown
        ]

        entry = await self.cache.get_entry(subject, figure_id)
        if entry is not None:
            detail.entry = self._to_response(entry, figure.name)
        return detail

    async def accept(self, subject: Subject, figure_id: str) -> TransitionResponse:
        """Record that the subject added the figure to their plan.

        Raises:
            InvalidTransitionError: If the suggestion was dismissed.
        """
        outcome = await self.cache.mark_accepted(subject, figure_id)
        return await self._finish(subject, figure_id, outcome)

    async def dismiss(self, subject: Subject, figure_id: str) -> TransitionResponse:
        """Hide a suggestion.

        Raises:
            InvalidTransitionError: If the suggestion was accepted.
        """
        outcome = await self.cache.mark_dismissed(subject, figure_id)
        return await self._finish(subject, figure_id, outcome)

    async def restore(self, subject: Subject, figure_id: str) -> TransitionResponse:
        """Return an accepted or dismissed suggestion to pending."""
        outcome = await self.cache.reset(subject, figure_id)
        return await self._finish(subject, figure_id, outcome)

    async def apply_plan_event(
        self,
        subject: Subject,
        figure_id: str,
        change: PlanChange,
    ) -> TransitionResponse:
        """Apply a learning-plan add or remove notification."""
        outcome = await self.cache.apply_plan_change(subject, figure_id, change)
        logger.info("Plan %s for %s on %s: %s", change.value, subject, figure_id, outcome.value)
        return await self._finish(subject, figure_id, outcome)

    async def resolve_group(self, group_id: str) -> Subject | None:
        return await self.directory.get_group(group_id)

    async def resolve_learner(self, learner_id: str) -> Subject | None:
        return await self.directory.get_learner(learner_id)

    async def _finish(
        self,
        subject: Subject,
        figure_id: str,
        outcome: TransitionOutcome,
    ) -> TransitionResponse:
        if outcome is TransitionOutcome.APPLIED:
            await self.db.commit()

        if outcome is TransitionOutcome.UNAVAILABLE:
            return TransitionResponse(
                figure_id=figure_id,
                outcome=outcome.value,
                message=UNAVAILABLE_MESSAGE,
            )

        entry = await self.cache.get_entry(subject, figure_id)
        return TransitionResponse(
            figure_id=figure_id,
            outcome=outcome.value,
            status=entry.status if entry else None,
        )

    @staticmethod
    def _to_response(entry: FigureSuggestion, figure_name: str | None) -> SuggestionResponse:
        return SuggestionResponse(
            figure_id=entry.figure_id,
            figure_name=figure_name,
            score=float(entry.score),
            satisfied_count=entry.satisfied_count,
            required_total=entry.required_total,
            status=entry.status,
            refreshed_at=entry.refreshed_at,
            expires_at=entry.expires_at,
        )
