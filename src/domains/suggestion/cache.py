# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Suggestion cache lifecycle.

Each (subject, candidate) pair has at most one entry. Legal transitions:

    pending   -> pending    refresh overwrite
    pending   -> accepted   added to the learning plan
    pending   -> dismissed  hidden by the subject
    accepted  -> pending    removed from the plan
    dismissed -> pending    un-hidden

Every transition is a single conditional statement, so concurrent calls
on the same entry resolve in commit order: the first one applies, the
other sees the new state. Refreshes only write rows that are pending;
accepted and dismissed rows are left exactly as they are.

Reads never recompute scores. An expired pending entry is treated as
absent until the next refresh rewrites it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.suggestion.models import (
    PlanChange,
    Subject,
    SuggestionError,
    SuggestionStatus,
    TransitionOutcome,
)
from src.domains.suggestion.scoring import ReadinessScore
from src.infrastructure.database.models import FigureSuggestion
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

PENDING = SuggestionStatus.PENDING
ACCEPTED = SuggestionStatus.ACCEPTED
DISMISSED = SuggestionStatus.DISMISSED

ALLOWED_TRANSITIONS: frozenset[tuple[SuggestionStatus, SuggestionStatus]] = frozenset({
    (PENDING, PENDING),
    (PENDING, ACCEPTED),
    (PENDING, DISMISSED),
    (ACCEPTED, PENDING),
    (DISMISSED, PENDING),
})


class InvalidTransitionError(SuggestionError):
    """Raised when a lifecycle transition is not allowed. The entry is unchanged."""

    def __init__(self, current: SuggestionStatus, target: SuggestionStatus) -> None:
        super().__init__(f"Cannot move a {current.value} suggestion to {target.value}")
        self.current = current
        self.target = target


def is_allowed(current: SuggestionStatus, target: SuggestionStatus) -> bool:
    return (current, target) in ALLOWED_TRANSITIONS


class SuggestionCacheService:
    """Persisted per-subject suggestion cache.

    Methods do not commit; the caller owns the transaction.

    Attributes:
        db: Async database session.
        ttl: Lifetime of a refreshed pending entry.
    """

    def __init__(self, db: AsyncSession, ttl_hours: int = 24) -> None:
        """Initialize the cache service.

        Args:
            db: Async database session.
            ttl_hours: Lifetime of a refreshed pending entry.
        """
        self.db = db
        self.ttl = timedelta(hours=ttl_hours)

    @staticmethod
    def _subject_column(subject: Subject):
        return FigureSuggestion.group_id if subject.is_group else FigureSuggestion.learner_id

    def _entry_filter(self, subject: Subject, candidate_id: str):
        return and_(
            self._subject_column(subject) == subject.id,
            FigureSuggestion.figure_id == candidate_id,
        )

    async def upsert_pending(
        self,
        subject: Subject,
        candidate_id: str,
        readiness: ReadinessScore,
        ttl: timedelta | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Insert or refresh a pending entry.

        An existing accepted or dismissed entry is left untouched.

        Args:
            subject: Learner or group.
            candidate_id: Candidate figure.
            readiness: Computed score and counts.
            ttl: Entry lifetime, defaults to the configured TTL.
            now: Refresh timestamp.

        Returns:
            True if a row was written, False if the entry is not pending.
        """
        now = now or utc_now()
        expires_at = now + (ttl or self.ttl)
        subject_column = self._subject_column(subject)

        stmt = pg_insert(FigureSuggestion).values(
            learner_id=None if subject.is_group else subject.id,
            group_id=subject.id if subject.is_group else None,
            figure_id=candidate_id,
            score=readiness.score,
            satisfied_count=readiness.satisfied_count,
            required_total=readiness.required_total,
            status=PENDING.value,
            created_at=now,
            refreshed_at=now,
            expires_at=expires_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[subject_column.name, FigureSuggestion.figure_id.name],
            index_where=subject_column.isnot(None),
            set_={
                "score": stmt.excluded.score,
                "satisfied_count": stmt.excluded.satisfied_count,
                "required_total": stmt.excluded.required_total,
                "refreshed_at": stmt.excluded.refreshed_at,
                "expires_at": stmt.excluded.expires_at,
            },
            where=FigureSuggestion.status == PENDING.value,
        ).returning(FigureSuggestion.id)

        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_entry(self, subject: Subject, candidate_id: str) -> FigureSuggestion | None:
        result = await self.db.execute(
            select(FigureSuggestion)
            .where(self._entry_filter(subject, candidate_id))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_pending(
        self,
        subject: Subject,
        *,
        limit: int | None = None,
        min_score: float | None = None,
        include_expired: bool = False,
        now: datetime | None = None,
    ) -> list[FigureSuggestion]:
        """Pending entries, highest score first, ties by figure id.

        Args:
            subject: Learner or group.
            limit: Maximum number of entries.
            min_score: Hide entries scoring below this value.
            include_expired: Return expired pending entries too.
            now: Reference time for expiry.
        """
        query = select(FigureSuggestion).where(
            self._subject_column(subject) == subject.id,
            FigureSuggestion.status == PENDING.value,
        )
        if not include_expired:
            query = query.where(FigureSuggestion.expires_at > (now or utc_now()))
        if min_score is not None:
            query = query.where(FigureSuggestion.score >= min_score)
        query = query.order_by(FigureSuggestion.score.desc(), FigureSuggestion.figure_id)
        if limit is not None:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def mark_accepted(
        self,
        subject: Subject,
        candidate_id: str,
        now: datetime | None = None,
    ) -> TransitionOutcome:
        """Move a live pending entry to accepted.

        Raises:
            InvalidTransitionError: If the entry is dismissed.
        """
        return await self._transition(subject, candidate_id, ACCEPTED, now or utc_now())

    async def mark_dismissed(
        self,
        subject: Subject,
        candidate_id: str,
        now: datetime | None = None,
    ) -> TransitionOutcome:
        """Move a live pending entry to dismissed.

        Raises:
            InvalidTransitionError: If the entry is accepted.
        """
        return await self._transition(subject, candidate_id, DISMISSED, now or utc_now())

    async def reset(
        self,
        subject: Subject,
        candidate_id: str,
        now: datetime | None = None,
    ) -> TransitionOutcome:
        """Return an accepted or dismissed entry to pending.

        The entry expires immediately so reads hide it until the next
        refresh recomputes its score.
        """
        return await self._transition(subject, candidate_id, PENDING, now or utc_now())

    async def add_to_plan(
        self,
        subject: Subject,
        candidate_id: str,
        now: datetime | None = None,
    ) -> TransitionOutcome:
        """Accept a figure that was added to the learning plan.

        Unlike mark_accepted this ignores expiry and records an accepted
        entry when none exists yet, so the next refresh does not suggest
        a figure that is already planned.

        Raises:
            InvalidTransitionError: If the entry is dismissed.
        """
        now = now or utc_now()
        subject_column = self._subject_column(subject)

        stmt = pg_insert(FigureSuggestion).values(
            learner_id=None if subject.is_group else subject.id,
            group_id=subject.id if subject.is_group else None,
            figure_id=candidate_id,
            score=0,
            satisfied_count=0,
            required_total=0,
            status=ACCEPTED.value,
            created_at=now,
            refreshed_at=now,
            expires_at=now,
            status_changed_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[subject_column.name, FigureSuggestion.figure_id.name],
            index_where=subject_column.isnot(None),
            set_={"status": ACCEPTED.value, "status_changed_at": now},
            where=FigureSuggestion.status == PENDING.value,
        ).returning(FigureSuggestion.id)

        result = await self.db.execute(stmt)
        if result.scalar_one_or_none() is not None:
            logger.info("Suggestion %s for %s -> accepted (plan)", candidate_id, subject)
            return TransitionOutcome.APPLIED

        entry = await self.get_entry(subject, candidate_id)
        if entry is None:
            return TransitionOutcome.UNAVAILABLE
        current = SuggestionStatus(entry.status)
        if current is ACCEPTED:
            return TransitionOutcome.UNCHANGED
        raise InvalidTransitionError(current, ACCEPTED)

    async def apply_plan_change(
        self,
        subject: Subject,
        candidate_id: str,
        change: PlanChange,
        now: datetime | None = None,
    ) -> TransitionOutcome:
        """Apply a learning-plan notification.

        A figure added to the plan is accepted; a removed one is reset.
        """
        if change is PlanChange.ADDED:
            return await self.add_to_plan(subject, candidate_id, now)
        return await self.reset(subject, candidate_id, now)

    async def prune_pending(self, subject: Subject, keep_ids: list[str]) -> int:
        """Delete pending entries whose candidate is not in keep_ids.

        Accepted and dismissed entries are never deleted.

        Returns:
            Number of entries removed.
        """
        stmt = delete(FigureSuggestion).where(
            self._subject_column(subject) == subject.id,
            FigureSuggestion.status == PENDING.value,
        )
        if keep_ids:
            stmt = stmt.where(FigureSuggestion.figure_id.notin_(keep_ids))
        result = await self.db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount or 0

    async def _transition(
        self,
        subject: Subject,
        candidate_id: str,
        target: SuggestionStatus,
        now: datetime,
    ) -> TransitionOutcome:
        sources = [
            current.value
            for current in SuggestionStatus
            if current is not target and is_allowed(current, target)
        ]
        conditions = [
            self._entry_filter(subject, candidate_id),
            FigureSuggestion.status.in_(sources),
        ]
        values: dict = {"status": target.value, "status_changed_at": now}
        if target is PENDING:
            values["expires_at"] = now
        else:
            conditions.append(FigureSuggestion.expires_at > now)

        result = await self.db.execute(
            update(FigureSuggestion)
            .where(*conditions)
            .values(**values)
            .returning(FigureSuggestion.id)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is not None:
            logger.info("Suggestion %s for %s -> %s", candidate_id, subject, target.value)
            return TransitionOutcome.APPLIED

        entry = await self.get_entry(subject, candidate_id)
        if entry is None:
            return TransitionOutcome.UNAVAILABLE

        current = SuggestionStatus(entry.status)
        if current is target:
            return TransitionOutcome.UNCHANGED
        if current is PENDING:
            # Pending but not updated: the entry has expired.
            return TransitionOutcome.UNAVAILABLE
        raise InvalidTransitionError(current, target)
