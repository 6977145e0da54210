# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Read adapters for the collaborators the suggestion engine depends on.

The catalogue, progression and user/group services own their tables.
The engine only reads them through the protocols below; the SQL
implementations query the shared database directly.

Group completion: a group satisfies a figure when at least
group_satisfaction_ratio of its active members have satisfied it. A group
with no active members satisfies nothing.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.suggestion.models import CompletionStatus, FigureRef, Subject
from src.infrastructure.database.models import (
    Figure,
    LearningGroup,
    LearningGroupMember,
    SkillCompletion,
    User,
)

logger = logging.getLogger(__name__)


class CatalogSource(Protocol):
    """Figure existence, name and visibility lookup."""

    async def get_figures(self, figure_ids: Iterable[str]) -> dict[str, FigureRef]: ...


class CompletionSource(Protocol):
    """Per-subject completion lookup."""

    async def completion_for(
        self,
        subject: Subject,
        figure_ids: Iterable[str],
    ) -> dict[str, CompletionStatus]: ...


class SubjectDirectory(Protocol):
    """Enumeration of active subjects."""

    async def list_subjects(self) -> list[Subject]: ...


class SqlCatalogSource:
    """CatalogSource over the figures table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_figures(self, figure_ids: Iterable[str]) -> dict[str, FigureRef]:
        ids = list(set(figure_ids))
        if not ids:
            return {}
        result = await self.db.execute(
            select(Figure.id, Figure.name, Figure.school_id).where(Figure.id.in_(ids))
        )
        return {
            row.id: FigureRef(id=row.id, name=row.name, school_id=row.school_id)
            for row in result.all()
        }


class SqlCompletionSource:
    """CompletionSource over skill_completions.

    Attributes:
        db: Async database session.
        group_satisfaction_ratio: Share of members needed for a group to
            satisfy a figure.
    """

    def __init__(self, db: AsyncSession, group_satisfaction_ratio: float = 0.5) -> None:
        self.db = db
        self.group_satisfaction_ratio = group_satisfaction_ratio

    async def completion_for(
        self,
        subject: Subject,
        figure_ids: Iterable[str],
    ) -> dict[str, CompletionStatus]:
        """Completion by figure id. Figures without a record are omitted."""
        ids = list(set(figure_ids))
        if not ids:
            return {}
        if subject.is_group:
            return await self._group_completion(subject.id, ids)
        return await self._learner_completion(subject.id, ids)

    async def _learner_completion(
        self,
        learner_id: str,
        figure_ids: list[str],
    ) -> dict[str, CompletionStatus]:
        result = await self.db.execute(
            select(SkillCompletion.figure_id, SkillCompletion.status).where(
                SkillCompletion.learner_id == learner_id,
                SkillCompletion.figure_id.in_(figure_ids),
            )
        )
        return {row.figure_id: CompletionStatus(row.status) for row in result.all()}

    async def _group_completion(
        self,
        group_id: str,
        figure_ids: list[str],
    ) -> dict[str, CompletionStatus]:
        member_count = await self.db.scalar(
            select(func.count())
            .select_from(LearningGroupMember)
            .join(User, User.id == LearningGroupMember.student_id)
            .where(LearningGroupMember.group_id == group_id, User.status == "active")
        )
        if not member_count:
            return {}

        result = await self.db.execute(
            select(
                SkillCompletion.figure_id,
                SkillCompletion.status,
                func.count().label("members"),
            )
            .join(
                LearningGroupMember,
                LearningGroupMember.student_id == SkillCompletion.learner_id,
            )
            .join(User, User.id == LearningGroupMember.student_id)
            .where(
                LearningGroupMember.group_id == group_id,
                User.status == "active",
                SkillCompletion.figure_id.in_(figure_ids),
            )
            .group_by(SkillCompletion.figure_id, SkillCompletion.status)
        )

        counts: dict[str, dict[str, int]] = defaultdict(dict)
        for row in result.all():
            counts[row.figure_id][row.status] = row.members

        return {
            figure_id: aggregate_group_status(
                by_status, member_count, self.group_satisfaction_ratio
            )
            for figure_id, by_status in counts.items()
        }


def aggregate_group_status(
    by_status: dict[str, int],
    member_count: int,
    ratio: float,
) -> CompletionStatus:
    """Collapse member completion counts into one group status."""
    satisfied = by_status.get(CompletionStatus.SATISFIED.value, 0)
    if member_count > 0 and satisfied / member_count >= ratio:
        return CompletionStatus.SATISFIED
    started = satisfied + by_status.get(CompletionStatus.IN_PROGRESS.value, 0)
    if started > 0:
        return CompletionStatus.IN_PROGRESS
    return CompletionStatus.NOT_STARTED


class SqlSubjectDirectory:
    """SubjectDirectory over users and learning_groups."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_subjects(self) -> list[Subject]:
        """Active students, then active groups, each in id order."""
        learners = await self.db.execute(
            select(User.id, User.school_id)
            .where(User.user_type == "student", User.status == "active")
            .order_by(User.id)
        )
        groups = await self.db.execute(
            select(LearningGroup.id, LearningGroup.school_id)
            .where(LearningGroup.is_active.is_(True))
            .order_by(LearningGroup.id)
        )
        subjects = [Subject.learner(row.id, row.school_id) for row in learners.all()]
        subjects.extend(Subject.group(row.id, row.school_id) for row in groups.all())
        logger.debug("Enumerated %d suggestion subjects", len(subjects))
        return subjects

    async def get_group(self, group_id: str) -> Subject | None:
        """Active group as a subject, or None."""
        result = await self.db.execute(
            select(LearningGroup.id, LearningGroup.school_id).where(
                LearningGroup.id == group_id,
                LearningGroup.is_active.is_(True),
            )
        )
        row = result.first()
        return Subject.group(row.id, row.school_id) if row else None

    async def get_learner(self, learner_id: str) -> Subject | None:
        """Active student as a subject, or None."""
        result = await self.db.execute(
            select(User.id, User.school_id).where(
                User.id == learner_id,
                User.user_type == "student",
                User.status == "active",
            )
        )
        row = result.first()
        return Subject.learner(row.id, row.school_id) if row else None
