# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Suggestion cache model.

One row per (subject, candidate figure). The subject is either a learner
or a group, never both. Partial unique indexes enforce one entry per pair.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, UUIDPrimaryKeyMixin


class FigureSuggestion(Base, UUIDPrimaryKeyMixin):
    """Cached readiness score of a candidate figure for one subject."""

    __tablename__ = "figure_suggestions"
    __table_args__ = (
        CheckConstraint(
            "(learner_id IS NULL) <> (group_id IS NULL)",
            name="ck_figure_suggestions_one_subject",
        ),
        CheckConstraint(
            "score >= 0 AND score <= 100",
            name="ck_figure_suggestions_score",
        ),
        CheckConstraint(
            "satisfied_count >= 0 AND satisfied_count <= required_total",
            name="ck_figure_suggestions_counts",
        ),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'dismissed')",
            name="ck_figure_suggestions_status",
        ),
        Index(
            "uq_figure_suggestions_learner",
            "learner_id",
            "figure_id",
            unique=True,
            postgresql_where=text("learner_id IS NOT NULL"),
        ),
        Index(
            "uq_figure_suggestions_group",
            "group_id",
            "figure_id",
            unique=True,
            postgresql_where=text("group_id IS NOT NULL"),
        ),
        Index("ix_figure_suggestions_status_score", "status", "score"),
    )

    learner_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
    )
    group_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("learning_groups.id", ondelete="CASCADE"),
        nullable=True,
    )
    figure_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("figures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    score: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    satisfied_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    required_total: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    refreshed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status_changed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        subject = self.learner_id or self.group_id
        return (
            f"<FigureSuggestion(subject={subject}, figure_id={self.figure_id}, "
            f"score={self.score}, status={self.status})>"
        )
