# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Figure catalogue and prerequisite edge models.

Figures are owned by the catalogue service; this database only keeps the
columns the suggestion engine reads. Prerequisite edges are owned here.
"""

from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    SmallInteger,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Figure(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A learnable figure (skill node).

    A NULL school_id marks a public catalogue figure, visible to every
    school. Otherwise the figure is private to that school.
    """

    __tablename__ = "figures"
    __table_args__ = (
        CheckConstraint(
            "difficulty_level IS NULL OR difficulty_level BETWEEN 1 AND 5",
            name="ck_figures_difficulty_level",
        ),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    discipline_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False), nullable=True)
    difficulty_level: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    school_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), nullable=True, index=True
    )

    def __repr__(self) -> str:
        return f"<Figure(id={self.id}, name={self.name})>"


class FigurePrerequisite(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Directed edge: figure_id requires prerequisite_id."""

    __tablename__ = "figure_prerequisites"
    __table_args__ = (
        UniqueConstraint("figure_id", "prerequisite_id", name="uq_figure_prerequisite"),
        CheckConstraint("figure_id <> prerequisite_id", name="ck_figure_prerequisites_no_self"),
        CheckConstraint("weight BETWEEN 1 AND 3", name="ck_figure_prerequisites_weight"),
        CheckConstraint('"order" >= 1', name="ck_figure_prerequisites_order"),
    )

    figure_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("figures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    prerequisite_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("figures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    weight: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)

    def __repr__(self) -> str:
        return (
            f"<FigurePrerequisite(figure_id={self.figure_id}, "
            f"prerequisite_id={self.prerequisite_id}, weight={self.weight})>"
        )
