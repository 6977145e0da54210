# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learner, group and completion models.

These tables are written by the user, group and progression services.
The suggestion engine only reads them.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Platform user. Only students are suggestion subjects."""

    __tablename__ = "users"

    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    user_type: Mapped[str] = mapped_column(String(20), nullable=False, default="student")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    school_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), nullable=True, index=True
    )


class LearningGroup(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A teacher-led group of students."""

    __tablename__ = "learning_groups"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    teacher_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    school_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), nullable=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class LearningGroupMember(Base, UUIDPrimaryKeyMixin):
    """Membership of a student in a group."""

    __tablename__ = "learning_group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "student_id", name="uq_learning_group_member"),
    )

    group_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("learning_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class SkillCompletion(Base, UUIDPrimaryKeyMixin):
    """A learner's progress on one figure."""

    __tablename__ = "skill_completions"
    __table_args__ = (
        UniqueConstraint("learner_id", "figure_id", name="uq_skill_completion"),
        CheckConstraint(
            "status IN ('not_started', 'in_progress', 'satisfied')",
            name="ck_skill_completions_status",
        ),
    )

    learner_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    figure_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("figures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="not_started")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
