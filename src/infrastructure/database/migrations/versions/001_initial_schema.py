# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial progression database schema.

Creates the figure catalogue mirror, prerequisite edges, learners and
groups, completion records and the suggestion cache.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=False),
        server_default=sa.text("gen_random_uuid()"),
        primary_key=True,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    """Create progression database tables."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # =========================================================================
    # CATALOGUE
    # =========================================================================

    op.create_table(
        "figures",
        _uuid_pk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("discipline_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("difficulty_level", sa.SmallInteger(), nullable=True),
        sa.Column("school_id", postgresql.UUID(as_uuid=False), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "difficulty_level IS NULL OR difficulty_level BETWEEN 1 AND 5",
            name="ck_figures_difficulty_level",
        ),
    )
    op.create_index("ix_figures_school_id", "figures", ["school_id"])

    op.create_table(
        "figure_prerequisites",
        _uuid_pk(),
        sa.Column(
            "figure_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("figures.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "prerequisite_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("figures.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("order", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("weight", sa.SmallInteger(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.UniqueConstraint("figure_id", "prerequisite_id", name="uq_figure_prerequisite"),
        sa.CheckConstraint("figure_id <> prerequisite_id", name="ck_figure_prerequisites_no_self"),
        sa.CheckConstraint("weight BETWEEN 1 AND 3", name="ck_figure_prerequisites_weight"),
        sa.CheckConstraint('"order" >= 1', name="ck_figure_prerequisites_order"),
    )
    op.create_index("ix_figure_prerequisites_figure_id", "figure_prerequisites", ["figure_id"])
    op.create_index(
        "ix_figure_prerequisites_prerequisite_id", "figure_prerequisites", ["prerequisite_id"]
    )

    # =========================================================================
    # LEARNERS AND GROUPS
    # =========================================================================

    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("user_type", sa.String(20), nullable=False, server_default="student"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("school_id", postgresql.UUID(as_uuid=False), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_school_id", "users", ["school_id"])

    op.create_table(
        "learning_groups",
        _uuid_pk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column(
            "teacher_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("school_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
    )
    op.create_index("ix_learning_groups_school_id", "learning_groups", ["school_id"])

    op.create_table(
        "learning_group_members",
        _uuid_pk(),
        sa.Column(
            "group_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("learning_groups.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "student_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.UniqueConstraint("group_id", "student_id", name="uq_learning_group_member"),
    )
    op.create_index("ix_learning_group_members_group_id", "learning_group_members", ["group_id"])
    op.create_index(
        "ix_learning_group_members_student_id", "learning_group_members", ["student_id"]
    )

    op.create_table(
        "skill_completions",
        _uuid_pk(),
        sa.Column(
            "learner_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "figure_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("figures.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="not_started"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("learner_id", "figure_id", name="uq_skill_completion"),
        sa.CheckConstraint(
            "status IN ('not_started', 'in_progress', 'satisfied')",
            name="ck_skill_completions_status",
        ),
    )
    op.create_index("ix_skill_completions_learner_id", "skill_completions", ["learner_id"])
    op.create_index("ix_skill_completions_figure_id", "skill_completions", ["figure_id"])

    # =========================================================================
    # SUGGESTION CACHE
    # =========================================================================

    op.create_table(
        "figure_suggestions",
        _uuid_pk(),
        sa.Column(
            "learner_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "group_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("learning_groups.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "figure_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("figures.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("score", sa.Numeric(5, 2), nullable=False),
        sa.Column("satisfied_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("required_total", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("refreshed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "(learner_id IS NULL) <> (group_id IS NULL)",
            name="ck_figure_suggestions_one_subject",
        ),
        sa.CheckConstraint("score >= 0 AND score <= 100", name="ck_figure_suggestions_score"),
        sa.CheckConstraint(
            "satisfied_count >= 0 AND satisfied_count <= required_total",
            name="ck_figure_suggestions_counts",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'dismissed')",
            name="ck_figure_suggestions_status",
        ),
    )
    op.create_index(
        "uq_figure_suggestions_learner",
        "figure_suggestions",
        ["learner_id", "figure_id"],
        unique=True,
        postgresql_where=sa.text("learner_id IS NOT NULL"),
    )
    op.create_index(
        "uq_figure_suggestions_group",
        "figure_suggestions",
        ["group_id", "figure_id"],
        unique=True,
        postgresql_where=sa.text("group_id IS NOT NULL"),
    )
    op.create_index("ix_figure_suggestions_figure_id", "figure_suggestions", ["figure_id"])
    op.create_index(
        "ix_figure_suggestions_status_score", "figure_suggestions", ["status", "score"]
    )


def downgrade() -> None:
    """Drop progression database tables."""
    op.drop_table("figure_suggestions")
    op.drop_table("skill_completions")
    op.drop_table("learning_group_members")
    op.drop_table("learning_groups")
    op.drop_table("users")
    op.drop_table("figure_prerequisites")
    op.drop_table("figures")
