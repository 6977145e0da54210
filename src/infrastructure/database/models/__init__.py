# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for the progression database.

Importing this package registers every table with Base.metadata.
"""

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.infrastructure.database.models.catalog import Figure, FigurePrerequisite
from src.infrastructure.database.models.learner import (
    LearningGroup,
    LearningGroupMember,
    SkillCompletion,
    User,
)
from src.infrastructure.database.models.suggestion import FigureSuggestion

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Figure",
    "FigurePrerequisite",
    "User",
    "LearningGroup",
    "LearningGroupMember",
    "SkillCompletion",
    "FigureSuggestion",
]
