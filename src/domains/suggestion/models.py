# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Value types for the suggestion domain.

This module defines:
- Subject: the learner or group suggestions are computed for
- Enums for completion state, cache status, transition outcomes and
  learning-plan changes
- FigureRef: the catalogue fields the engine reads
"""

from dataclasses import dataclass
from enum import Enum


class SubjectKind(str, Enum):
    """Kind of suggestion subject."""

    LEARNER = "learner"
    GROUP = "group"


@dataclass(frozen=True)
class Subject:
    """A learner or a group, never both.

    Attributes:
        kind: Whether the subject is a learner or a group.
        id: User id or group id.
        school_id: School whose private figures the subject can see.
    """

    kind: SubjectKind
    id: str
    school_id: str | None = None

    @classmethod
    def learner(cls, learner_id: str, school_id: str | None = None) -> "Subject":
        return cls(SubjectKind.LEARNER, learner_id, school_id)

    @classmethod
    def group(cls, group_id: str, school_id: str | None = None) -> "Subject":
        return cls(SubjectKind.GROUP, group_id, school_id)

    @property
    def is_group(self) -> bool:
        return self.kind is SubjectKind.GROUP

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


class CompletionStatus(str, Enum):
    """A subject's progress on one figure."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SATISFIED = "satisfied"


class SuggestionStatus(str, Enum):
    """Lifecycle status of a cached suggestion."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DISMISSED = "dismissed"


class TransitionOutcome(str, Enum):
    """Result of a lifecycle transition request.

    - APPLIED: the status changed
    - UNCHANGED: the entry was already in the target state
    - UNAVAILABLE: no entry, or the pending entry has expired
    """

    APPLIED = "applied"
    UNCHANGED = "unchanged"
    UNAVAILABLE = "unavailable"


class PlanChange(str, Enum):
    """Change reported by the learning-plan service."""

    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class FigureRef:
    """Catalogue fields the suggestion engine reads."""

    id: str
    name: str
    school_id: str | None = None

    def visible_to(self, school_id: str | None) -> bool:
        """Public figures are visible everywhere, private ones only in their school."""
        return self.school_id is None or self.school_id == school_id


class SuggestionError(Exception):
    """Base exception for suggestion domain errors."""

    pass
