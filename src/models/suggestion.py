# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Suggestion request and response models."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class SuggestionResponse(BaseModel):
    """A cached suggestion for one subject."""

    figure_id: str
    figure_name: str | None = None
    score: float = Field(ge=0, le=100)
    satisfied_count: int
    required_total: int
    status: Literal["pending", "accepted", "dismissed"]
    refreshed_at: datetime | None = None
    expires_at: datetime | None = None


class SuggestionListResponse(BaseModel):
    """Pending suggestions for a subject, highest score first."""

    subject_kind: Literal["learner", "group"]
    subject_id: str
    items: list[SuggestionResponse]
    total: int


class PrerequisiteProgress(BaseModel):
    """One prerequisite of a candidate with the subject's state on it."""

    prerequisite_id: str
    name: str | None = None
    order: int
    is_required: bool
    weight: int
    completion: Literal["not_started", "in_progress", "satisfied"]
    satisfied: bool


class SuggestionDetailResponse(BaseModel):
    """Per-prerequisite breakdown of a candidate figure.

    score, satisfied_count and required_total are computed from the
    current completion state and are None when the figure has no required
    prerequisites. entry is the cached suggestion, if one exists.
    """

    figure_id: str
    figure_name: str | None = None
    applicable: bool
    score: float | None = None
    satisfied_count: int | None = None
    required_total: int | None = None
    prerequisites: list[PrerequisiteProgress]
    entry: SuggestionResponse | None = None


class TransitionResponse(BaseModel):
    """Result of accept, dismiss or restore.

    outcome is "applied" when the status changed, "unchanged" when the
    entry was already in the target state and "unavailable" when the
    suggestion no longer exists or has expired.
    """

    figure_id: str
    outcome: Literal["applied", "unchanged", "unavailable"]
    status: Literal["pending", "accepted", "dismissed"] | None = None
    message: str | None = None


class PlanEventRequest(BaseModel):
    """Notification that a figure was added to or removed from a learning plan."""

    subject_kind: Literal["learner", "group"]
    subject_id: UUID
    figure_id: UUID
    change: Literal["added", "removed"]
