# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prerequisite edge request and response models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PrerequisiteCreateRequest(BaseModel):
    """Request to declare a prerequisite of a figure.

    When order is omitted the edge is appended after the figure's
    existing prerequisites.
    """

    prerequisite_id: UUID = Field(description="Figure that must be learned first")
    order: int | None = Field(default=None, ge=1, description="Learning sequence position")
    is_required: bool = Field(default=True, description="Counts toward the readiness score")
    weight: int = Field(default=1, ge=1, le=3, description="Relative importance (1-3)")


class PrerequisiteUpdateRequest(BaseModel):
    """Request to change the attributes of an existing edge."""

    order: int | None = Field(default=None, ge=1)
    is_required: bool | None = None
    weight: int | None = Field(default=None, ge=1, le=3)

    def has_changes(self) -> bool:
        return any(v is not None for v in (self.order, self.is_required, self.weight))


class PrerequisiteEdgeResponse(BaseModel):
    """A prerequisite edge with figure names resolved."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    figure_id: str
    figure_name: str | None = None
    prerequisite_id: str
    prerequisite_name: str | None = None
    order: int
    is_required: bool
    weight: int
    created_at: datetime | None = None


class PrerequisiteListResponse(BaseModel):
    """Edges attached to one figure."""

    figure_id: str
    items: list[PrerequisiteEdgeResponse]
    total: int
