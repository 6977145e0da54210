# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prerequisite domain.

This domain provides:
- PrerequisiteGraph: in-memory arena over an edge snapshot
- CycleGuard: rejects edges that would make a figure its own prerequisite
- PrerequisiteService: persisted edge store with serialised insertions

Usage:
    from src.domains.prerequisite import PrerequisiteService

    service = PrerequisiteService(db)
    await service.add_edge(parent_id, prerequisite_id, weight=2)
"""

from src.domains.prerequisite.graph import (
    CycleDetectedError,
    CycleGuard,
    PrerequisiteEdge,
    PrerequisiteGraph,
)
from src.domains.prerequisite.service import (
    DuplicateEdgeError,
    EdgeNotFoundError,
    InvalidEdgeError,
    PrerequisiteService,
    PrerequisiteServiceError,
    SkillNotFoundError,
)

__all__ = [
    # Graph
    "PrerequisiteEdge",
    "PrerequisiteGraph",
    "CycleGuard",
    "CycleDetectedError",
    # Store
    "PrerequisiteService",
    "PrerequisiteServiceError",
    "SkillNotFoundError",
    "DuplicateEdgeError",
    "EdgeNotFoundError",
    "InvalidEdgeError",
]
