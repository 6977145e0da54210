# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prerequisite graph API endpoints.

This module provides endpoints for curating figure prerequisites:
- POST /{figure_id}/prerequisites - Declare a prerequisite
- GET /{figure_id}/prerequisites - List prerequisites in learning order
- GET /{figure_id}/dependents - List figures that require this one
- PATCH /{figure_id}/prerequisites/{prerequisite_id} - Change edge attributes
- DELETE /{figure_id}/prerequisites/{prerequisite_id} - Remove an edge

Writes require an admin; reads are open to teachers too. School admins
only see and edit figures of their own school plus the public catalogue.

Example:
    POST /api/v1/figures/{figure_id}/prerequisites
    {
        "prerequisite_id": "8f0c...",
        "is_required": true,
        "weight": 2
    }
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.api.dependencies import (
    get_prerequisite_service,
    require_admin,
    require_teacher_or_admin,
)
from src.api.errors import api_error
from src.api.middleware.auth import CurrentUser
from src.api.middleware.rate_limit import RATE_LIMIT_GRAPH_MUTATION, limiter
from src.domains.prerequisite import (
    CycleDetectedError,
    DuplicateEdgeError,
    EdgeNotFoundError,
    InvalidEdgeError,
    PrerequisiteService,
    SkillNotFoundError,
)
from src.models.prerequisite import (
    PrerequisiteCreateRequest,
    PrerequisiteEdgeResponse,
    PrerequisiteListResponse,
    PrerequisiteUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _not_found(e: SkillNotFoundError) -> HTTPException:
    return api_error(
        status.HTTP_404_NOT_FOUND,
        "SKILL_NOT_FOUND",
        str(e),
        {"figure_id": e.figure_id},
    )


@router.post(
    "/{figure_id}/prerequisites",
    response_model=PrerequisiteEdgeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add prerequisite",
    description="Declare a figure as a prerequisite. Rejected if it would create a cycle.",
)
@limiter.limit(RATE_LIMIT_GRAPH_MUTATION)
async def add_prerequisite(
    request: Request,
    figure_id: UUID,
    data: PrerequisiteCreateRequest,
    current_user: CurrentUser = Depends(require_admin),
    service: PrerequisiteService = Depends(get_prerequisite_service),
) -> PrerequisiteEdgeResponse:
    """Add a prerequisite edge.

    Raises:
        HTTPException 409: Cycle or duplicate edge.
        HTTPException 404: Unknown or invisible figure.
        HTTPException 400: Self-edge or attribute out of range.
    """
    try:
        return await service.add_edge(
            str(figure_id),
            str(data.prerequisite_id),
            order=data.order,
            required=data.is_required,
            weight=data.weight,
            school_id=current_user.admin_scope,
        )
    except CycleDetectedError as e:
        logger.info("Rejected prerequisite %s -> %s: %s", figure_id, data.prerequisite_id, e)
        raise api_error(status.HTTP_409_CONFLICT, "CYCLE_DETECTED", str(e), e.to_details())
    except DuplicateEdgeError as e:
        raise api_error(
            status.HTTP_409_CONFLICT,
            "DUPLICATE_EDGE",
            str(e),
            {"figure_id": e.figure_id, "prerequisite_id": e.prerequisite_id},
        )
    except SkillNotFoundError as e:
        raise _not_found(e)
    except InvalidEdgeError as e:
        raise api_error(status.HTTP_400_BAD_REQUEST, "INVALID_EDGE", str(e))


@router.get(
    "/{figure_id}/prerequisites",
    response_model=PrerequisiteListResponse,
    summary="List prerequisites",
)
async def list_prerequisites(
    figure_id: UUID,
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    service: PrerequisiteService = Depends(get_prerequisite_service),
) -> PrerequisiteListResponse:
    """List a figure's prerequisites ordered by learning sequence."""
    try:
        return await service.list_prerequisites(str(figure_id), school_id=current_user.admin_scope)
    except SkillNotFoundError as e:
        raise _not_found(e)


@router.get(
    "/{figure_id}/dependents",
    response_model=PrerequisiteListResponse,
    summary="List dependent figures",
)
async def list_dependents(
    figure_id: UUID,
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    service: PrerequisiteService = Depends(get_prerequisite_service),
) -> PrerequisiteListResponse:
    try:
        return await service.list_dependents(str(figure_id), school_id=current_user.admin_scope)
    except SkillNotFoundError as e:
        raise _not_found(e)


@router.patch(
    "/{figure_id}/prerequisites/{prerequisite_id}",
    response_model=PrerequisiteEdgeResponse,
    summary="Update prerequisite",
)
@limiter.limit(RATE_LIMIT_GRAPH_MUTATION)
async def update_prerequisite(
    request: Request,
    figure_id: UUID,
    prerequisite_id: UUID,
    data: PrerequisiteUpdateRequest,
    current_user: CurrentUser = Depends(require_admin),
    service: PrerequisiteService = Depends(get_prerequisite_service),
) -> PrerequisiteEdgeResponse:
    """Change order, required flag or weight of an edge."""
    if not data.has_changes():
        raise api_error(status.HTTP_400_BAD_REQUEST, "INVALID_EDGE", "No fields to update")

    try:
        return await service.update_edge(
            str(figure_id),
            str(prerequisite_id),
            order=data.order,
            required=data.is_required,
            weight=data.weight,
            school_id=current_user.admin_scope,
        )
    except SkillNotFoundError as e:
        raise _not_found(e)
    except EdgeNotFoundError as e:
        raise api_error(status.HTTP_404_NOT_FOUND, "EDGE_NOT_FOUND", str(e))
    except InvalidEdgeError as e:
        raise api_error(status.HTTP_400_BAD_REQUEST, "INVALID_EDGE", str(e))


@router.delete(
    "/{figure_id}/prerequisites/{prerequisite_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove prerequisite",
)
@limiter.limit(RATE_LIMIT_GRAPH_MUTATION)
async def remove_prerequisite(
    request: Request,
    figure_id: UUID,
    prerequisite_id: UUID,
    current_user: CurrentUser = Depends(require_admin),
    service: PrerequisiteService = Depends(get_prerequisite_service),
) -> None:
    """Remove an edge. Removal can never create a cycle."""
    try:
        await service.remove_edge(
            str(figure_id), str(prerequisite_id), school_id=current_user.admin_scope
        )
    except SkillNotFoundError as e:
        raise _not_found(e)
    except EdgeNotFoundError as e:
        raise api_error(status.HTTP_404_NOT_FOUND, "EDGE_NOT_FOUND", str(e))
