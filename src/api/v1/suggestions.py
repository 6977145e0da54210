# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Figure suggestion API endpoints.

Learner endpoints (the authenticated student is the subject):
- GET / - Pending suggestions, highest score first
- GET /{figure_id}/details - Per-prerequisite breakdown
- POST /{figure_id}/accept | /dismiss | /restore - Record a decision

Group endpoints (teacher or admin of the group's school):
- GET /groups/{group_id}
- GET /groups/{group_id}/{figure_id}/details
- POST /groups/{group_id}/{figure_id}/accept | /dismiss | /restore

Learning plan hook:
- POST /plan-events - A figure was added to or removed from a plan

Decisions on a missing or expired suggestion answer 200 with
outcome "unavailable" and a user-facing message.
"""

import logging
from typing import Awaitable, Callable
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.api.dependencies import (
    get_suggestion_service,
    require_student,
    require_teacher_or_admin,
)
from src.api.errors import api_error
from src.api.middleware.auth import CurrentUser
from src.api.middleware.rate_limit import RATE_LIMIT_SUGGESTION_ACTION, limiter
from src.domains.suggestion import (
    FigureNotFoundError,
    InvalidTransitionError,
    PlanChange,
    Subject,
    SubjectKind,
    SuggestionService,
)
from src.models.suggestion import (
    PlanEventRequest,
    SuggestionDetailResponse,
    SuggestionListResponse,
    TransitionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

Decision = Callable[[Subject, str], Awaitable[TransitionResponse]]


async def _learner_subject(service: SuggestionService, current_user: CurrentUser) -> Subject:
    subject = await service.resolve_learner(current_user.id)
    if subject is None:
        raise api_error(
            status.HTTP_404_NOT_FOUND,
            "SUBJECT_NOT_FOUND",
            "Learner not found",
            {"subject_id": current_user.id},
        )
    return subject


async def _group_subject(
    service: SuggestionService,
    current_user: CurrentUser,
    group_id: UUID,
) -> Subject:
    """Resolve a group the current user may act for.

    Invisible groups answer 404 so their existence is not revealed.
    """
    subject = await service.resolve_group(str(group_id))
    if subject is None or not current_user.can_access_school(subject.school_id):
        raise api_error(
            status.HTTP_404_NOT_FOUND,
            "SUBJECT_NOT_FOUND",
            "Group not found",
            {"subject_id": str(group_id)},
        )
    return subject


async def _decide(decision: Decision, subject: Subject, figure_id: UUID) -> TransitionResponse:
    try:
        return await decision(subject, str(figure_id))
    except InvalidTransitionError as e:
        raise api_error(
            status.HTTP_409_CONFLICT,
            "INVALID_TRANSITION",
            str(e),
            {"current": e.current.value, "target": e.target.value},
        )


async def _detail(
    service: SuggestionService,
    subject: Subject,
    figure_id: UUID,
) -> SuggestionDetailResponse:
    try:
        return await service.get_detail(subject, str(figure_id))
    except FigureNotFoundError as e:
        raise api_error(
            status.HTTP_404_NOT_FOUND,
            "SKILL_NOT_FOUND",
            str(e),
            {"figure_id": str(figure_id)},
        )


# =========================================================================
# Learner endpoints
# =========================================================================


@router.get(
    "",
    response_model=SuggestionListResponse,
    summary="List my suggestions",
)
async def list_my_suggestions(
    limit: int | None = Query(None, ge=1, le=100),
    min_score: float | None = Query(None, ge=0, le=100),
    current_user: CurrentUser = Depends(require_student),
    service: SuggestionService = Depends(get_suggestion_service),
) -> SuggestionListResponse:
    """Pending, unexpired suggestions for the current learner."""
    subject = await _learner_subject(service, current_user)
    return await service.list_suggestions(subject, limit=limit, min_score=min_score)


@router.get(
    "/{figure_id}/details",
    response_model=SuggestionDetailResponse,
    summary="Suggestion breakdown",
)
async def get_my_suggestion_details(
    figure_id: UUID,
    current_user: CurrentUser = Depends(require_student),
    service: SuggestionService = Depends(get_suggestion_service),
) -> SuggestionDetailResponse:
    subject = await _learner_subject(service, current_user)
    return await _detail(service, subject, figure_id)


@router.post("/{figure_id}/accept", response_model=TransitionResponse, summary="Accept suggestion")
@limiter.limit(RATE_LIMIT_SUGGESTION_ACTION)
async def accept_suggestion(
    request: Request,
    figure_id: UUID,
    current_user: CurrentUser = Depends(require_student),
    service: SuggestionService = Depends(get_suggestion_service),
) -> TransitionResponse:
    """Accept a suggestion.

    Raises:
        HTTPException 409: If the suggestion was dismissed.
    """
    subject = await _learner_subject(service, current_user)
    return await _decide(service.accept, subject, figure_id)


@router.post("/{figure_id}/dismiss", response_model=TransitionResponse, summary="Dismiss suggestion")
@limiter.limit(RATE_LIMIT_SUGGESTION_ACTION)
async def dismiss_suggestion(
    request: Request,
    figure_id: UUID,
    current_user: CurrentUser = Depends(require_student),
    service: SuggestionService = Depends(get_suggestion_service),
) -> TransitionResponse:
    """Dismiss a suggestion.

    Raises:
        HTTPException 409: If the suggestion was accepted.
    """
    subject = await _learner_subject(service, current_user)
    return await _decide(service.dismiss, subject, figure_id)


@router.post("/{figure_id}/restore", response_model=TransitionResponse, summary="Restore suggestion")
@limiter.limit(RATE_LIMIT_SUGGESTION_ACTION)
async def restore_suggestion(
    request: Request,
    figure_id: UUID,
    current_user: CurrentUser = Depends(require_student),
    service: SuggestionService = Depends(get_suggestion_service),
) -> TransitionResponse:
    subject = await _learner_subject(service, current_user)
    return await _decide(service.restore, subject, figure_id)


# =========================================================================
# Group endpoints
# =========================================================================


@router.get(
    "/groups/{group_id}",
    response_model=SuggestionListResponse,
    summary="List group suggestions",
)
async def list_group_suggestions(
    group_id: UUID,
    limit: int | None = Query(None, ge=1, le=100),
    min_score: float | None = Query(None, ge=0, le=100),
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    service: SuggestionService = Depends(get_suggestion_service),
) -> SuggestionListResponse:
    subject = await _group_subject(service, current_user, group_id)
    return await service.list_suggestions(subject, limit=limit, min_score=min_score)


@router.get(
    "/groups/{group_id}/{figure_id}/details",
    response_model=SuggestionDetailResponse,
    summary="Group suggestion breakdown",
)
async def get_group_suggestion_details(
    group_id: UUID,
    figure_id: UUID,
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    service: SuggestionService = Depends(get_suggestion_service),
) -> SuggestionDetailResponse:
    subject = await _group_subject(service, current_user, group_id)
    return await _detail(service, subject, figure_id)


@router.post(
    "/groups/{group_id}/{figure_id}/{action}",
    response_model=TransitionResponse,
    summary="Decide on a group suggestion",
)
@limiter.limit(RATE_LIMIT_SUGGESTION_ACTION)
async def decide_group_suggestion(
    request: Request,
    group_id: UUID,
    figure_id: UUID,
    action: str,
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    service: SuggestionService = Depends(get_suggestion_service),
) -> TransitionResponse:
    """Accept, dismiss or restore a group's suggestion."""
    decisions: dict[str, Decision] = {
        "accept": service.accept,
        "dismiss": service.dismiss,
        "restore": service.restore,
    }
    decision = decisions.get(action)
    if decision is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

    subject = await _group_subject(service, current_user, group_id)
    return await _decide(decision, subject, figure_id)


# =========================================================================
# Learning plan hook
# =========================================================================


@router.post(
    "/plan-events",
    response_model=TransitionResponse,
    summary="Learning plan change",
    description="Accept a suggestion when its figure is added to a plan, "
    "restore it when the figure is removed.",
)
async def apply_plan_event(
    data: PlanEventRequest,
    current_user: CurrentUser = Depends(require_teacher_or_admin),
    service: SuggestionService = Depends(get_suggestion_service),
) -> TransitionResponse:
    if SubjectKind(data.subject_kind) is SubjectKind.GROUP:
        subject = await _group_subject(service, current_user, data.subject_id)
    else:
        subject = await service.resolve_learner(str(data.subject_id))
        if subject is None or not current_user.can_access_school(subject.school_id):
            raise api_error(
                status.HTTP_404_NOT_FOUND,
                "SUBJECT_NOT_FOUND",
                "Learner not found",
                {"subject_id": str(data.subject_id)},
            )

    try:
        return await service.apply_plan_event(
            subject, str(data.figure_id), PlanChange(data.change)
        )
    except InvalidTransitionError as e:
        raise api_error(
            status.HTTP_409_CONFLICT,
            "INVALID_TRANSITION",
            str(e),
            {"current": e.current.value, "target": e.target.value},
        )
