# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Suggestion domain.

This domain provides:
- Readiness scoring of candidate figures against a subject's completion
- The per-subject suggestion cache and its lifecycle
- The batch refresh that repopulates pending suggestions
- The request-path service for listing and deciding on suggestions

Usage:
    from src.domains.suggestion import BatchRefreshOrchestrator

    orchestrator = BatchRefreshOrchestrator(sessionmaker, settings.suggestion)
    summary = await orchestrator.run()
"""

from src.domains.suggestion.cache import (
    ALLOWED_TRANSITIONS,
    InvalidTransitionError,
    SuggestionCacheService,
)
from src.domains.suggestion.models import (
    CompletionStatus,
    FigureRef,
    PlanChange,
    Subject,
    SubjectKind,
    SuggestionError,
    SuggestionStatus,
    TransitionOutcome,
)
from src.domains.suggestion.refresh import (
    BatchRefreshOrchestrator,
    OutcomeStatus,
    RefreshSummary,
    SubjectOutcome,
    SubjectRefreshFailure,
)
from src.domains.suggestion.scoring import (
    NotApplicableError,
    PreparationScoreCalculator,
    ReadinessScore,
    compute_readiness,
)
from src.domains.suggestion.service import FigureNotFoundError, SuggestionService

__all__ = [
    # Types
    "Subject",
    "SubjectKind",
    "CompletionStatus",
    "SuggestionStatus",
    "TransitionOutcome",
    "PlanChange",
    "FigureRef",
    # Scoring
    "ReadinessScore",
    "PreparationScoreCalculator",
    "compute_readiness",
    # Cache
    "ALLOWED_TRANSITIONS",
    "SuggestionCacheService",
    # Refresh
    "BatchRefreshOrchestrator",
    "RefreshSummary",
    "SubjectOutcome",
    "OutcomeStatus",
    # Service
    "SuggestionService",
    # Errors
    "SuggestionError",
    "NotApplicableError",
    "InvalidTransitionError",
    "SubjectRefreshFailure",
    "FigureNotFoundError",
]
