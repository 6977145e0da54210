# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the request-path SuggestionService."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.core.config.settings import SuggestionSettings
from src.domains.prerequisite.graph import PrerequisiteEdge
from src.domains.suggestion.models import (
    CompletionStatus,
    FigureRef,
    PlanChange,
    Subject,
    TransitionOutcome,
)
from src.domains.suggestion.service import (
    UNAVAILABLE_MESSAGE,
    FigureNotFoundError,
    SuggestionService,
)
from src.infrastructure.database.models import FigureSuggestion

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _entry(figure_id: str, score: str, status: str = "pending") -> FigureSuggestion:
    return FigureSuggestion(
        id=f"entry-{figure_id}",
        learner_id="alice",
        figure_id=figure_id,
        score=Decimal(score),
        satisfied_count=1,
        required_total=2,
        status=status,
        refreshed_at=NOW,
        expires_at=NOW + timedelta(hours=24),
    )


@pytest.fixture
def db() -> MagicMock:
    session = MagicMock()
    session.commit = AsyncMock()
    return session


@pytest.fixture
def service(db: MagicMock) -> SuggestionService:
    svc = SuggestionService(db, SuggestionSettings(list_limit=5, min_score=10.0))
    svc.cache = MagicMock()
    svc.catalog = MagicMock()
    svc.completion = MagicMock()
    svc.catalog.get_figures = AsyncMock(return_value={})
    svc.cache.get_entry = AsyncMock(return_value=None)
    return svc


@pytest.fixture
def alice() -> Subject:
    return Subject.learner("alice", "school-1")


class TestListSuggestions:
    """Tests for list_suggestions."""

    @pytest.mark.asyncio
    async def test_uses_configured_defaults(self, service, alice) -> None:
        service.cache.list_pending = AsyncMock(return_value=[])

        await service.list_suggestions(alice)

        service.cache.list_pending.assert_awaited_once_with(alice, limit=5, min_score=10.0)

    @pytest.mark.asyncio
    async def test_explicit_zero_min_score_is_kept(self, service, alice) -> None:
        service.cache.list_pending = AsyncMock(return_value=[])

        await service.list_suggestions(alice, limit=20, min_score=0)

        service.cache.list_pending.assert_awaited_once_with(alice, limit=20, min_score=0)

    @pytest.mark.asyncio
    async def test_items_carry_names_and_cached_scores(self, service, alice) -> None:
        service.cache.list_pending = AsyncMock(
            return_value=[_entry("atr", "66.67"), _entry("salto", "33.33")]
        )
        service.catalog.get_figures.return_value = {"atr": FigureRef("atr", "ATR")}

        response = await service.list_suggestions(alice)

        assert response.subject_kind == "learner"
        assert response.total == 2
        assert [i.figure_id for i in response.items] == ["atr", "salto"]
        assert response.items[0].figure_name == "ATR"
        assert response.items[0].score == 66.67
        assert response.items[1].figure_name is None


class TestDetail:
    """Tests for get_detail."""

    @pytest.mark.asyncio
    async def test_hidden_figure_not_found(self, service, alice) -> None:
        service.catalog.get_figures.return_value = {
            "trapeze": FigureRef("trapeze", "Trapeze", school_id="school-2")
        }

        with pytest.raises(FigureNotFoundError):
            await service.get_detail(alice, "trapeze")

    @pytest.mark.asyncio
    async def test_live_breakdown(self, service, alice) -> None:
        service.catalog.get_figures.side_effect = [
            {"atr": FigureRef("atr", "ATR")},
            {"gainage": FigureRef("gainage", "Gainage")},
        ]
        service.completion.completion_for = AsyncMock(
            return_value={"gainage": CompletionStatus.SATISFIED}
        )
        edges = [
            PrerequisiteEdge("atr", "gainage", order=1, weight=2),
            PrerequisiteEdge("atr", "equilibre", order=2, weight=1),
            PrerequisiteEdge("atr", "souplesse", order=3, required=False),
        ]

        with patch("src.domains.suggestion.service.PrerequisiteService") as store:
            store.return_value.edges_for = AsyncMock(return_value=edges)
            detail = await service.get_detail(alice, "atr")

        assert detail.applicable is True
        assert detail.score == 66.67
        assert (detail.satisfied_count, detail.required_total) == (1, 2)
        assert [p.prerequisite_id for p in detail.prerequisites] == [
            "gainage",
            "equilibre",
            "souplesse",
        ]
        assert detail.prerequisites[0].name == "Gainage"
        assert detail.prerequisites[0].satisfied is True
        assert detail.prerequisites[2].is_required is False
        assert detail.entry is None
        service.db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_figure_without_required_prerequisites(self, service, alice) -> None:
        service.catalog.get_figures.side_effect = [{"atr": FigureRef("atr", "ATR")}, {}]
        service.completion.completion_for = AsyncMock(return_value={})

        with patch("src.domains.suggestion.service.PrerequisiteService") as store:
            store.return_value.edges_for = AsyncMock(
                return_value=[PrerequisiteEdge("atr", "souplesse", required=False)]
            )
            detail = await service.get_detail(alice, "atr")

        assert detail.applicable is False
        assert detail.score is None
        assert len(detail.prerequisites) == 1


class TestDecisions:
    """Tests for accept, dismiss, restore and plan events."""

    @pytest.mark.asyncio
    async def test_applied_transition_commits(self, service, db, alice) -> None:
        service.cache.mark_accepted = AsyncMock(return_value=TransitionOutcome.APPLIED)
        service.cache.get_entry.return_value = _entry("atr", "66.67", status="accepted")

        response = await service.accept(alice, "atr")

        db.commit.assert_awaited_once()
        assert response.outcome == "applied"
        assert response.status == "accepted"

    @pytest.mark.asyncio
    async def test_unchanged_does_not_commit(self, service, db, alice) -> None:
        service.cache.mark_dismissed = AsyncMock(return_value=TransitionOutcome.UNCHANGED)
        service.cache.get_entry.return_value = _entry("atr", "66.67", status="dismissed")

        response = await service.dismiss(alice, "atr")

        db.commit.assert_not_awaited()
        assert response.outcome == "unchanged"
        assert response.status == "dismissed"

    @pytest.mark.asyncio
    async def test_unavailable_carries_message(self, service, db, alice) -> None:
        service.cache.mark_accepted = AsyncMock(return_value=TransitionOutcome.UNAVAILABLE)

        response = await service.accept(alice, "atr")

        db.commit.assert_not_awaited()
        assert response.outcome == "unavailable"
        assert response.message == UNAVAILABLE_MESSAGE
        assert response.status is None

    @pytest.mark.asyncio
    async def test_restore_resets(self, service, alice) -> None:
        service.cache.reset = AsyncMock(return_value=TransitionOutcome.APPLIED)
        service.cache.get_entry.return_value = _entry("atr", "66.67")

        response = await service.restore(alice, "atr")

        service.cache.reset.assert_awaited_once_with(alice, "atr")
        assert response.status == "pending"

    @pytest.mark.asyncio
    async def test_plan_event_delegates_to_cache(self, service, alice) -> None:
        service.cache.apply_plan_change = AsyncMock(return_value=TransitionOutcome.APPLIED)
        service.cache.get_entry.return_value = _entry("atr", "66.67", status="accepted")

        response = await service.apply_plan_event(alice, "atr", PlanChange.ADDED)

        service.cache.apply_plan_change.assert_awaited_once_with(alice, "atr", PlanChange.ADDED)
        assert response.outcome == "applied"
