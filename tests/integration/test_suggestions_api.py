# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API tests for the suggestion endpoints."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.api.dependencies import get_suggestion_service
from src.domains.suggestion import (
    FigureNotFoundError,
    InvalidTransitionError,
    PlanChange,
    Subject,
    SuggestionStatus,
)
from src.domains.suggestion.service import UNAVAILABLE_MESSAGE
from src.models.suggestion import (
    SuggestionDetailResponse,
    SuggestionListResponse,
    SuggestionResponse,
    TransitionResponse,
)

BASE = "/api/v1/suggestions"
SCHOOL_ID = "550e8400-e29b-41d4-a716-446655440000"
LEARNER_ID = "550e8400-e29b-41d4-a716-446655440001"
GROUP_ID = "550e8400-e29b-41d4-a716-446655440010"
FIGURE_ID = "6f1d2c3e-0000-4000-8000-000000000001"


def _listing(subject: Subject) -> SuggestionListResponse:
    return SuggestionListResponse(
        subject_kind=subject.kind.value,
        subject_id=subject.id,
        items=[
            SuggestionResponse(
                figure_id="atr",
                figure_name="ATR-mur",
                score=66.67,
                satisfied_count=1,
                required_total=2,
                status="pending",
            )
        ],
        total=1,
    )


def _applied(status: str) -> TransitionResponse:
    return TransitionResponse(figure_id=FIGURE_ID, outcome="applied", status=status)


@pytest.fixture
def learner() -> Subject:
    return Subject.learner(LEARNER_ID, SCHOOL_ID)


@pytest.fixture
def group() -> Subject:
    return Subject.group(GROUP_ID, SCHOOL_ID)


@pytest.fixture
def service(app, learner, group) -> MagicMock:
    mock = MagicMock()
    mock.resolve_learner = AsyncMock(return_value=learner)
    mock.resolve_group = AsyncMock(return_value=group)
    mock.list_suggestions = AsyncMock(side_effect=lambda subject, **kw: _listing(subject))
    mock.get_detail = AsyncMock(
        return_value=SuggestionDetailResponse(
            figure_id="atr", figure_name="ATR-mur", applicable=True, score=66.67, prerequisites=[]
        )
    )
    mock.accept = AsyncMock(return_value=_applied("accepted"))
    mock.dismiss = AsyncMock(return_value=_applied("dismissed"))
    mock.restore = AsyncMock(return_value=_applied("pending"))
    mock.apply_plan_event = AsyncMock(return_value=_applied("accepted"))
    app.dependency_overrides[get_suggestion_service] = lambda: mock
    return mock


@pytest.fixture
def student_headers(make_headers) -> dict[str, str]:
    return make_headers("student", user_id=LEARNER_ID)


class TestLearnerSuggestions:
    """Tests for the learner endpoints."""

    def test_requires_authentication(self, client, service) -> None:
        assert client.get(BASE).status_code == 401

    def test_teacher_has_no_personal_list(self, client, service, make_headers) -> None:
        assert client.get(BASE, headers=make_headers("teacher")).status_code == 403

    def test_lists_pending(self, client, service, learner, student_headers) -> None:
        response = client.get(BASE, params={"limit": 5, "min_score": 50}, headers=student_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["subject_kind"] == "learner"
        assert body["items"][0]["score"] == 66.67
        service.resolve_learner.assert_awaited_once_with(LEARNER_ID)
        service.list_suggestions.assert_awaited_once_with(learner, limit=5, min_score=50.0)

    def test_defaults_left_to_service(self, client, service, learner, student_headers) -> None:
        client.get(BASE, headers=student_headers)

        service.list_suggestions.assert_awaited_once_with(learner, limit=None, min_score=None)

    @pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 101}, {"min_score": 150}])
    def test_query_validation(self, client, service, student_headers, params) -> None:
        response = client.get(BASE, params=params, headers=student_headers)

        assert response.status_code == 422

    def test_inactive_learner(self, client, service, student_headers) -> None:
        service.resolve_learner.return_value = None

        response = client.get(BASE, headers=student_headers)

        assert response.status_code == 404
        assert response.json()["detail"]["type"] == "SUBJECT_NOT_FOUND"

    def test_details(self, client, service, learner, student_headers) -> None:
        response = client.get(f"{BASE}/{FIGURE_ID}/details", headers=student_headers)

        assert response.status_code == 200
        assert response.json()["applicable"] is True
        service.get_detail.assert_awaited_once_with(learner, FIGURE_ID)

    def test_details_unknown_figure(self, client, service, student_headers) -> None:
        service.get_detail.side_effect = FigureNotFoundError("Figure not found: nope")

        response = client.get(f"{BASE}/{FIGURE_ID}/details", headers=student_headers)

        assert response.status_code == 404
        assert response.json()["detail"]["type"] == "SKILL_NOT_FOUND"


class TestLearnerDecisions:
    """Tests for accept, dismiss and restore."""

    @pytest.mark.parametrize(
        ("action", "status"),
        [("accept", "accepted"), ("dismiss", "dismissed"), ("restore", "pending")],
    )
    def test_applies_decision(
        self, client, service, learner, student_headers, action, status
    ) -> None:
        response = client.post(f"{BASE}/{FIGURE_ID}/{action}", headers=student_headers)

        assert response.status_code == 200
        assert response.json() == {
            "figure_id": FIGURE_ID,
            "outcome": "applied",
            "status": status,
            "message": None,
        }
        getattr(service, action).assert_awaited_once_with(learner, FIGURE_ID)

    def test_unavailable_is_not_an_error(self, client, service, student_headers) -> None:
        service.accept.return_value = TransitionResponse(
            figure_id="atr", outcome="unavailable", message=UNAVAILABLE_MESSAGE
        )

        response = client.post(f"{BASE}/{FIGURE_ID}/accept", headers=student_headers)

        assert response.status_code == 200
        assert response.json()["outcome"] == "unavailable"
        assert response.json()["message"] == UNAVAILABLE_MESSAGE

    def test_accepting_dismissed_is_conflict(self, client, service, student_headers) -> None:
        service.accept.side_effect = InvalidTransitionError(
            SuggestionStatus.DISMISSED, SuggestionStatus.ACCEPTED
        )

        response = client.post(f"{BASE}/{FIGURE_ID}/accept", headers=student_headers)

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["type"] == "INVALID_TRANSITION"
        assert detail["details"] == {"current": "dismissed", "target": "accepted"}


class TestGroupSuggestions:
    """Tests for the group endpoints."""

    def test_student_cannot_read_group(self, client, service, make_headers) -> None:
        response = client.get(f"{BASE}/groups/{GROUP_ID}", headers=make_headers("student"))

        assert response.status_code == 403

    def test_teacher_lists_group(self, client, service, group, make_headers) -> None:
        response = client.get(f"{BASE}/groups/{GROUP_ID}", headers=make_headers("teacher"))

        assert response.status_code == 200
        assert response.json()["subject_kind"] == "group"
        service.list_suggestions.assert_awaited_once_with(group, limit=None, min_score=None)

    def test_group_of_other_school_is_hidden(self, client, service, make_headers) -> None:
        response = client.get(
            f"{BASE}/groups/{GROUP_ID}",
            headers=make_headers("teacher", school_ids=["another-school"]),
        )

        assert response.status_code == 404
        service.list_suggestions.assert_not_awaited()

    def test_group_details(self, client, service, group, make_headers) -> None:
        response = client.get(
            f"{BASE}/groups/{GROUP_ID}/{FIGURE_ID}/details", headers=make_headers("teacher")
        )

        assert response.status_code == 200
        service.get_detail.assert_awaited_once_with(group, FIGURE_ID)

    def test_group_decision(self, client, service, group, make_headers) -> None:
        response = client.post(
            f"{BASE}/groups/{GROUP_ID}/{FIGURE_ID}/dismiss", headers=make_headers("teacher")
        )

        assert response.status_code == 200
        service.dismiss.assert_awaited_once_with(group, FIGURE_ID)

    def test_unknown_group_action(self, client, service, make_headers) -> None:
        response = client.post(
            f"{BASE}/groups/{GROUP_ID}/{FIGURE_ID}/archive", headers=make_headers("teacher")
        )

        assert response.status_code == 404
        service.resolve_group.assert_not_awaited()


class TestPlanEvents:
    """Tests for POST /suggestions/plan-events."""

    def test_added_to_plan(self, client, service, learner, make_headers) -> None:
        response = client.post(
            f"{BASE}/plan-events",
            json={
                "subject_kind": "learner",
                "subject_id": LEARNER_ID,
                "figure_id": FIGURE_ID,
                "change": "added",
            },
            headers=make_headers("teacher"),
        )

        assert response.status_code == 200
        service.apply_plan_event.assert_awaited_once_with(learner, FIGURE_ID, PlanChange.ADDED)

    def test_group_removed_from_plan(self, client, service, group, make_headers) -> None:
        response = client.post(
            f"{BASE}/plan-events",
            json={
                "subject_kind": "group",
                "subject_id": GROUP_ID,
                "figure_id": FIGURE_ID,
                "change": "removed",
            },
            headers=make_headers("school_admin"),
        )

        assert response.status_code == 200
        service.apply_plan_event.assert_awaited_once_with(group, FIGURE_ID, PlanChange.REMOVED)

    def test_invalid_change(self, client, service, make_headers) -> None:
        response = client.post(
            f"{BASE}/plan-events",
            json={
                "subject_kind": "learner",
                "subject_id": LEARNER_ID,
                "figure_id": FIGURE_ID,
                "change": "paused",
            },
            headers=make_headers("teacher"),
        )

        assert response.status_code == 422

    def test_students_cannot_send_plan_events(self, client, service, make_headers) -> None:
        response = client.post(
            f"{BASE}/plan-events",
            json={
                "subject_kind": "learner",
                "subject_id": LEARNER_ID,
                "figure_id": FIGURE_ID,
                "change": "added",
            },
            headers=make_headers("student"),
        )

        assert response.status_code == 403


class TestIdentifierValidation:
    """Non-UUID identifiers are rejected with 422 before any lookup."""

    def test_non_uuid_figure_in_path(self, client, service, student_headers) -> None:
        response = client.post(f"{BASE}/atr-mur/accept", headers=student_headers)

        assert response.status_code == 422
        service.accept.assert_not_awaited()

    def test_non_uuid_group_in_path(self, client, service, make_headers) -> None:
        response = client.get(f"{BASE}/groups/juniors", headers=make_headers("teacher"))

        assert response.status_code == 422
        service.resolve_group.assert_not_awaited()

    @pytest.mark.parametrize("field", ["subject_id", "figure_id"])
    def test_non_uuid_plan_event(self, client, service, make_headers, field) -> None:
        body = {
            "subject_kind": "learner",
            "subject_id": LEARNER_ID,
            "figure_id": FIGURE_ID,
            "change": "added",
        }
        body[field] = "x"

        response = client.post(f"{BASE}/plan-events", json=body, headers=make_headers("teacher"))

        assert response.status_code == 422
        service.apply_plan_event.assert_not_awaited()
