# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Preparation score calculation.

The readiness score of a candidate figure is the weighted share of its
required prerequisites the subject has satisfied:

    score = 100 * sum(weight of satisfied required edges)
                / sum(weight of all required edges)

rounded half-up to two decimals. Optional prerequisites are shown in the
breakdown but never enter the score. A candidate with no required
prerequisites, or whose required weights sum to zero, is not applicable.

Example:
    >>> edges = [
    ...     PrerequisiteEdge("atr-mur", "gainage", weight=2),
    ...     PrerequisiteEdge("atr-mur", "equilibre-mains", weight=1),
    ... ]
    >>> compute_readiness("atr-mur", edges, {"gainage": CompletionStatus.SATISFIED}).score
    Decimal('66.67')
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping

from src.domains.prerequisite.graph import PrerequisiteEdge, PrerequisiteGraph
from src.domains.suggestion.models import CompletionStatus, Subject, SuggestionError
from src.domains.suggestion.sources import CompletionSource

SCORE_QUANTUM = Decimal("0.01")
MAX_SCORE = Decimal("100")


class NotApplicableError(SuggestionError):
    """Raised when a candidate has no usable score denominator."""

    def __init__(self, candidate_id: str, reason: str) -> None:
        super().__init__(f"Figure {candidate_id} is not applicable: {reason}")
        self.candidate_id = candidate_id
        self.reason = reason


@dataclass(frozen=True)
class PrerequisiteState:
    """One edge of a candidate with the subject's completion on it."""

    edge: PrerequisiteEdge
    completion: CompletionStatus

    @property
    def satisfied(self) -> bool:
        return self.completion is CompletionStatus.SATISFIED


@dataclass(frozen=True)
class ReadinessScore:
    """Score of one candidate for one subject.

    Attributes:
        candidate_id: Candidate figure.
        score: Weighted readiness, 0.00 to 100.00.
        satisfied_count: Satisfied required prerequisites (unweighted).
        required_total: Required prerequisites (unweighted).
        breakdown: Every prerequisite edge, required or optional, in order.
    """

    candidate_id: str
    score: Decimal
    satisfied_count: int
    required_total: int
    breakdown: tuple[PrerequisiteState, ...] = ()


def describe_prerequisites(
    edges: Iterable[PrerequisiteEdge],
    completion: Mapping[str, CompletionStatus],
) -> tuple[PrerequisiteState, ...]:
    """Pair each edge with the subject's completion of its prerequisite."""
    ordered = sorted(edges, key=lambda e: (e.order, e.prerequisite_id))
    return tuple(
        PrerequisiteState(
            edge=edge,
            completion=completion.get(edge.prerequisite_id, CompletionStatus.NOT_STARTED),
        )
        for edge in ordered
    )


def compute_readiness(
    candidate_id: str,
    edges: Iterable[PrerequisiteEdge],
    completion: Mapping[str, CompletionStatus],
) -> ReadinessScore:
    """Compute the readiness score from edges and a completion map.

    Args:
        candidate_id: Candidate figure.
        edges: All edges whose parent is the candidate.
        completion: Subject's completion status by figure id. Missing
            figures count as not started.

    Returns:
        The readiness score with counts and breakdown.

    Raises:
        NotApplicableError: If there is no required edge or the required
            weights sum to zero.
    """
    breakdown = describe_prerequisites(edges, completion)
    required = [state for state in breakdown if state.edge.required]
    if not required:
        raise NotApplicableError(candidate_id, "no required prerequisites")

    total_weight = sum(state.edge.weight for state in required)
    if total_weight <= 0:
        raise NotApplicableError(candidate_id, "required prerequisites have zero weight")

    satisfied = [state for state in required if state.satisfied]
    satisfied_weight = sum(state.edge.weight for state in satisfied)

    score = (MAX_SCORE * satisfied_weight / total_weight).quantize(
        SCORE_QUANTUM, rounding=ROUND_HALF_UP
    )
    return ReadinessScore(
        candidate_id=candidate_id,
        score=score,
        satisfied_count=len(satisfied),
        required_total=len(required),
        breakdown=breakdown,
    )


class PreparationScoreCalculator:
    """Scores candidates for a subject against a graph snapshot.

    prefetch() loads the subject's completion for a set of candidates and
    their prerequisites in one lookup; compute_score() then reads from it
    instead of querying once per candidate.

    Attributes:
        graph: Prerequisite graph snapshot.
        completion: Source of the subject's completion state.
    """

    def __init__(self, graph: PrerequisiteGraph, completion: CompletionSource) -> None:
        self.graph = graph
        self.completion = completion
        self._prefetched: tuple[Subject, set[str], dict[str, CompletionStatus]] | None = None

    async def prefetch(
        self,
        subject: Subject,
        candidate_ids: Iterable[str],
    ) -> dict[str, CompletionStatus]:
        """Load completion of the candidates and every prerequisite they have.

        Returns:
            The subject's completion by figure id. Figures not started are
            absent.
        """
        involved: set[str] = set()
        for candidate_id in candidate_ids:
            involved.add(candidate_id)
            involved.update(edge.prerequisite_id for edge in self.graph.edges_for(candidate_id))

        completion = dict(await self.completion.completion_for(subject, sorted(involved)))
        self._prefetched = (subject, involved, completion)
        return completion

    async def compute_score(self, subject: Subject, candidate_id: str) -> ReadinessScore:
        """Score one candidate for the subject.

        Raises:
            NotApplicableError: If the candidate has no required prerequisites.
        """
        edges = self.graph.edges_for(candidate_id)
        if not any(edge.required for edge in edges):
            raise NotApplicableError(candidate_id, "no required prerequisites")

        completion = await self._completion(subject, [edge.prerequisite_id for edge in edges])
        return compute_readiness(candidate_id, edges, completion)

    async def _completion(
        self,
        subject: Subject,
        figure_ids: list[str],
    ) -> Mapping[str, CompletionStatus]:
        if self._prefetched is not None:
            known_subject, involved, known = self._prefetched
            if known_subject == subject and involved.issuperset(figure_ids):
                return known
        return await self.completion.completion_for(subject, figure_ids)
