# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the prerequisite graph and cycle guard."""

import pytest

from src.domains.prerequisite.graph import (
    CycleDetectedError,
    CycleGuard,
    PrerequisiteEdge,
    PrerequisiteGraph,
)


def _graph(*pairs: tuple[str, str]) -> PrerequisiteGraph:
    return PrerequisiteGraph.from_edges(PrerequisiteEdge(p, q) for p, q in pairs)


class TestPrerequisiteGraph:
    """Tests for the arena adjacency structure."""

    def test_edges_for_orders_by_order_then_id(self) -> None:
        graph = PrerequisiteGraph.from_edges([
            PrerequisiteEdge("A", "D", order=2),
            PrerequisiteEdge("A", "C", order=1),
            PrerequisiteEdge("A", "B", order=2),
        ])

        assert [e.prerequisite_id for e in graph.edges_for("A")] == ["C", "B", "D"]

    def test_edges_for_unknown_figure_is_empty(self) -> None:
        assert _graph(("A", "B")).edges_for("Z") == []

    def test_reverse_edges_for(self) -> None:
        graph = _graph(("C", "A"), ("B", "A"), ("B", "C"))

        assert [e.parent_id for e in graph.reverse_edges_for("A")] == ["B", "C"]

    def test_re_adding_pair_replaces_attributes(self) -> None:
        graph = _graph(("A", "B"))
        graph.add(PrerequisiteEdge("A", "B", weight=3))

        assert len(graph) == 1
        assert graph.edges_for("A")[0].weight == 3

    def test_candidate_ids_require_a_required_edge(self) -> None:
        graph = PrerequisiteGraph.from_edges([
            PrerequisiteEdge("B", "X"),
            PrerequisiteEdge("A", "X"),
            PrerequisiteEdge("C", "X", required=False),
        ])

        assert graph.candidate_ids() == ["A", "B"]
        assert graph.required_edges_for("C") == []

    def test_has_edge_and_contains(self) -> None:
        graph = _graph(("A", "B"))

        assert graph.has_edge("A", "B")
        assert not graph.has_edge("B", "A")
        assert "A" in graph
        assert "Z" not in graph
        assert graph.node_ids == ["A", "B"]

    def test_path_between(self) -> None:
        graph = _graph(("A", "B"), ("B", "C"), ("A", "D"))

        assert graph.path_between("A", "C") == ["A", "B", "C"]
        assert graph.path_between("C", "A") is None
        assert graph.path_between("A", "A") == ["A"]

    def test_find_any_cycle_on_acyclic_graph(self) -> None:
        assert _graph(("A", "B"), ("B", "C"), ("A", "C")).find_any_cycle() is None

    def test_find_any_cycle_reports_loop(self) -> None:
        cycle = _graph(("A", "B"), ("B", "C"), ("C", "A")).find_any_cycle()

        assert cycle is not None
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"A", "B", "C"}


class TestCycleGuard:
    """Tests for CycleGuard."""

    def test_two_node_cycle_rejected(self) -> None:
        """A requires B, so B requiring A is rejected."""
        guard = CycleGuard(_graph(("A", "B")))

        assert guard.would_create_cycle("B", "A")
        with pytest.raises(CycleDetectedError):
            guard.ensure_acyclic("B", "A")

    def test_three_node_cycle_rejected(self) -> None:
        guard = CycleGuard(_graph(("A", "B"), ("B", "C")))

        with pytest.raises(CycleDetectedError) as exc_info:
            guard.ensure_acyclic("C", "A")

        assert exc_info.value.path == ["A", "B", "C"]

    def test_closing_edge_is_reported(self) -> None:
        """Y requires Z and Z requires X, so X requiring Y is closed by Z."""
        guard = CycleGuard(_graph(("Y", "Z"), ("Z", "X")))

        with pytest.raises(CycleDetectedError) as exc_info:
            guard.ensure_acyclic("X", "Y", names={"X": "Salto", "Y": "Flip", "Z": "Rondade"})

        error = exc_info.value
        assert error.parent_id == "X"
        assert error.prerequisite_id == "Y"
        assert error.closing_id == "Z"
        assert "Rondade" in str(error)
        assert "Salto" in str(error)
        details = error.to_details()
        assert details["closing_id"] == "Z"
        assert details["closing_name"] == "Rondade"
        assert details["path"] == ["Y", "Z", "X"]

    def test_self_edge_is_a_cycle(self) -> None:
        guard = CycleGuard(PrerequisiteGraph())

        with pytest.raises(CycleDetectedError) as exc_info:
            guard.ensure_acyclic("A", "A")

        assert exc_info.value.closing_id == "A"

    def test_diamond_is_accepted(self) -> None:
        """Two paths to the same prerequisite do not form a cycle."""
        guard = CycleGuard(_graph(("A", "B"), ("A", "C"), ("B", "D")))

        assert not guard.would_create_cycle("C", "D")
        guard.ensure_acyclic("C", "D")

    def test_unrelated_figures_are_accepted(self) -> None:
        guard = CycleGuard(_graph(("A", "B")))

        assert guard.find_cycle_path("C", "D") is None

    def test_guarded_inserts_never_produce_a_cycle(self) -> None:
        graph = PrerequisiteGraph()
        guard = CycleGuard(graph)
        figures = ["A", "B", "C", "D", "E"]
        for parent in figures:
            for prereq in figures:
                if not guard.would_create_cycle(parent, prereq):
                    graph.add(PrerequisiteEdge(parent, prereq))

        assert len(graph) > 0
        assert graph.find_any_cycle() is None
