# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory prerequisite graph and cycle guard.

The edge set is loaded once into an arena: every figure id is interned to
an integer index and edges are kept as per-node index lists in both
directions. Traversals work on the indices and never go back to the
database.

Edge direction follows the data model: an edge ``parent -> prerequisite``
means "parent requires prerequisite". Adding that edge closes a cycle
exactly when ``parent`` is already reachable from ``prerequisite`` by
following existing edges forward.

Example:
    >>> graph = PrerequisiteGraph.from_edges([
    ...     PrerequisiteEdge("Y", "Z"),
    ...     PrerequisiteEdge("Z", "X"),
    ... ])
    >>> CycleGuard(graph).find_cycle_path("X", "Y")
    ['Y', 'Z', 'X']
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Mapping


@dataclass(frozen=True)
class PrerequisiteEdge:
    """A directed prerequisite edge.

    Attributes:
        parent_id: Figure that requires the prerequisite.
        prerequisite_id: Figure that must be learned first.
        order: Display and learning sequence, starting at 1.
        required: Whether the edge counts toward the readiness score.
        weight: Relative importance within the score denominator (1-3).
        id: Row id when loaded from the database.
        created_at: Row creation time when loaded from the database.
    """

    parent_id: str
    prerequisite_id: str
    order: int = 1
    required: bool = True
    weight: int = 1
    id: str | None = field(default=None, compare=False)
    created_at: datetime | None = field(default=None, compare=False)


class CycleDetectedError(Exception):
    """Raised when inserting an edge would make a figure its own prerequisite.

    Attributes:
        parent_id: Parent of the rejected edge.
        prerequisite_id: Prerequisite of the rejected edge.
        closing_id: Figure whose existing edge to ``parent_id`` closes the loop.
        path: Figures from ``prerequisite_id`` to ``parent_id`` along existing edges.
        names: Display names for the figures on the path, when known.
    """

    def __init__(
        self,
        parent_id: str,
        prerequisite_id: str,
        path: list[str],
        names: Mapping[str, str] | None = None,
    ) -> None:
        self.parent_id = parent_id
        self.prerequisite_id = prerequisite_id
        self.path = list(path)
        self.closing_id = path[-2] if len(path) > 1 else parent_id
        self.names = dict(names or {})
        super().__init__(
            f"Adding '{self._label(prerequisite_id)}' as a prerequisite of "
            f"'{self._label(parent_id)}' would create a cycle: "
            f"'{self._label(self.closing_id)}' already requires '{self._label(parent_id)}'"
        )

    def _label(self, figure_id: str) -> str:
        return self.names.get(figure_id, figure_id)

    def to_details(self) -> dict:
        """Structured description of the rejected edge for API error bodies."""
        return {
            "parent_id": self.parent_id,
            "parent_name": self.names.get(self.parent_id),
            "prerequisite_id": self.prerequisite_id,
            "prerequisite_name": self.names.get(self.prerequisite_id),
            "closing_id": self.closing_id,
            "closing_name": self.names.get(self.closing_id),
            "path": self.path,
        }


class PrerequisiteGraph:
    """Arena adjacency structure over a snapshot of prerequisite edges."""

    def __init__(self) -> None:
        self._index: dict[str, int] = {}
        self._ids: list[str] = []
        self._forward: list[list[int]] = []
        self._reverse: list[list[int]] = []
        self._edges: dict[tuple[int, int], PrerequisiteEdge] = {}

    @classmethod
    def from_edges(cls, edges: Iterable[PrerequisiteEdge]) -> "PrerequisiteGraph":
        """Build a graph from an edge snapshot."""
        graph = cls()
        for edge in edges:
            graph.add(edge)
        return graph

    def _intern(self, figure_id: str) -> int:
        idx = self._index.get(figure_id)
        if idx is None:
            idx = len(self._ids)
            self._index[figure_id] = idx
            self._ids.append(figure_id)
            self._forward.append([])
            self._reverse.append([])
        return idx

    def add(self, edge: PrerequisiteEdge) -> None:
        """Add an edge to the snapshot. Re-adding a pair replaces its attributes."""
        parent = self._intern(edge.parent_id)
        prereq = self._intern(edge.prerequisite_id)
        key = (parent, prereq)
        if key not in self._edges:
            self._forward[parent].append(prereq)
            self._reverse[prereq].append(parent)
        self._edges[key] = edge

    def __contains__(self, figure_id: object) -> bool:
        return figure_id in self._index

    def __len__(self) -> int:
        return len(self._edges)

    @property
    def node_ids(self) -> list[str]:
        return list(self._ids)

    def has_edge(self, parent_id: str, prerequisite_id: str) -> bool:
        parent = self._index.get(parent_id)
        prereq = self._index.get(prerequisite_id)
        if parent is None or prereq is None:
            return False
        return (parent, prereq) in self._edges

    def edges_for(self, parent_id: str) -> list[PrerequisiteEdge]:
        """Outgoing edges of a figure, ordered by order then prerequisite id."""
        parent = self._index.get(parent_id)
        if parent is None:
            return []
        edges = [self._edges[(parent, prereq)] for prereq in self._forward[parent]]
        return sorted(edges, key=lambda e: (e.order, e.prerequisite_id))

    def required_edges_for(self, parent_id: str) -> list[PrerequisiteEdge]:
        return [edge for edge in self.edges_for(parent_id) if edge.required]

    def reverse_edges_for(self, prerequisite_id: str) -> list[PrerequisiteEdge]:
        """Edges whose prerequisite is the given figure, ordered by parent id."""
        prereq = self._index.get(prerequisite_id)
        if prereq is None:
            return []
        edges = [self._edges[(parent, prereq)] for parent in self._reverse[prereq]]
        return sorted(edges, key=lambda e: e.parent_id)

    def candidate_ids(self) -> list[str]:
        """Figures with at least one required prerequisite, in id order."""
        return sorted(
            self._ids[parent]
            for parent in range(len(self._ids))
            if any(self._edges[(parent, p)].required for p in self._forward[parent])
        )

    def path_between(self, start_id: str, goal_id: str) -> list[str] | None:
        """Find a forward path from start to goal.

        Iterative depth-first search; each node is visited at most once.

        Returns:
            Figure ids from start to goal inclusive, or None when goal is
            not reachable.
        """
        if start_id == goal_id:
            return [start_id]
        start = self._index.get(start_id)
        goal = self._index.get(goal_id)
        if start is None or goal is None:
            return None

        parent_of: dict[int, int] = {start: start}
        stack = [start]
        while stack:
            current = stack.pop()
            for nxt in self._forward[current]:
                if nxt in parent_of:
                    continue
                parent_of[nxt] = current
                if nxt == goal:
                    return self._unwind(parent_of, start, goal)
                stack.append(nxt)
        return None

    def _unwind(self, parent_of: dict[int, int], start: int, goal: int) -> list[str]:
        path = [goal]
        while path[-1] != start:
            path.append(parent_of[path[-1]])
        path.reverse()
        return [self._ids[idx] for idx in path]

    def find_any_cycle(self) -> list[str] | None:
        """Return one cycle in the graph as a closed id path, or None.

        Used for integrity checks on snapshots; the guarded write path
        never lets a cycle in.
        """
        white, grey, black = 0, 1, 2
        color = [white] * len(self._ids)
        for root in range(len(self._ids)):
            if color[root] != white:
                continue
            stack: list[tuple[int, int]] = [(root, 0)]
            trail = [root]
            color[root] = grey
            while stack:
                node, pos = stack[-1]
                if pos < len(self._forward[node]):
                    stack[-1] = (node, pos + 1)
                    nxt = self._forward[node][pos]
                    if color[nxt] == grey:
                        loop = trail[trail.index(nxt):] + [nxt]
                        return [self._ids[idx] for idx in loop]
                    if color[nxt] == white:
                        color[nxt] = grey
                        trail.append(nxt)
                        stack.append((nxt, 0))
                else:
                    color[node] = black
                    trail.pop()
                    stack.pop()
        return None


class CycleGuard:
    """Validates that a proposed edge keeps the graph acyclic."""

    def __init__(self, graph: PrerequisiteGraph) -> None:
        self.graph = graph

    def find_cycle_path(self, parent_id: str, prerequisite_id: str) -> list[str] | None:
        """Path that the edge ``parent -> prerequisite`` would close, if any.

        A self-edge is a cycle of length one and yields ``[parent_id]``.
        """
        return self.graph.path_between(prerequisite_id, parent_id)

    def would_create_cycle(self, parent_id: str, prerequisite_id: str) -> bool:
        return self.find_cycle_path(parent_id, prerequisite_id) is not None

    def ensure_acyclic(
        self,
        parent_id: str,
        prerequisite_id: str,
        names: Mapping[str, str] | None = None,
    ) -> None:
        """Raise CycleDetectedError if the edge would close a cycle.

        Args:
            parent_id: Figure that would require the prerequisite.
            prerequisite_id: Proposed prerequisite.
            names: Optional id to display name map for the error message.

        Raises:
            CycleDetectedError: If ``parent_id`` is reachable from ``prerequisite_id``.
        """
        path = self.find_cycle_path(parent_id, prerequisite_id)
        if path is not None:
            raise CycleDetectedError(parent_id, prerequisite_id, path, names)
