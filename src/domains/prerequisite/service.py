# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prerequisite graph store.

This module provides the PrerequisiteService class for:
- Declaring, updating and removing prerequisite edges
- Listing a figure's prerequisites and dependents
- Loading the whole edge set as a PrerequisiteGraph snapshot

Edge insertions are serialised: a process-wide asyncio lock covers
concurrent requests in one worker and a transaction-scoped PostgreSQL
advisory lock covers every other worker. The cycle check runs against a
snapshot loaded while both are held, so check-then-insert is atomic.
Deletions take no lock since removing an edge cannot close a cycle.

Edge mutations never touch the suggestion cache; the next scheduled
refresh picks them up.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.prerequisite.graph import (
    CycleGuard,
    PrerequisiteEdge,
    PrerequisiteGraph,
)
from src.infrastructure.database.models import Figure, FigurePrerequisite
from src.models.prerequisite import (
    PrerequisiteEdgeResponse,
    PrerequisiteListResponse,
)

logger = logging.getLogger(__name__)

# Key for pg_advisory_xact_lock guarding structural graph mutations
GRAPH_MUTATION_LOCK_KEY = 731_204_001

MIN_WEIGHT = 1
MAX_WEIGHT = 3

_insert_lock = asyncio.Lock()


class PrerequisiteServiceError(Exception):
    """Base exception for prerequisite service errors."""

    pass


class SkillNotFoundError(PrerequisiteServiceError):
    """Raised when a referenced figure does not exist or is not visible."""

    def __init__(self, figure_id: str) -> None:
        super().__init__(f"Figure not found: {figure_id}")
        self.figure_id = figure_id


class DuplicateEdgeError(PrerequisiteServiceError):
    """Raised when the (figure, prerequisite) pair already exists."""

    def __init__(self, figure_id: str, prerequisite_id: str) -> None:
        super().__init__(
            f"Figure {prerequisite_id} is already a prerequisite of {figure_id}"
        )
        self.figure_id = figure_id
        self.prerequisite_id = prerequisite_id


class EdgeNotFoundError(PrerequisiteServiceError):
    """Raised when an edge to update or remove does not exist."""

    pass


class InvalidEdgeError(PrerequisiteServiceError):
    """Raised when edge attributes are out of range or the edge is a self-loop."""

    pass


def _to_edge(row: FigurePrerequisite) -> PrerequisiteEdge:
    return PrerequisiteEdge(
        parent_id=row.figure_id,
        prerequisite_id=row.prerequisite_id,
        order=row.order,
        required=row.is_required,
        weight=row.weight,
        id=row.id,
        created_at=row.created_at,
    )


class PrerequisiteService:
    """Service for managing prerequisite edges.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize prerequisite service.

        Args:
            db: Async database session.
        """
        self.db = db

    async def add_edge(
        self,
        parent_id: str,
        prerequisite_id: str,
        *,
        order: int | None = None,
        required: bool = True,
        weight: int = MIN_WEIGHT,
        school_id: str | None = None,
    ) -> PrerequisiteEdgeResponse:
        """Declare prerequisite_id as a prerequisite of parent_id.

        Args:
            parent_id: Figure that requires the prerequisite.
            prerequisite_id: Figure to learn first.
            order: Learning sequence position. Defaults to after the
                figure's last existing prerequisite.
            required: Whether the edge counts toward readiness.
            weight: Relative importance, 1 to 3.
            school_id: Caller's school scope. None means unrestricted.

        Returns:
            The created edge.

        Raises:
            InvalidEdgeError: On a self-loop or out-of-range attribute.
            SkillNotFoundError: If either figure is missing or not visible.
            DuplicateEdgeError: If the pair already exists.
            CycleDetectedError: If the edge would close a cycle.
        """
        if parent_id == prerequisite_id:
            raise InvalidEdgeError("A figure cannot be its own prerequisite")
        self._validate_attributes(order=order, weight=weight)

        figures = await self._get_figures([parent_id, prerequisite_id], school_id)

        async with _insert_lock:
            await self._acquire_graph_lock()

            if await self._get_edge(parent_id, prerequisite_id) is not None:
                raise DuplicateEdgeError(parent_id, prerequisite_id)

            graph = await self.load_graph()
            names = {figure_id: figure.name for figure_id, figure in figures.items()}
            guard = CycleGuard(graph)
            path = guard.find_cycle_path(parent_id, prerequisite_id)
            if path is not None:
                names.update(await self._get_names(path))
            guard.ensure_acyclic(parent_id, prerequisite_id, names)

            if order is None:
                order = await self._next_order(parent_id)

            edge = FigurePrerequisite(
                figure_id=parent_id,
                prerequisite_id=prerequisite_id,
                order=order,
                is_required=required,
                weight=weight,
            )
            self.db.add(edge)
            try:
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                raise DuplicateEdgeError(parent_id, prerequisite_id) from e
            await self.db.refresh(edge)

        logger.info(
            "Added prerequisite %s -> %s (order=%s, required=%s, weight=%s)",
            parent_id,
            prerequisite_id,
            order,
            required,
            weight,
        )
        return self._to_response(_to_edge(edge), figures)

    async def update_edge(
        self,
        parent_id: str,
        prerequisite_id: str,
        *,
        order: int | None = None,
        required: bool | None = None,
        weight: int | None = None,
        school_id: str | None = None,
    ) -> PrerequisiteEdgeResponse:
        """Change the attributes of an existing edge.

        The graph structure is unchanged, so no cycle check is needed.

        Raises:
            InvalidEdgeError: On an out-of-range attribute.
            SkillNotFoundError: If the parent figure is not visible.
            EdgeNotFoundError: If the edge does not exist.
        """
        self._validate_attributes(order=order, weight=weight)
        figures = await self._get_figures([parent_id], school_id)

        edge = await self._get_edge(parent_id, prerequisite_id)
        if edge is None:
            raise EdgeNotFoundError(
                f"Figure {prerequisite_id} is not a prerequisite of {parent_id}"
            )

        if order is not None:
            edge.order = order
        if required is not None:
            edge.is_required = required
        if weight is not None:
            edge.weight = weight

        await self.db.commit()
        await self.db.refresh(edge)

        logger.info("Updated prerequisite %s -> %s", parent_id, prerequisite_id)
        figures.update(await self._get_figures([prerequisite_id], None))
        return self._to_response(_to_edge(edge), figures)

    async def remove_edge(
        self,
        parent_id: str,
        prerequisite_id: str,
        school_id: str | None = None,
    ) -> None:
        """Remove an edge unconditionally.

        Raises:
            SkillNotFoundError: If the parent figure is not visible.
            EdgeNotFoundError: If the edge does not exist.
        """
        await self._get_figures([parent_id], school_id)

        edge = await self._get_edge(parent_id, prerequisite_id)
        if edge is None:
            raise EdgeNotFoundError(
                f"Figure {prerequisite_id} is not a prerequisite of {parent_id}"
            )

        await self.db.delete(edge)
        await self.db.commit()

        logger.info("Removed prerequisite %s -> %s", parent_id, prerequisite_id)

    async def edges_for(self, parent_id: str) -> list[PrerequisiteEdge]:
        """Edges of a figure ordered by order, then prerequisite id."""
        result = await self.db.execute(
            select(FigurePrerequisite)
            .where(FigurePrerequisite.figure_id == parent_id)
            .order_by(FigurePrerequisite.order, FigurePrerequisite.prerequisite_id)
        )
        return [_to_edge(row) for row in result.scalars().all()]

    async def reverse_edges_for(self, prerequisite_id: str) -> list[PrerequisiteEdge]:
        """Edges that have the given figure as prerequisite, ordered by parent id."""
        result = await self.db.execute(
            select(FigurePrerequisite)
            .where(FigurePrerequisite.prerequisite_id == prerequisite_id)
            .order_by(FigurePrerequisite.figure_id)
        )
        return [_to_edge(row) for row in result.scalars().all()]

    async def load_graph(self) -> PrerequisiteGraph:
        """Load every edge into an in-memory graph snapshot."""
        result = await self.db.execute(select(FigurePrerequisite))
        return PrerequisiteGraph.from_edges(_to_edge(row) for row in result.scalars().all())

    async def list_prerequisites(
        self,
        figure_id: str,
        school_id: str | None = None,
    ) -> PrerequisiteListResponse:
        """List a figure's prerequisites with names, in learning order.

        Raises:
            SkillNotFoundError: If the figure is not visible.
        """
        figures = await self._get_figures([figure_id], school_id)
        edges = await self.edges_for(figure_id)
        figures.update(await self._get_figures_unchecked([e.prerequisite_id for e in edges]))
        items = [self._to_response(edge, figures) for edge in edges]
        return PrerequisiteListResponse(figure_id=figure_id, items=items, total=len(items))

    async def list_dependents(
        self,
        figure_id: str,
        school_id: str | None = None,
    ) -> PrerequisiteListResponse:
        """List edges whose prerequisite is the given figure.

        Raises:
            SkillNotFoundError: If the figure is not visible.
        """
        figures = await self._get_figures([figure_id], school_id)
        edges = await self.reverse_edges_for(figure_id)
        figures.update(await self._get_figures_unchecked([e.parent_id for e in edges]))
        items = [
            self._to_response(edge, figures)
            for edge in edges
            if self._is_visible(figures.get(edge.parent_id), school_id)
        ]
        return PrerequisiteListResponse(figure_id=figure_id, items=items, total=len(items))

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _validate_attributes(order: int | None, weight: int | None) -> None:
        if order is not None and order < 1:
            raise InvalidEdgeError("order must be a positive integer")
        if weight is not None and not MIN_WEIGHT <= weight <= MAX_WEIGHT:
            raise InvalidEdgeError(f"weight must be between {MIN_WEIGHT} and {MAX_WEIGHT}")

    @staticmethod
    def _is_visible(figure: Figure | None, school_id: str | None) -> bool:
        if figure is None:
            return False
        return school_id is None or figure.school_id is None or figure.school_id == school_id

    async def _acquire_graph_lock(self) -> None:
        await self.db.execute(select(func.pg_advisory_xact_lock(GRAPH_MUTATION_LOCK_KEY)))

    async def _get_figures_unchecked(self, figure_ids: list[str]) -> dict[str, Figure]:
        if not figure_ids:
            return {}
        result = await self.db.execute(select(Figure).where(Figure.id.in_(figure_ids)))
        return {figure.id: figure for figure in result.scalars().all()}

    async def _get_figures(
        self,
        figure_ids: list[str],
        school_id: str | None,
    ) -> dict[str, Figure]:
        """Fetch figures and check they are visible in the school scope.

        Raises:
            SkillNotFoundError: For the first missing or hidden figure.
        """
        query = select(Figure).where(Figure.id.in_(figure_ids))
        if school_id is not None:
            query = query.where(or_(Figure.school_id.is_(None), Figure.school_id == school_id))
        result = await self.db.execute(query)
        figures = {figure.id: figure for figure in result.scalars().all()}

        for figure_id in figure_ids:
            if figure_id not in figures:
                raise SkillNotFoundError(figure_id)
        return figures

    async def _get_names(self, figure_ids: list[str]) -> dict[str, str]:
        figures = await self._get_figures_unchecked(figure_ids)
        return {figure_id: figure.name for figure_id, figure in figures.items()}

    async def _get_edge(
        self,
        parent_id: str,
        prerequisite_id: str,
    ) -> FigurePrerequisite | None:
        result = await self.db.execute(
            select(FigurePrerequisite).where(
                FigurePrerequisite.figure_id == parent_id,
                FigurePrerequisite.prerequisite_id == prerequisite_id,
            )
        )
        return result.scalar_one_or_none()

    async def _next_order(self, parent_id: str) -> int:
        result = await self.db.execute(
            select(func.max(FigurePrerequisite.order)).where(
                FigurePrerequisite.figure_id == parent_id
            )
        )
        current = result.scalar()
        return (current or 0) + 1

    @staticmethod
    def _to_response(
        edge: PrerequisiteEdge,
        figures: dict[str, Figure],
    ) -> PrerequisiteEdgeResponse:
        parent = figures.get(edge.parent_id)
        prereq = figures.get(edge.prerequisite_id)
        return PrerequisiteEdgeResponse(
            id=edge.id,
            figure_id=edge.parent_id,
            figure_name=parent.name if parent else None,
            prerequisite_id=edge.prerequisite_id,
            prerequisite_name=prereq.name if prereq else None,
            order=edge.order,
            is_required=edge.required,
            weight=edge.weight,
            created_at=edge.created_at,
        )
