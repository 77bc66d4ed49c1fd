"""
Prerequisite Graph - weighted edges between figures, kept acyclic.

An edge (figure -> prerequisite) means "prerequisite is a building block of
figure". Before an edge is inserted, a depth-first search from the
prerequisite over existing outgoing edges checks that figure is not already
reachable; otherwise the two figures would depend on each other.

Detection and insertion are a check-then-act pair, so every graph mutation
runs under a single-writer lock: an in-process asyncio.Lock, plus a
transaction-scoped advisory lock on PostgreSQL for multi-process deployments.
"""

import asyncio
import uuid
import weakref
from collections import defaultdict
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict
from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from readiness_engine.database import atomic
from readiness_engine.errors import ConflictError, CycleError, NotFoundError, ValidationError
from readiness_engine.kernel.events.event_store import EventStore
from readiness_engine.kernel.models.catalog import Figure
from readiness_engine.kernel.models.event_log import EventType
from readiness_engine.kernel.models.graph import MAX_WEIGHT, MIN_WEIGHT, PrerequisiteEdge
from readiness_engine.logging_config import get_logger

logger = get_logger(__name__)

# Arbitrary constant identifying the graph-wide advisory lock
GRAPH_LOCK_KEY = 7_341_102

_graph_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]" = weakref.WeakKeyDictionary()


def _graph_write_lock() -> asyncio.Lock:
    """Single-writer lock for graph mutations, one per event loop."""
    loop = asyncio.get_running_loop()
    lock = _graph_locks.get(loop)
    if lock is None:
        lock = _graph_locks[loop] = asyncio.Lock()
    return lock


class EdgeView(BaseModel):
    """A prerequisite edge (Pydantic)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    figure_id: uuid.UUID
    prerequisite_id: uuid.UUID
    order: int
    is_required: bool
    weight: int


def _check_weight(weight: int) -> None:
    if isinstance(weight, bool) or not isinstance(weight, int) or not MIN_WEIGHT <= weight <= MAX_WEIGHT:
        raise ValidationError(
            f"weight must be an integer between {MIN_WEIGHT} and {MAX_WEIGHT}",
            details={"weight": weight},
        )


def _check_order(order: int) -> None:
    if isinstance(order, bool) or not isinstance(order, int) or order < 1:
        raise ValidationError("order must be a positive integer", details={"order": order})


def path_exists(adjacency: Dict[uuid.UUID, List[uuid.UUID]], start: uuid.UUID, goal: uuid.UUID) -> bool:
    """
    Depth-first search for a directed path from ``start`` to ``goal``.

    Each node is expanded at most once, so shared sub-prerequisites (diamond
    shapes) are not walked twice. Iterative, so deep chains cannot exhaust
    the recursion limit.
    """
    visited: Set[uuid.UUID] = set()
    stack = [start]
    while stack:
        current = stack.pop()
        if current == goal:
            return True
        if current in visited:
            continue
        visited.add(current)
        stack.extend(n for n in adjacency.get(current, ()) if n not in visited)
    return False


class PrerequisiteGraph:
    """Service for reading and mutating the prerequisite graph."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    async def _load_adjacency(self) -> Dict[uuid.UUID, List[uuid.UUID]]:
        """All edges, figure -> prerequisites, in one read."""
        result = await self.session.execute(
            select(PrerequisiteEdge.figure_id, PrerequisiteEdge.prerequisite_id)
        )
        adjacency: Dict[uuid.UUID, List[uuid.UUID]] = defaultdict(list)
        for figure_id, prerequisite_id in result.all():
            adjacency[figure_id].append(prerequisite_id)
        return adjacency

    async def _acquire_db_lock(self) -> None:
        if self.session.get_bind().dialect.name == "postgresql":
            await self.session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": GRAPH_LOCK_KEY})

    async def _require_figure(self, figure_id: uuid.UUID, role: str) -> Figure:
        figure = await self.session.get(Figure, figure_id)
        if figure is None:
            raise NotFoundError(f"{role} figure not found (ID: {figure_id})", details={"figure_id": str(figure_id)})
        return figure

    async def _require_edge(self, edge_id: uuid.UUID) -> PrerequisiteEdge:
        edge = await self.session.get(PrerequisiteEdge, edge_id)
        if edge is None:
            raise NotFoundError(f"Prerequisite edge not found (ID: {edge_id})", details={"edge_id": str(edge_id)})
        return edge

    async def detect_cycle(self, figure_id: uuid.UUID, prerequisite_id: uuid.UUID) -> bool:
        """True if adding figure -> prerequisite would create a cycle."""
        if figure_id == prerequisite_id:
            return True
        adjacency = await self._load_adjacency()
        return path_exists(adjacency, prerequisite_id, figure_id)

    async def add_edge(
        self,
        figure_id: uuid.UUID,
        prerequisite_id: uuid.UUID,
        weight: int = 1,
        is_required: bool = True,
        order: Optional[int] = None,
    ) -> EdgeView:
        """
        Make ``prerequisite_id`` a prerequisite of ``figure_id``.

        Order defaults to the next position after the figure's last edge.

        Raises:
            ValidationError: weight outside 1..3 or order below 1
            NotFoundError: either figure does not exist
            CycleError: the edge would make the graph cyclic
            ConflictError: the edge already exists
        """
        _check_weight(weight)
        if order is not None:
            _check_order(order)

        async with _graph_write_lock():
            try:
                async with atomic(self.session):
                    await self._acquire_db_lock()
                    figure = await self._require_figure(figure_id, "Parent")
                    prerequisite = await self._require_figure(prerequisite_id, "Prerequisite")

                    if await self.detect_cycle(figure_id, prerequisite_id):
                        raise CycleError(
                            "Cycle detected: a prerequisite cannot depend, directly or "
                            "indirectly, on the figure it belongs to",
                            details={"figure": figure.name, "prerequisite": prerequisite.name},
                        )

                    duplicate = await self.session.execute(
                        select(PrerequisiteEdge.id).where(
                            PrerequisiteEdge.figure_id == figure_id,
                            PrerequisiteEdge.prerequisite_id == prerequisite_id,
                        )
                    )
                    if duplicate.scalar_one_or_none() is not None:
                        raise ConflictError(
                            f"{prerequisite.name} is already a prerequisite of {figure.name}",
                            details={"figure_id": str(figure_id), "prerequisite_id": str(prerequisite_id)},
                        )

                    if order is None:
                        max_order = await self.session.execute(
                            select(func.max(PrerequisiteEdge.order)).where(PrerequisiteEdge.figure_id == figure_id)
                        )
                        order = (max_order.scalar() or 0) + 1

                    edge = PrerequisiteEdge(
                        figure_id=figure_id,
                        prerequisite_id=prerequisite_id,
                        order=order,
                        is_required=is_required,
                        weight=weight,
                    )
                    self.session.add(edge)
                    await self.session.flush()

                    await self.event_store.log(
                        event_type=EventType.PREREQUISITE_ADDED,
                        entity_type="prerequisite_edge",
                        entity_id=edge.id,
                        payload={
                            "figure_id": figure_id,
                            "prerequisite_id": prerequisite_id,
                            "weight": weight,
                            "is_required": is_required,
                        },
                    )
            except IntegrityError as exc:
                raise ConflictError(
                    "Prerequisite edge already exists",
                    details={"figure_id": str(figure_id), "prerequisite_id": str(prerequisite_id)},
                ) from exc

        logger.info(
            "Prerequisite added",
            extra={"figure_id": str(figure_id), "prerequisite_id": str(prerequisite_id), "weight": weight},
        )
        return EdgeView.model_validate(edge)

    async def update_edge(
        self,
        edge_id: uuid.UUID,
        weight: Optional[int] = None,
        is_required: Optional[bool] = None,
        order: Optional[int] = None,
    ) -> EdgeView:
        """Change an edge's weight, required flag or order. Endpoints are immutable."""
        if weight is not None:
            _check_weight(weight)
        if order is not None:
            _check_order(order)

        async with _graph_write_lock():
            async with atomic(self.session):
                edge = await self._require_edge(edge_id)
                if weight is not None:
                    edge.weight = weight
                if is_required is not None:
                    edge.is_required = is_required
                if order is not None:
                    edge.order = order
                await self.session.flush()

                await self.event_store.log(
                    event_type=EventType.PREREQUISITE_UPDATED,
                    entity_type="prerequisite_edge",
                    entity_id=edge.id,
                    payload={"weight": edge.weight, "is_required": edge.is_required, "order": edge.order},
                )

        return EdgeView.model_validate(edge)

    async def remove_edge(self, edge_id: uuid.UUID) -> None:
        """Delete an edge. Only ever an explicit admin action."""
        async with _graph_write_lock():
            async with atomic(self.session):
                await self._acquire_db_lock()
                edge = await self._require_edge(edge_id)
                payload = {"figure_id": edge.figure_id, "prerequisite_id": edge.prerequisite_id}
                await self.session.delete(edge)
                await self.event_store.log(
                    event_type=EventType.PREREQUISITE_REMOVED,
                    entity_type="prerequisite_edge",
                    entity_id=edge_id,
                    payload=payload,
                )

        logger.info("Prerequisite removed", extra={"edge_id": str(edge_id)})

    async def list_edges(self, figure_id: uuid.UUID, required_only: bool = False) -> List[EdgeView]:
        """A figure's prerequisite edges in learning order."""
        q = select(PrerequisiteEdge).where(PrerequisiteEdge.figure_id == figure_id)
        if required_only:
            q = q.where(PrerequisiteEdge.is_required.is_(True))
        q = q.order_by(PrerequisiteEdge.order, PrerequisiteEdge.id)
        result = await self.session.execute(q)
        return [EdgeView.model_validate(e) for e in result.scalars().all()]
