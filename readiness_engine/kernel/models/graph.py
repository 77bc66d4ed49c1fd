"""
Prerequisite graph - directed, weighted edges between figures.

Edges are stored as their own rows keyed by (figure_id, prerequisite_id)
instead of child references on Figure, so the graph can be queried and
mutated independently of the catalog.
"""

import uuid

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from readiness_engine.kernel.models.base import Base, TimestampMixin, generate_uuid
from readiness_engine.kernel.models.catalog import Figure

MIN_WEIGHT = 1
MAX_WEIGHT = 3


class PrerequisiteEdge(Base, TimestampMixin):
    """
    ``prerequisite`` is a building block of ``figure``.

    Only required edges count towards the readiness score.
    """

    __tablename__ = "prerequisite_edges"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    figure_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("figures.id", ondelete="CASCADE"),
        nullable=False,
    )
    prerequisite_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("figures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order: Mapped[int] = mapped_column("edge_order", Integer, nullable=False, default=1)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    weight: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    prerequisite: Mapped["Figure"] = relationship("Figure", foreign_keys=[prerequisite_id])

    __table_args__ = (
        UniqueConstraint("figure_id", "prerequisite_id", name="uq_prerequisite_edges_pair"),
        Index("ix_prerequisite_edges_figure_order", "figure_id", "edge_order"),
        CheckConstraint("weight >= 1 AND weight <= 3", name="ck_prerequisite_edges_weight"),
        CheckConstraint("edge_order >= 1", name="ck_prerequisite_edges_order"),
        CheckConstraint("figure_id <> prerequisite_id", name="ck_prerequisite_edges_no_self_loop"),
    )

    def __repr__(self) -> str:
        return f"<PrerequisiteEdge {self.figure_id} -> {self.prerequisite_id} w={self.weight}>"
