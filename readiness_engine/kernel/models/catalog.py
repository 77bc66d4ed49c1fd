"""
Catalog models - disciplines, figures and their ordered step templates.

Owned by the catalog collaborator; the engine only reads them.
"""

import uuid
from typing import List, Optional

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from readiness_engine.kernel.models.base import Base, TimestampMixin, generate_uuid


class Discipline(Base, TimestampMixin):
    """A circus discipline (juggling, acrobatics, aerial, ...)."""

    __tablename__ = "disciplines"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<Discipline {self.name}>"


class Figure(Base, TimestampMixin):
    """A named skill, decomposed into ordered steps."""

    __tablename__ = "figures"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    discipline_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("disciplines.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    difficulty_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    steps: Mapped[List["StepTemplate"]] = relationship(
        "StepTemplate",
        back_populates="figure",
        order_by="StepTemplate.order",
    )

    def __repr__(self) -> str:
        return f"<Figure {self.name}>"


class StepTemplate(Base, TimestampMixin):
    """One ordered curriculum unit of a figure."""

    __tablename__ = "step_templates"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    figure_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("figures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order: Mapped[int] = mapped_column("step_order", Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    figure: Mapped["Figure"] = relationship("Figure", back_populates="steps")

    __table_args__ = (
        UniqueConstraint("figure_id", "step_order", name="uq_step_templates_figure_order"),
    )
