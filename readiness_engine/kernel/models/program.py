"""
Program/assignment collaborator models.

Groups of learners, training plans (ordered figure lists) and plan
assignments. The engine reads them to exclude already-assigned figures and
writes a learner's personal plan when a suggestion is accepted.
"""

import uuid
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from readiness_engine.kernel.models.base import Base, TimestampMixin, generate_uuid

PERSONAL_PLAN_NAME = "Programme Personnel"


class Group(Base, TimestampMixin):
    """A class or training group of learners."""

    __tablename__ = "learner_groups"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)


class GroupMember(Base):
    """Membership of one learner in one group."""

    __tablename__ = "group_members"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    group_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("learner_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    learner_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)

    __table_args__ = (UniqueConstraint("group_id", "learner_id", name="uq_group_members_group_learner"),)


class TrainingPlan(Base, TimestampMixin):
    """
    An ordered list of figures.

    Plans are authored by a teacher and assigned to learners, or owned by the
    learner as their personal plan (``is_personal``).
    """

    __tablename__ = "training_plans"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    owner_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_personal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_training_plans_owner_personal", "owner_id", "is_personal", "active"),
        # At most one active personal plan per learner
        Index(
            "uq_training_plans_active_personal",
            "owner_id",
            unique=True,
            postgresql_where=text("is_personal AND active"),
            sqlite_where=text("is_personal AND active"),
        ),
    )


class PlanFigure(Base):
    """A figure placed at a position in a plan."""

    __tablename__ = "plan_figures"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    plan_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("training_plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    figure_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("figures.id", ondelete="CASCADE"),
        nullable=False,
    )
    order: Mapped[int] = mapped_column("figure_order", Integer, nullable=False)

    __table_args__ = (UniqueConstraint("plan_id", "figure_id", name="uq_plan_figures_plan_figure"),)


class PlanAssignment(Base, TimestampMixin):
    """A plan assigned to a learner."""

    __tablename__ = "plan_assignments"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    plan_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("training_plans.id", ondelete="CASCADE"),
        nullable=False,
    )
    learner_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)

    __table_args__ = (UniqueConstraint("plan_id", "learner_id", name="uq_plan_assignments_plan_learner"),)
