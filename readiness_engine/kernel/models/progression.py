"""
Progression models - per-learner step status and practice attempts.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from readiness_engine.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow
from readiness_engine.kernel.models.catalog import StepTemplate


class ProgressionStatus(str, Enum):
    """Status of one learner on one step."""

    NOT_STARTED = "non_commence"
    IN_PROGRESS = "en_cours"
    VALIDATED = "valide"


class AttemptMode(str, Enum):
    """Input modality of a practice attempt."""

    BINARY = "binaire"
    RATING = "evaluation"
    DURATION = "duree"
    RATED_DURATION = "evaluation_duree"


class StepProgress(Base, TimestampMixin):
    """
    One learner's status on one step.

    Rows are bulk-created by enrollment; only the attempt recorder mutates
    them and they are never deleted.
    """

    __tablename__ = "step_progress"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    learner_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    step_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("step_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[ProgressionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ProgressionStatus.NOT_STARTED,
    )
    validated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    validated_by: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)

    step: Mapped["StepTemplate"] = relationship("StepTemplate")

    __table_args__ = (
        UniqueConstraint("learner_id", "step_id", name="uq_step_progress_learner_step"),
        Index("ix_step_progress_learner_status", "learner_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<StepProgress {self.learner_id}:{self.step_id} {self.status}>"


class PracticeAttempt(Base):
    """Record of a single practice event. Append-only."""

    __tablename__ = "practice_attempts"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    progression_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("step_progress.id", ondelete="CASCADE"),
        nullable=False,
    )
    mode: Mapped[AttemptMode] = mapped_column(String(20), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # 1=fail, 2=unstable, 3=mastered
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_practice_attempts_progression_time", "progression_id", "created_at"),
    )
