"""
Suggestion cache - persisted recommendation snapshots for a learner or a group.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from readiness_engine.kernel.models.base import Base, generate_uuid, utcnow


class TargetKind(str, Enum):
    """Who a suggestion is addressed to."""

    LEARNER = "learner"
    GROUP = "group"


class SuggestionStatus(str, Enum):
    """Status of a cached suggestion."""

    PENDING = "pending"      # Computed, waiting for the learner/teacher
    ACCEPTED = "accepted"    # Added to the learner's personal plan
    DISMISSED = "dismissed"  # Hidden until the next refresh
    EXPIRED = "expired"      # Not acted upon before expires_at


class SuggestionCacheEntry(Base):
    """
    One cached suggestion.

    The target is a (kind, id) pair rather than two nullable foreign keys, so
    a row always addresses exactly one learner or one group. For group rows
    ``score`` holds the percentage of the group that is ready, and the
    counts hold ready members and group size.
    """

    __tablename__ = "suggestion_cache"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    target_kind: Mapped[TargetKind] = mapped_column(String(10), nullable=False)
    target_id: Mapped[uuid.UUID] = mapped_column(nullable=False)
    figure_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("figures.id", ondelete="CASCADE"),
        nullable=False,
    )

    score: Mapped[int] = mapped_column(Integer, nullable=False)
    validated_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[SuggestionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SuggestionStatus.PENDING,
    )
    suggested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("target_kind", "target_id", "figure_id", name="uq_suggestion_cache_target_figure"),
        Index("ix_suggestion_cache_target_status", "target_kind", "target_id", "status"),
        Index("ix_suggestion_cache_expiry", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<SuggestionCacheEntry {self.target_kind}:{self.target_id} {self.figure_id} {self.score}>"
