"""
Immutable progression event log.

Every progression status change is logged here in the same transaction as
the change itself. Gamification reads this table to grant XP and badges.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, String, Index, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from readiness_engine.kernel.models.base import Base, generate_uuid, utcnow


class EventType(str, Enum):
    """Event types for the progression log."""

    STEP_STARTED = "progression.step_started"
    STEP_VALIDATED = "progression.step_validated"
    PREREQUISITE_ADDED = "graph.prerequisite_added"
    PREREQUISITE_UPDATED = "graph.prerequisite_updated"
    PREREQUISITE_REMOVED = "graph.prerequisite_removed"
    SUGGESTION_ACCEPTED = "suggestion.accepted"
    SUGGESTION_DISMISSED = "suggestion.dismissed"


class EventLog(Base):
    """
    Append-only event log.

    No updates or deletes.
    """

    __tablename__ = "event_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )

    event_type: Mapped[EventType] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    # Entity reference
    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
        index=True,
    )

    # Actor (learner, validating teacher, or None for system events)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )

    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_event_logs_entity", "entity_type", "entity_id"),
        Index("ix_event_logs_type_time", "event_type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EventLog {self.event_type} {self.entity_type}:{self.entity_id}>"
