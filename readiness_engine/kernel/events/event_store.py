"""
Event Store service for the append-only progression log.

Events are added to the caller's session so they commit or roll back together
with the state change they describe.
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from readiness_engine.kernel.models.event_log import EventLog, EventType


class EventStore:
    """
    Service for managing the immutable event log.

    Usage:
        event_store = EventStore(session)
        await event_store.log(
            event_type=EventType.STEP_VALIDATED,
            entity_type="step_progress",
            entity_id=progression.id,
            user_id=progression.learner_id,
            payload={"step_id": progression.step_id},
        )
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(
        self,
        event_type: EventType,
        entity_type: str,
        entity_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> EventLog:
        """
        Add an event to the log.

        Args:
            event_type: The type of event
            entity_type: The type of entity (step_progress, prerequisite_edge, ...)
            entity_id: The ID of the entity
            user_id: The learner or teacher behind the event (None for system events)
            payload: Additional event data

        Returns:
            The created EventLog record
        """
        if payload:
            payload = self._serialize_payload(payload)

        event = EventLog(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            payload=payload or {},
        )

        self.session.add(event)
        # Caller flushes/commits with the rest of its unit of work
        return event

    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        event_types: Optional[List[EventType]] = None,
    ) -> List[EventLog]:
        """Get all events for an entity, oldest first."""
        query = select(EventLog).where(
            EventLog.entity_type == entity_type,
            EventLog.entity_id == entity_id,
        )
        if event_types:
            query = query.where(EventLog.event_type.in_([e.value for e in event_types]))
        query = query.order_by(EventLog.created_at)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    def _serialize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Ensure payload is JSON-serializable."""
        result = {}
        for key, value in payload.items():
            if isinstance(value, uuid.UUID):
                result[key] = str(value)
            elif hasattr(value, "isoformat"):
                result[key] = value.isoformat()
            elif hasattr(value, "value"):  # Enum
                result[key] = value.value
            elif isinstance(value, dict):
                result[key] = self._serialize_payload(value)
            elif isinstance(value, list):
                result[key] = [
                    str(v) if isinstance(v, uuid.UUID) else v
                    for v in value
                ]
            else:
                result[key] = value
        return result
