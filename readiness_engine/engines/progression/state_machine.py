"""
State machine for step progression.

non_commence -> en_cours -> valide. A successful attempt validates the step
from any state; a failed attempt never moves a step past en_cours. Status
never reverts.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from readiness_engine.kernel.events.event_store import EventStore
from readiness_engine.kernel.models.event_log import EventType
from readiness_engine.kernel.models.progression import ProgressionStatus, StepProgress


# (from_state, attempt succeeded) -> to_state
_TRANSITIONS: Dict[Tuple[ProgressionStatus, bool], ProgressionStatus] = {
    (ProgressionStatus.NOT_STARTED, False): ProgressionStatus.IN_PROGRESS,
    (ProgressionStatus.NOT_STARTED, True): ProgressionStatus.VALIDATED,
    (ProgressionStatus.IN_PROGRESS, False): ProgressionStatus.IN_PROGRESS,
    (ProgressionStatus.IN_PROGRESS, True): ProgressionStatus.VALIDATED,
    (ProgressionStatus.VALIDATED, False): ProgressionStatus.VALIDATED,
    (ProgressionStatus.VALIDATED, True): ProgressionStatus.VALIDATED,
}

_RANK: Dict[ProgressionStatus, int] = {
    ProgressionStatus.NOT_STARTED: 0,
    ProgressionStatus.IN_PROGRESS: 1,
    ProgressionStatus.VALIDATED: 2,
}


def next_status(current: str, success: bool) -> ProgressionStatus:
    """Return the status a step moves to after an attempt."""
    return _TRANSITIONS[(ProgressionStatus(current), bool(success))]


def can_transition(from_state: str, to_state: str) -> bool:
    """Status only advances (or stays put)."""
    return _RANK[ProgressionStatus(to_state)] >= _RANK[ProgressionStatus(from_state)]


def valid_transitions(from_state: str) -> List[ProgressionStatus]:
    """Return the states an attempt can move ``from_state`` to."""
    current = ProgressionStatus(from_state)
    targets = {to for (f, _), to in _TRANSITIONS.items() if f == current}
    return sorted(targets, key=_RANK.__getitem__)


class ProgressionStateMachine:
    """Applies attempt outcomes to progression rows and logs status changes."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    async def apply_attempt(
        self,
        progression: StepProgress,
        success: bool,
        validator_id: Optional[uuid.UUID] = None,
        at: Optional[datetime] = None,
    ) -> ProgressionStatus:
        """
        Move ``progression`` according to one attempt outcome.

        Validation time and validator are stamped when the step first becomes
        valide. Returns the previous status.
        """
        from_state = ProgressionStatus(progression.status)
        to_state = next_status(from_state, success)
        if not can_transition(from_state, to_state):
            raise ValueError(f"Invalid transition: {from_state.value} -> {to_state.value}")

        if to_state == from_state:
            return from_state

        progression.status = to_state.value
        if to_state == ProgressionStatus.VALIDATED:
            progression.validated_at = at or datetime.now(timezone.utc)
            progression.validated_by = validator_id
            event_type = EventType.STEP_VALIDATED
        else:
            event_type = EventType.STEP_STARTED

        await self.event_store.log(
            event_type=event_type,
            entity_type="step_progress",
            entity_id=progression.id,
            user_id=validator_id or progression.learner_id,
            payload={
                "learner_id": progression.learner_id,
                "step_id": progression.step_id,
                "from_state": from_state,
                "to_state": to_state,
            },
        )
        return from_state
