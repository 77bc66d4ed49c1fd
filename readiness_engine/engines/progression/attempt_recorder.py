"""
Attempt Recorder - validates practice attempts and drives step progression (DB-backed).
"""

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from readiness_engine.config import get_settings
from readiness_engine.database import atomic
from readiness_engine.engines.progression.payloads import AttemptPayloadBase, parse_attempt
from readiness_engine.engines.progression.state_machine import ProgressionStateMachine
from readiness_engine.errors import NotFoundError, ValidationError
from readiness_engine.kernel.models.base import utcnow
from readiness_engine.kernel.models.catalog import StepTemplate
from readiness_engine.kernel.models.progression import (
    AttemptMode,
    PracticeAttempt,
    ProgressionStatus,
    StepProgress,
)
from readiness_engine.logging_config import get_logger

logger = get_logger(__name__)

MAX_HISTORY_LIMIT = 100


class ProgressionView(BaseModel):
    """A learner's status on one step (Pydantic)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    learner_id: uuid.UUID
    step_id: uuid.UUID
    status: ProgressionStatus
    validated_at: Optional[datetime] = None
    validated_by: Optional[uuid.UUID] = None


class AttemptView(BaseModel):
    """Record of one practice attempt (Pydantic)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    progression_id: uuid.UUID
    mode: AttemptMode
    success: bool
    score: Optional[int] = None
    duration_seconds: Optional[int] = None
    created_at: datetime


class AttemptOutcome(BaseModel):
    """Result of recording an attempt."""

    progression: ProgressionView
    attempt: AttemptView
    previous_status: ProgressionStatus
    idempotent: bool = False

    @property
    def status_changed(self) -> bool:
        return self.previous_status != self.progression.status


class AttemptRecorder:
    """
    Records practice attempts and advances step progression.

    The attempt insert and the progression update form one atomic unit. The
    learner must already be enrolled on the step: enrollment creates the
    progression rows, this service never does.
    """

    def __init__(self, session: AsyncSession, dedup_window_seconds: Optional[int] = None):
        self.session = session
        self.state_machine = ProgressionStateMachine(session)
        if dedup_window_seconds is None:
            dedup_window_seconds = get_settings().attempt_dedup_window_seconds
        self.dedup_window_seconds = dedup_window_seconds

    async def _find_progression(
        self,
        learner_id: uuid.UUID,
        step_id: uuid.UUID,
        for_update: bool = False,
    ) -> Optional[StepProgress]:
        q = select(StepProgress).where(
            StepProgress.learner_id == learner_id,
            StepProgress.step_id == step_id,
        )
        if for_update:
            q = q.with_for_update()
        result = await self.session.execute(q)
        return result.scalar_one_or_none()

    async def _require_progression(
        self,
        learner_id: uuid.UUID,
        step_id: uuid.UUID,
        for_update: bool = False,
    ) -> StepProgress:
        row = await self._find_progression(learner_id, step_id, for_update=for_update)
        if row is not None:
            return row

        step = await self.session.get(StepTemplate, step_id)
        if step is None:
            raise NotFoundError(f"Step not found (ID: {step_id})", details={"step_id": str(step_id)})
        raise NotFoundError(
            f"Learner {learner_id} is not enrolled on step {step_id}",
            details={"learner_id": str(learner_id), "step_id": str(step_id)},
        )

    async def _find_recent_duplicate(
        self,
        progression_id: uuid.UUID,
        mode: str,
        success: bool,
    ) -> Optional[PracticeAttempt]:
        """Identical attempt within the dedup window (double-submit)."""
        if self.dedup_window_seconds <= 0:
            return None
        cutoff = utcnow() - timedelta(seconds=self.dedup_window_seconds)
        q = (
            select(PracticeAttempt)
            .where(
                PracticeAttempt.progression_id == progression_id,
                PracticeAttempt.mode == mode,
                PracticeAttempt.success == success,
                PracticeAttempt.created_at >= cutoff,
            )
            .order_by(PracticeAttempt.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(q)
        return result.scalar_one_or_none()

    async def get_progression(self, learner_id: uuid.UUID, step_id: uuid.UUID) -> ProgressionView:
        """Get a learner's progression on one step."""
        row = await self._require_progression(learner_id, step_id)
        return ProgressionView.model_validate(row)

    async def record_attempt(
        self,
        learner_id: uuid.UUID,
        step_id: uuid.UUID,
        payload: Union[Dict[str, Any], AttemptPayloadBase],
        validator_id: Optional[uuid.UUID] = None,
    ) -> AttemptOutcome:
        """
        Record one practice attempt and update the step's progression.

        Args:
            learner_id: The practising learner
            step_id: The step practised
            payload: Mode tag plus mode-specific fields (see payloads module)
            validator_id: Teacher confirming the attempt, stamped on validation

        Raises:
            ValidationError: payload is malformed for its mode
            NotFoundError: unknown step, or learner not enrolled on it
        """
        attempt_data = parse_attempt(payload)
        success = attempt_data.succeeded()

        async with atomic(self.session):
            progression = await self._require_progression(learner_id, step_id, for_update=True)
            previous_status = ProgressionStatus(progression.status)

            duplicate = await self._find_recent_duplicate(progression.id, attempt_data.mode, success)
            if duplicate is not None:
                logger.info(
                    "Duplicate attempt ignored",
                    extra={"progression_id": str(progression.id), "attempt_id": str(duplicate.id)},
                )
                return AttemptOutcome(
                    progression=ProgressionView.model_validate(progression),
                    attempt=AttemptView.model_validate(duplicate),
                    previous_status=previous_status,
                    idempotent=True,
                )

            attempt = PracticeAttempt(
                progression_id=progression.id,
                mode=attempt_data.mode,
                success=success,
                **attempt_data.columns(),
            )
            self.session.add(attempt)
            await self.state_machine.apply_attempt(progression, success, validator_id=validator_id)
            await self.session.flush()

        outcome = AttemptOutcome(
            progression=ProgressionView.model_validate(progression),
            attempt=AttemptView.model_validate(attempt),
            previous_status=previous_status,
        )
        logger.info(
            "Attempt recorded",
            extra={
                "learner_id": str(learner_id),
                "step_id": str(step_id),
                "mode": attempt_data.mode,
                "success": success,
                "status": outcome.progression.status.value,
            },
        )
        return outcome

    async def get_attempt_history(
        self,
        learner_id: uuid.UUID,
        step_id: uuid.UUID,
        mode: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[AttemptView]:
        """Attempts on one step, newest first. Empty when the learner was never enrolled."""
        if not 1 <= limit <= MAX_HISTORY_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_HISTORY_LIMIT}", details={"limit": limit})
        if offset < 0:
            raise ValidationError("offset cannot be negative", details={"offset": offset})
        mode = getattr(mode, "value", mode)
        if mode is not None and mode not in {m.value for m in AttemptMode}:
            raise ValidationError(f"Unknown attempt mode: {mode}", details={"mode": mode})

        progression = await self._find_progression(learner_id, step_id)
        if progression is None:
            return []

        q = select(PracticeAttempt).where(PracticeAttempt.progression_id == progression.id)
        if mode is not None:
            q = q.where(PracticeAttempt.mode == mode)
        q = q.order_by(PracticeAttempt.created_at.desc()).offset(offset).limit(limit)

        result = await self.session.execute(q)
        return [AttemptView.model_validate(a) for a in result.scalars().all()]
