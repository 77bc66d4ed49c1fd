"""Unit tests for the step progression state machine."""

import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from readiness_engine.engines.progression.state_machine import (
    ProgressionStateMachine,
    can_transition,
    next_status,
    valid_transitions,
)
from readiness_engine.kernel.models.event_log import EventLog, EventType
from readiness_engine.kernel.models.progression import ProgressionStatus, StepProgress

NOT_STARTED = ProgressionStatus.NOT_STARTED
IN_PROGRESS = ProgressionStatus.IN_PROGRESS
VALIDATED = ProgressionStatus.VALIDATED


def _progression(status: ProgressionStatus) -> StepProgress:
    return StepProgress(
        id=uuid.uuid4(),
        learner_id=uuid.uuid4(),
        step_id=uuid.uuid4(),
        status=status.value,
    )


class TestTransitions:
    """Transition table."""

    @pytest.mark.parametrize(
        "current, success, expected",
        [
            (NOT_STARTED, False, IN_PROGRESS),
            (NOT_STARTED, True, VALIDATED),
            (IN_PROGRESS, False, IN_PROGRESS),
            (IN_PROGRESS, True, VALIDATED),
            (VALIDATED, False, VALIDATED),
            (VALIDATED, True, VALIDATED),
        ],
    )
    def test_next_status(self, current, success, expected):
        assert next_status(current, success) == expected

    def test_accepts_raw_values(self):
        assert next_status("non_commence", True) == VALIDATED

    def test_status_never_reverts(self):
        assert can_transition(VALIDATED, IN_PROGRESS) is False
        assert can_transition(IN_PROGRESS, NOT_STARTED) is False
        assert can_transition(IN_PROGRESS, VALIDATED) is True
        assert can_transition(VALIDATED, VALIDATED) is True

    def test_valid_transitions(self):
        assert valid_transitions(NOT_STARTED) == [IN_PROGRESS, VALIDATED]
        assert valid_transitions(IN_PROGRESS) == [IN_PROGRESS, VALIDATED]
        assert valid_transitions(VALIDATED) == [VALIDATED]


class TestProgressionStateMachine:
    """Applying attempts to progression rows."""

    @pytest.mark.asyncio
    async def test_failed_first_attempt_starts_step(self):
        session = MagicMock()
        progression = _progression(NOT_STARTED)

        previous = await ProgressionStateMachine(session).apply_attempt(progression, success=False)

        assert previous == NOT_STARTED
        assert progression.status == IN_PROGRESS.value
        assert progression.validated_at is None
        event = session.add.call_args[0][0]
        assert isinstance(event, EventLog)
        assert event.event_type == EventType.STEP_STARTED
        assert event.payload["to_state"] == "en_cours"

    @pytest.mark.asyncio
    async def test_success_stamps_validation(self):
        session = MagicMock()
        progression = _progression(IN_PROGRESS)
        teacher_id = uuid.uuid4()
        at = datetime(2026, 10, 1, 18, 30, tzinfo=timezone.utc)

        await ProgressionStateMachine(session).apply_attempt(
            progression, success=True, validator_id=teacher_id, at=at
        )

        assert progression.status == VALIDATED.value
        assert progression.validated_at == at
        assert progression.validated_by == teacher_id
        event = session.add.call_args[0][0]
        assert event.event_type == EventType.STEP_VALIDATED
        assert event.user_id == teacher_id

    @pytest.mark.asyncio
    async def test_validated_step_is_not_restamped(self):
        session = MagicMock()
        progression = _progression(VALIDATED)
        first = datetime(2026, 9, 1, tzinfo=timezone.utc)
        progression.validated_at = first

        previous = await ProgressionStateMachine(session).apply_attempt(
            progression, success=True, validator_id=uuid.uuid4()
        )

        assert previous == VALIDATED
        assert progression.validated_at == first
        assert progression.validated_by is None
        session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_after_validation_keeps_status(self):
        session = MagicMock()
        progression = _progression(VALIDATED)

        await ProgressionStateMachine(session).apply_attempt(progression, success=False)

        assert progression.status == VALIDATED.value
        session.add.assert_not_called()
