"""
Progression Engine - practice attempts and per-step status.

Status flow: non_commence -> en_cours -> valide (never reverts)

Attempt modes:
- binaire: success flag
- evaluation: self-rating 1-3, success at 2 or more
- duree: timed practice, always a success
- evaluation_duree: self-rating plus duration
"""

from readiness_engine.engines.progression.state_machine import (
    ProgressionStateMachine,
    can_transition,
    next_status,
    valid_transitions,
)
from readiness_engine.engines.progression.payloads import (
    AttemptPayloadBase,
    BinaryAttempt,
    RatingAttempt,
    DurationAttempt,
    RatedDurationAttempt,
    parse_attempt,
)
from readiness_engine.engines.progression.attempt_recorder import (
    AttemptRecorder,
    AttemptOutcome,
    AttemptView,
    ProgressionView,
)

__all__ = [
    "ProgressionStateMachine",
    "can_transition",
    "next_status",
    "valid_transitions",
    "AttemptPayloadBase",
    "BinaryAttempt",
    "RatingAttempt",
    "DurationAttempt",
    "RatedDurationAttempt",
    "parse_attempt",
    "AttemptRecorder",
    "AttemptOutcome",
    "AttemptView",
    "ProgressionView",
]
