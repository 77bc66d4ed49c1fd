"""
Attempt payloads - one variant per input mode, each carrying only its legal fields.

Modes:
- binaire: success flag given by the learner
- evaluation: self-rating 1-3 (1=fail, 2=unstable, 3=mastered)
- duree: timed practice, counts as success
- evaluation_duree: self-rating plus practice duration
"""

from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from readiness_engine.errors import ValidationError
from readiness_engine.kernel.models.progression import AttemptMode

Score = Annotated[StrictInt, Field(ge=1, le=3)]
Duration = Annotated[StrictInt, Field(gt=0)]

# Ratings at or above this count as a successful attempt
SUCCESS_SCORE = 2


class AttemptPayloadBase(BaseModel):
    """Common base of the mode-specific attempt payloads."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    def succeeded(self) -> bool:
        raise NotImplementedError

    def columns(self) -> Dict[str, Optional[int]]:
        """Score/duration values as stored on the attempt row."""
        return {
            "score": getattr(self, "score", None),
            "duration_seconds": getattr(self, "duration_seconds", None),
        }


class BinaryAttempt(AttemptPayloadBase):
    mode: Literal["binaire"] = "binaire"
    success: StrictBool

    def succeeded(self) -> bool:
        return self.success


class RatingAttempt(AttemptPayloadBase):
    mode: Literal["evaluation"] = "evaluation"
    score: Score

    def succeeded(self) -> bool:
        return self.score >= SUCCESS_SCORE


class DurationAttempt(AttemptPayloadBase):
    mode: Literal["duree"] = "duree"
    duration_seconds: Duration

    def succeeded(self) -> bool:
        # Any timed session counts as practice
        return True


class RatedDurationAttempt(AttemptPayloadBase):
    mode: Literal["evaluation_duree"] = "evaluation_duree"
    score: Score
    duration_seconds: Duration

    def succeeded(self) -> bool:
        return self.score >= SUCCESS_SCORE


AttemptPayload = Annotated[
    Union[BinaryAttempt, RatingAttempt, DurationAttempt, RatedDurationAttempt],
    Field(discriminator="mode"),
]

_adapter: TypeAdapter = TypeAdapter(AttemptPayload)

_MODES = ", ".join(m.value for m in AttemptMode)


def _describe(error: Dict[str, Any], mode: str) -> str:
    field = str(error["loc"][-1]) if error["loc"] else "mode"
    kind = error["type"]
    if kind == "missing":
        return f"{field} is required for mode {mode}"
    if kind == "extra_forbidden":
        return f"mode {mode} forbids {field}"
    if kind in ("union_tag_invalid", "union_tag_not_found"):
        return f"mode must be one of: {_MODES}"
    return f"{field}: {error['msg']}"


def parse_attempt(data: Union[Mapping[str, Any], AttemptPayloadBase]) -> AttemptPayloadBase:
    """
    Validate raw attempt data into its mode-specific payload.

    ``None`` values are treated as absent; a missing mode defaults to binaire.

    Raises:
        ValidationError: naming each violated rule.
    """
    if isinstance(data, AttemptPayloadBase):
        return data
    if not isinstance(data, Mapping):
        raise ValidationError(
            f"attempt payload must be a mapping or an attempt model, got {type(data).__name__}",
            details={"type": type(data).__name__},
        )

    cleaned = {k: v for k, v in data.items() if v is not None}
    cleaned.setdefault("mode", AttemptMode.BINARY.value)
    mode = cleaned["mode"]
    if isinstance(mode, AttemptMode):
        cleaned["mode"] = mode = mode.value

    try:
        return _adapter.validate_python(cleaned)
    except PydanticValidationError as exc:
        rules = [_describe(err, str(mode)) for err in exc.errors()]
        raise ValidationError("; ".join(rules), details={"mode": mode, "rules": rules}) from exc
