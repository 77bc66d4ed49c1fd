"""
Readiness Scorer - weighted share of a figure's required prerequisites a learner has mastered.

score = round_half_up(100 * sum(weight of validated prerequisites) / sum(weight of required prerequisites))

A prerequisite counts as validated only when every step of its figure is
valide for the learner; there is no partial credit. A figure without
required prerequisites scores 0: it is not reachable through suggestions.
"""

import uuid
from typing import List, Set

from pydantic import BaseModel
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from readiness_engine.kernel.models.catalog import Figure, StepTemplate
from readiness_engine.kernel.models.graph import PrerequisiteEdge
from readiness_engine.kernel.models.progression import ProgressionStatus, StepProgress


def round_half_up(numerator: int, denominator: int) -> int:
    """Round numerator/denominator to the nearest integer, halves going up (non-negative inputs)."""
    return (2 * numerator + denominator) // (2 * denominator)


def weighted_percentage(validated_weight: int, total_weight: int) -> int:
    """Integer percentage in [0, 100]; 0 when there is nothing to weigh."""
    if total_weight <= 0:
        return 0
    return round_half_up(100 * validated_weight, total_weight)


class PrerequisiteDetail(BaseModel):
    """Mastery of one required prerequisite."""

    prerequisite_id: uuid.UUID
    name: str
    order: int
    weight: int
    validated: bool
    validated_steps: int
    total_steps: int

    @property
    def progress_label(self) -> str:
        return f"{self.validated_steps}/{self.total_steps} steps"


class ReadinessScore(BaseModel):
    """Readiness of one learner for one figure."""

    figure_id: uuid.UUID
    score: int = 0
    validated_count: int = 0
    total_count: int = 0
    details: List[PrerequisiteDetail] = []


class ReadinessScorer:
    """Computes readiness scores from the progression store and the prerequisite graph. Read-only."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def score(self, learner_id: uuid.UUID, figure_id: uuid.UUID) -> ReadinessScore:
        """
        Score a learner's readiness for a figure.

        Every step count of the pass comes from a single statement, so the
        result reflects one consistent snapshot of the learner's progression.
        """
        prerequisite_ids = (
            select(PrerequisiteEdge.prerequisite_id)
            .where(PrerequisiteEdge.figure_id == figure_id, PrerequisiteEdge.is_required.is_(True))
            .scalar_subquery()
        )
        total_steps = (
            select(StepTemplate.figure_id, func.count(StepTemplate.id).label("total"))
            .where(StepTemplate.figure_id.in_(prerequisite_ids))
            .group_by(StepTemplate.figure_id)
            .subquery()
        )
        validated_steps = (
            select(StepTemplate.figure_id, func.count(StepProgress.id).label("validated"))
            .join(
                StepProgress,
                and_(
                    StepProgress.step_id == StepTemplate.id,
                    StepProgress.learner_id == learner_id,
                    StepProgress.status == ProgressionStatus.VALIDATED.value,
                ),
            )
            .where(StepTemplate.figure_id.in_(prerequisite_ids))
            .group_by(StepTemplate.figure_id)
            .subquery()
        )
        q = (
            select(
                PrerequisiteEdge.prerequisite_id,
                Figure.name,
                PrerequisiteEdge.order,
                PrerequisiteEdge.weight,
                func.coalesce(total_steps.c.total, 0),
                func.coalesce(validated_steps.c.validated, 0),
            )
            .join(Figure, Figure.id == PrerequisiteEdge.prerequisite_id)
            .outerjoin(total_steps, total_steps.c.figure_id == PrerequisiteEdge.prerequisite_id)
            .outerjoin(validated_steps, validated_steps.c.figure_id == PrerequisiteEdge.prerequisite_id)
            .where(PrerequisiteEdge.figure_id == figure_id, PrerequisiteEdge.is_required.is_(True))
            .order_by(PrerequisiteEdge.order, PrerequisiteEdge.id)
        )
        rows = (await self.session.execute(q)).all()

        if not rows:
            return ReadinessScore(figure_id=figure_id)

        total_weight = 0
        validated_weight = 0
        details: List[PrerequisiteDetail] = []
        for prerequisite_id, name, order, weight, total, validated in rows:
            # Every step valide; a figure without steps is vacuously mastered
            is_validated = validated == total
            total_weight += weight
            if is_validated:
                validated_weight += weight
            details.append(
                PrerequisiteDetail(
                    prerequisite_id=prerequisite_id,
                    name=name,
                    order=order,
                    weight=weight,
                    validated=is_validated,
                    validated_steps=validated,
                    total_steps=total,
                )
            )

        return ReadinessScore(
            figure_id=figure_id,
            score=weighted_percentage(validated_weight, total_weight),
            validated_count=sum(1 for d in details if d.validated),
            total_count=len(details),
            details=details,
        )

    async def mastered_figure_ids(self, learner_id: uuid.UUID) -> Set[uuid.UUID]:
        """Figures (with at least one step) whose every step is valide for the learner."""
        validated = (
            select(StepTemplate.figure_id, func.count(StepProgress.id).label("validated"))
            .join(StepProgress, StepProgress.step_id == StepTemplate.id)
            .where(
                StepProgress.learner_id == learner_id,
                StepProgress.status == ProgressionStatus.VALIDATED.value,
            )
            .group_by(StepTemplate.figure_id)
            .subquery()
        )
        totals = (
            select(StepTemplate.figure_id, func.count(StepTemplate.id).label("total"))
            .group_by(StepTemplate.figure_id)
            .subquery()
        )
        q = (
            select(validated.c.figure_id)
            .join(totals, totals.c.figure_id == validated.c.figure_id)
            .where(validated.c.validated == totals.c.total)
        )
        result = await self.session.execute(q)
        return set(result.scalars().all())
