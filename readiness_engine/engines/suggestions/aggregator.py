"""
Suggestion Aggregator - ranks the figures a learner (or a whole group) is ready to start.

Individual: every catalog figure with at least one required prerequisite is a
candidate, minus figures already planned for the learner and figures the
learner has fully mastered. Candidates scoring at or above the threshold are
ranked by score; ties keep catalog order (name, then id).

Group: each member is run through the individual pass at the "ready"
threshold; a figure's group score is the share of members ready for it.
"""

import uuid
from typing import Dict, List, Optional, Set

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from readiness_engine.config import get_settings
from readiness_engine.engines.readiness.scorer import (
    PrerequisiteDetail,
    ReadinessScorer,
    weighted_percentage,
)
from readiness_engine.kernel.models.catalog import Figure
from readiness_engine.kernel.models.graph import PrerequisiteEdge
from readiness_engine.kernel.models.program import GroupMember, PlanAssignment, PlanFigure, TrainingPlan
from readiness_engine.logging_config import get_logger

logger = get_logger(__name__)


class FigureSuggestion(BaseModel):
    """A figure a learner is ready to start."""

    figure_id: uuid.UUID
    name: str
    difficulty_level: int
    score: int
    validated_count: int
    total_count: int
    details: List[PrerequisiteDetail] = []


class GroupSuggestion(BaseModel):
    """A figure a share of a group is ready to start."""

    figure_id: uuid.UUID
    name: str
    difficulty_level: int
    percentage: int
    ready_learner_ids: List[uuid.UUID]
    group_size: int

    @property
    def ready_count(self) -> int:
        return len(self.ready_learner_ids)


class SuggestionAggregator:
    """Computes individual and group suggestions. Read-only."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.scorer = ReadinessScorer(session)
        self.settings = get_settings()

    async def _candidate_figures(self) -> List[Figure]:
        """Figures with at least one required prerequisite, in catalog order."""
        has_required = (
            select(PrerequisiteEdge.id)
            .where(PrerequisiteEdge.figure_id == Figure.id, PrerequisiteEdge.is_required.is_(True))
            .exists()
        )
        result = await self.session.execute(select(Figure).where(has_required).order_by(Figure.name, Figure.id))
        return list(result.scalars().all())

    async def planned_figure_ids(self, learner_id: uuid.UUID) -> Set[uuid.UUID]:
        """Figures in a plan assigned to the learner or in the learner's active personal plan."""
        assigned = (
            select(PlanFigure.figure_id)
            .join(PlanAssignment, PlanAssignment.plan_id == PlanFigure.plan_id)
            .where(PlanAssignment.learner_id == learner_id)
        )
        personal = (
            select(PlanFigure.figure_id)
            .join(TrainingPlan, TrainingPlan.id == PlanFigure.plan_id)
            .where(
                TrainingPlan.owner_id == learner_id,
                TrainingPlan.is_personal.is_(True),
                TrainingPlan.active.is_(True),
            )
        )
        result = await self.session.execute(assigned.union(personal))
        return set(result.scalars().all())

    async def for_learner(
        self,
        learner_id: uuid.UUID,
        threshold: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[FigureSuggestion]:
        """
        Rank the figures a learner is ready for.

        Args:
            learner_id: The learner
            threshold: Minimum readiness score (default from settings)
            limit: Maximum number of suggestions (default from settings)
        """
        if threshold is None:
            threshold = self.settings.suggestion_threshold
        if limit is None:
            limit = self.settings.suggestion_limit
        return (await self._rank_for_learner(learner_id, threshold))[:limit]

    async def _rank_for_learner(self, learner_id: uuid.UUID, threshold: int) -> List[FigureSuggestion]:
        candidates = await self._candidate_figures()
        if not candidates:
            return []

        excluded = await self.planned_figure_ids(learner_id)
        excluded |= await self.scorer.mastered_figure_ids(learner_id)

        suggestions: List[FigureSuggestion] = []
        for figure in candidates:
            if figure.id in excluded:
                continue
            readiness = await self.scorer.score(learner_id, figure.id)
            if readiness.score < threshold:
                continue
            suggestions.append(
                FigureSuggestion(
                    figure_id=figure.id,
                    name=figure.name,
                    difficulty_level=figure.difficulty_level,
                    score=readiness.score,
                    validated_count=readiness.validated_count,
                    total_count=readiness.total_count,
                    details=readiness.details,
                )
            )

        # list.sort is stable: equal scores stay in catalog order
        suggestions.sort(key=lambda s: s.score, reverse=True)
        return suggestions

    async def group_member_ids(self, group_id: uuid.UUID) -> List[uuid.UUID]:
        result = await self.session.execute(
            select(GroupMember.learner_id)
            .where(GroupMember.group_id == group_id)
            .order_by(GroupMember.learner_id)
        )
        return list(result.scalars().all())

    async def for_group(
        self,
        group_id: uuid.UUID,
        threshold: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[GroupSuggestion]:
        """
        Rank the figures a group is collectively ready for.

        A member is ready for a figure when their individual score reaches
        ``group_ready_threshold``. Empty groups get no suggestions.
        """
        if threshold is None:
            threshold = self.settings.group_threshold
        if limit is None:
            limit = self.settings.group_limit
        ready_threshold = self.settings.group_ready_threshold

        member_ids = await self.group_member_ids(group_id)
        if not member_ids:
            return []

        figures: Dict[uuid.UUID, FigureSuggestion] = {}
        ready: Dict[uuid.UUID, List[uuid.UUID]] = {}
        for learner_id in member_ids:
            for suggestion in await self._rank_for_learner(learner_id, ready_threshold):
                figures.setdefault(suggestion.figure_id, suggestion)
                ready.setdefault(suggestion.figure_id, []).append(learner_id)

        group_size = len(member_ids)
        suggestions: List[GroupSuggestion] = []
        for figure_id, suggestion in figures.items():
            percentage = weighted_percentage(len(ready[figure_id]), group_size)
            if percentage < threshold:
                continue
            suggestions.append(
                GroupSuggestion(
                    figure_id=figure_id,
                    name=suggestion.name,
                    difficulty_level=suggestion.difficulty_level,
                    percentage=percentage,
                    ready_learner_ids=ready[figure_id],
                    group_size=group_size,
                )
            )

        suggestions.sort(key=lambda s: s.percentage, reverse=True)
        suggestions = suggestions[:limit]

        logger.debug(
            "Group suggestions computed",
            extra={"group_id": str(group_id), "group_size": group_size, "count": len(suggestions)},
        )
        return suggestions
