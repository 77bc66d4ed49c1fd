"""
Suggestion Cache - persisted suggestion snapshots per learner or group.

A refresh recomputes and replaces the target's whole batch in one unit, so
readers never see a mix of old and new rows. Rows expire after ``suggestion_ttl_hours``
and are marked expired by the periodic job.
"""

import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import delete, func, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from readiness_engine.config import get_settings
from readiness_engine.database import atomic
from readiness_engine.engines.suggestions.aggregator import SuggestionAggregator
from readiness_engine.errors import NotFoundError
from readiness_engine.kernel.events.event_store import EventStore
from readiness_engine.kernel.models.base import utcnow
from readiness_engine.kernel.models.catalog import Figure
from readiness_engine.kernel.models.event_log import EventType
from readiness_engine.kernel.models.program import Group, PERSONAL_PLAN_NAME, PlanFigure, TrainingPlan
from readiness_engine.kernel.models.progression import StepProgress
from readiness_engine.kernel.models.suggestion import SuggestionCacheEntry, SuggestionStatus, TargetKind
from readiness_engine.logging_config import get_logger

logger = get_logger(__name__)

PERSONAL_PLAN_DESCRIPTION = "Mes figures personnelles"

# Advisory lock namespace for personal plan writes, keyed by learner
PLAN_LOCK_NAMESPACE = 7_341_103


class SuggestionTarget(BaseModel):
    """Exactly one learner or one group."""

    model_config = ConfigDict(frozen=True)

    kind: TargetKind
    id: uuid.UUID

    @classmethod
    def learner(cls, learner_id: uuid.UUID) -> "SuggestionTarget":
        return cls(kind=TargetKind.LEARNER, id=learner_id)

    @classmethod
    def group(cls, group_id: uuid.UUID) -> "SuggestionTarget":
        return cls(kind=TargetKind.GROUP, id=group_id)


class CachedSuggestionView(BaseModel):
    """A cached suggestion (Pydantic)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    target_kind: TargetKind
    target_id: uuid.UUID
    figure_id: uuid.UUID
    score: int
    validated_count: int
    total_count: int
    status: SuggestionStatus
    suggested_at: datetime
    expires_at: datetime


class PlanView(BaseModel):
    """A training plan (Pydantic)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: uuid.UUID
    name: str
    is_personal: bool
    active: bool


class SuggestionCache:
    """Refreshes, reads and resolves cached suggestions."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.aggregator = SuggestionAggregator(session)
        self.event_store = EventStore(session)
        self.settings = get_settings()

    async def _compute(self, target: SuggestionTarget) -> List[SuggestionCacheEntry]:
        """Fresh (unsaved) cache rows for a target."""
        expires_at = utcnow() + timedelta(hours=self.settings.suggestion_ttl_hours)

        if target.kind == TargetKind.LEARNER:
            learner_suggestions = await self.aggregator.for_learner(
                target.id,
                threshold=self.settings.suggestion_threshold,
                limit=self.settings.refresh_limit,
            )
            return [
                SuggestionCacheEntry(
                    target_kind=TargetKind.LEARNER.value,
                    target_id=target.id,
                    figure_id=s.figure_id,
                    score=s.score,
                    validated_count=s.validated_count,
                    total_count=s.total_count,
                    status=SuggestionStatus.PENDING.value,
                    expires_at=expires_at,
                )
                for s in learner_suggestions
            ]

        group_suggestions = await self.aggregator.for_group(
            target.id,
            threshold=self.settings.group_threshold,
            limit=self.settings.refresh_limit,
        )
        return [
            SuggestionCacheEntry(
                target_kind=TargetKind.GROUP.value,
                target_id=target.id,
                figure_id=s.figure_id,
                score=s.percentage,
                validated_count=s.ready_count,
                total_count=s.group_size,
                status=SuggestionStatus.PENDING.value,
                expires_at=expires_at,
            )
            for s in group_suggestions
        ]

    async def refresh(self, target: SuggestionTarget) -> List[CachedSuggestionView]:
        """Recompute a target's suggestions and replace its cached batch."""
        async with atomic(self.session):
            entries = await self._compute(target)
            await self.session.execute(
                delete(SuggestionCacheEntry).where(
                    SuggestionCacheEntry.target_kind == target.kind.value,
                    SuggestionCacheEntry.target_id == target.id,
                )
            )
            self.session.add_all(entries)
            await self.session.flush()

        logger.info(
            "Suggestion cache refreshed",
            extra={"target_kind": target.kind.value, "target_id": str(target.id), "count": len(entries)},
        )
        return [CachedSuggestionView.model_validate(e) for e in entries]

    async def list_active(
        self,
        target: SuggestionTarget,
        now: Optional[datetime] = None,
    ) -> List[CachedSuggestionView]:
        """Pending, unexpired suggestions for a target, best score first."""
        now = now or utcnow()
        result = await self.session.execute(
            select(SuggestionCacheEntry)
            .where(
                SuggestionCacheEntry.target_kind == target.kind.value,
                SuggestionCacheEntry.target_id == target.id,
                SuggestionCacheEntry.status == SuggestionStatus.PENDING.value,
                SuggestionCacheEntry.expires_at > now,
            )
            .order_by(SuggestionCacheEntry.score.desc(), SuggestionCacheEntry.figure_id)
        )
        return [CachedSuggestionView.model_validate(e) for e in result.scalars().all()]

    async def _lock_personal_plan(self, learner_id: uuid.UUID) -> None:
        if self.session.get_bind().dialect.name == "postgresql":
            await self.session.execute(
                text("SELECT pg_advisory_xact_lock(:namespace, :key)"),
                {"namespace": PLAN_LOCK_NAMESPACE, "key": learner_id.int & 0x7FFFFFFF},
            )

    async def _personal_plan(self, learner_id: uuid.UUID) -> Optional[TrainingPlan]:
        result = await self.session.execute(
            select(TrainingPlan)
            .where(
                TrainingPlan.owner_id == learner_id,
                TrainingPlan.is_personal.is_(True),
                TrainingPlan.active.is_(True),
            )
            .order_by(TrainingPlan.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def accept(self, learner_id: uuid.UUID, figure_id: uuid.UUID) -> PlanView:
        """
        Add a suggested figure to the learner's personal plan.

        The personal plan is created on first use. Accepting the same figure
        again changes nothing. Concurrent accepts for one learner are
        serialized on PostgreSQL.

        Raises:
            NotFoundError: the figure does not exist
        """
        async with atomic(self.session):
            figure = await self.session.get(Figure, figure_id)
            if figure is None:
                raise NotFoundError(f"Figure not found (ID: {figure_id})", details={"figure_id": str(figure_id)})

            await self._lock_personal_plan(learner_id)
            plan = await self._personal_plan(learner_id)
            if plan is None:
                plan = TrainingPlan(
                    owner_id=learner_id,
                    name=PERSONAL_PLAN_NAME,
                    description=PERSONAL_PLAN_DESCRIPTION,
                    is_personal=True,
                    active=True,
                )
                self.session.add(plan)
                await self.session.flush()

            existing = await self.session.execute(
                select(PlanFigure.id).where(PlanFigure.plan_id == plan.id, PlanFigure.figure_id == figure_id)
            )
            added = existing.scalar_one_or_none() is None
            if added:
                max_order = await self.session.execute(
                    select(func.max(PlanFigure.order)).where(PlanFigure.plan_id == plan.id)
                )
                self.session.add(
                    PlanFigure(plan_id=plan.id, figure_id=figure_id, order=(max_order.scalar() or 0) + 1)
                )

            await self.session.execute(
                update(SuggestionCacheEntry)
                .where(
                    SuggestionCacheEntry.target_kind == TargetKind.LEARNER.value,
                    SuggestionCacheEntry.target_id == learner_id,
                    SuggestionCacheEntry.figure_id == figure_id,
                )
                .values(status=SuggestionStatus.ACCEPTED.value)
            )

            if added:
                await self.event_store.log(
                    event_type=EventType.SUGGESTION_ACCEPTED,
                    entity_type="training_plan",
                    entity_id=plan.id,
                    user_id=learner_id,
                    payload={"figure_id": figure_id},
                )
            await self.session.flush()

        if added:
            logger.info(
                "Suggestion accepted",
                extra={"learner_id": str(learner_id), "figure_id": str(figure_id), "plan_id": str(plan.id)},
            )
        return PlanView.model_validate(plan)

    async def dismiss(self, learner_id: uuid.UUID, figure_id: uuid.UUID) -> bool:
        """Hide a pending suggestion until the next refresh. False when there was nothing to dismiss."""
        async with atomic(self.session):
            result = await self.session.execute(
                update(SuggestionCacheEntry)
                .where(
                    SuggestionCacheEntry.target_kind == TargetKind.LEARNER.value,
                    SuggestionCacheEntry.target_id == learner_id,
                    SuggestionCacheEntry.figure_id == figure_id,
                    SuggestionCacheEntry.status == SuggestionStatus.PENDING.value,
                )
                .values(status=SuggestionStatus.DISMISSED.value)
            )
            dismissed = result.rowcount > 0
            if dismissed:
                await self.event_store.log(
                    event_type=EventType.SUGGESTION_DISMISSED,
                    entity_type="figure",
                    entity_id=figure_id,
                    user_id=learner_id,
                )
                await self.session.flush()

        return dismissed

    async def expire_stale(self, now: Optional[datetime] = None) -> int:
        """Mark pending rows past their expiry as expired. Returns how many were marked."""
        now = now or utcnow()
        async with atomic(self.session):
            result = await self.session.execute(
                update(SuggestionCacheEntry)
                .where(
                    SuggestionCacheEntry.status == SuggestionStatus.PENDING.value,
                    SuggestionCacheEntry.expires_at <= now,
                )
                .values(status=SuggestionStatus.EXPIRED.value)
                .execution_options(synchronize_session="fetch")
            )
        if result.rowcount:
            logger.info("Expired stale suggestions", extra={"count": result.rowcount})
        return result.rowcount

    async def refresh_all(self) -> Dict[str, int]:
        """Refresh every learner with progression records and every group."""
        async with atomic(self.session):
            learners = await self.session.execute(
                select(StepProgress.learner_id).distinct().order_by(StepProgress.learner_id)
            )
            learner_ids = list(learners.scalars().all())
            groups = await self.session.execute(select(Group.id).order_by(Group.id))
            group_ids = list(groups.scalars().all())

            for learner_id in learner_ids:
                await self.refresh(SuggestionTarget.learner(learner_id))
            for group_id in group_ids:
                await self.refresh(SuggestionTarget.group(group_id))

        logger.info(
            "All suggestion caches refreshed",
            extra={"learners": len(learner_ids), "groups": len(group_ids)},
        )
        return {"learners": len(learner_ids), "groups": len(group_ids)}
