"""
Integration tests for the suggestion cache: refresh, accept, dismiss, expiry.
"""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from readiness_engine.database import async_session_maker
from readiness_engine.engines.suggestions.cache import SuggestionCache, SuggestionTarget
from readiness_engine.errors import NotFoundError
from readiness_engine.kernel.models import (
    PERSONAL_PLAN_NAME,
    PlanFigure,
    SuggestionCacheEntry,
    SuggestionStatus,
    TargetKind,
    TrainingPlan,
    utcnow,
)


@pytest.fixture
def cache(db_session):
    return SuggestionCache(db_session)


async def _ready_figures(catalog, learner_id, names=("Equilibre", "Salto")):
    """Figures the learner is fully ready for (score 100)."""
    base = await catalog.figure("Base")
    await catalog.master(learner_id, base)
    figures = []
    for name in names:
        figure = await catalog.figure(name)
        await catalog.edge(figure, base)
        figures.append(figure)
    return base, figures


async def _rows(session, target: SuggestionTarget):
    result = await session.execute(
        select(SuggestionCacheEntry).where(
            SuggestionCacheEntry.target_kind == target.kind.value,
            SuggestionCacheEntry.target_id == target.id,
        )
    )
    return list(result.scalars().all())


class TestRefresh:
    """Refresh replaces the target's batch."""

    @pytest.mark.asyncio
    async def test_refresh_learner(self, cache, catalog, learner_id):
        _, figures = await _ready_figures(catalog, learner_id)
        target = SuggestionTarget.learner(learner_id)

        cached = await cache.refresh(target)

        assert {c.figure_id for c in cached} == {f.id for f in figures}
        assert all(c.status == SuggestionStatus.PENDING for c in cached)
        assert all(c.target_kind == TargetKind.LEARNER for c in cached)
        assert all(c.score == 100 for c in cached)
        ttl = cached[0].expires_at - cached[0].suggested_at
        assert timedelta(hours=23, minutes=59) < ttl <= timedelta(hours=24, seconds=1)

    @pytest.mark.asyncio
    async def test_refresh_replaces_previous_batch(self, cache, catalog, learner_id):
        base, figures = await _ready_figures(catalog, learner_id)
        target = SuggestionTarget.learner(learner_id)
        await cache.refresh(target)
        await cache.dismiss(learner_id, figures[0].id)

        late = await catalog.figure("Late")
        await catalog.edge(late, base)
        await cache.refresh(target)

        rows = await _rows(cache.session, target)
        assert len(rows) == 3
        assert {r.status for r in rows} == {SuggestionStatus.PENDING.value}

    @pytest.mark.asyncio
    async def test_refresh_respects_refresh_limit(self, cache, catalog, learner_id):
        names = tuple(f"Figure {i:02d}" for i in range(12))
        await _ready_figures(catalog, learner_id, names=names)

        cached = await cache.refresh(SuggestionTarget.learner(learner_id))

        assert len(cached) == 10

    @pytest.mark.asyncio
    async def test_refresh_group_stores_percentage(self, cache, catalog):
        members = [uuid.uuid4() for _ in range(4)]
        base = await catalog.figure("Base")
        figure = await catalog.figure("Pyramide")
        await catalog.edge(figure, base)
        for member in members[:3]:
            await catalog.master(member, base)
        group = await catalog.group(members)

        cached = await cache.refresh(SuggestionTarget.group(group.id))

        assert len(cached) == 1
        assert cached[0].target_kind == TargetKind.GROUP
        assert (cached[0].score, cached[0].validated_count, cached[0].total_count) == (75, 3, 4)

    @pytest.mark.asyncio
    async def test_refresh_all(self, cache, catalog, learner_id):
        await _ready_figures(catalog, learner_id)
        await catalog.group([learner_id])

        counts = await cache.refresh_all()

        assert counts == {"learners": 1, "groups": 1}
        result = await cache.session.execute(select(func.count(SuggestionCacheEntry.id)))
        # Two learner rows plus two group rows
        assert result.scalar_one() == 4

    @pytest.mark.asyncio
    async def test_refresh_commits_on_a_fresh_session(self, catalog, learner_id):
        _, figures = await _ready_figures(catalog, learner_id)
        target = SuggestionTarget.learner(learner_id)

        async with async_session_maker() as session:
            cached = await SuggestionCache(session).refresh(target)
        async with async_session_maker() as session:
            rows = await _rows(session, target)

        assert len(cached) == 2
        assert {r.figure_id for r in rows} == {f.id for f in figures}

    @pytest.mark.asyncio
    async def test_refresh_all_commits_on_a_fresh_session(self, catalog, learner_id):
        await _ready_figures(catalog, learner_id)
        await catalog.group([learner_id])

        async with async_session_maker() as session:
            counts = await SuggestionCache(session).refresh_all()
        async with async_session_maker() as session:
            result = await session.execute(select(func.count(SuggestionCacheEntry.id)))
            total = result.scalar_one()

        assert counts == {"learners": 1, "groups": 1}
        assert total == 4


class TestListAndExpire:
    """Active rows and expiry."""

    @pytest.mark.asyncio
    async def test_list_active(self, cache, catalog, learner_id):
        _, figures = await _ready_figures(catalog, learner_id)
        target = SuggestionTarget.learner(learner_id)
        await cache.refresh(target)
        await cache.dismiss(learner_id, figures[0].id)

        active = await cache.list_active(target)

        assert [a.figure_id for a in active] == [figures[1].id]

    @pytest.mark.asyncio
    async def test_expire_stale(self, cache, catalog, learner_id):
        await _ready_figures(catalog, learner_id)
        target = SuggestionTarget.learner(learner_id)
        await cache.refresh(target)

        assert await cache.expire_stale() == 0
        later = utcnow() + timedelta(hours=25)
        assert await cache.list_active(target, now=later) == []

        assert await cache.expire_stale(now=later) == 2
        rows = await _rows(cache.session, target)
        assert {r.status for r in rows} == {SuggestionStatus.EXPIRED.value}
        assert await cache.list_active(target) == []


class TestAcceptDismiss:
    """Learner decisions on suggestions."""

    @pytest.mark.asyncio
    async def test_accept_creates_personal_plan(self, cache, catalog, learner_id):
        _, figures = await _ready_figures(catalog, learner_id)
        await cache.refresh(SuggestionTarget.learner(learner_id))

        plan = await cache.accept(learner_id, figures[0].id)

        assert plan.name == PERSONAL_PLAN_NAME
        assert plan.owner_id == learner_id
        assert plan.is_personal is True
        result = await cache.session.execute(
            select(SuggestionCacheEntry.status).where(SuggestionCacheEntry.figure_id == figures[0].id)
        )
        assert result.scalar_one() == SuggestionStatus.ACCEPTED.value

    @pytest.mark.asyncio
    async def test_accept_is_idempotent(self, cache, catalog, learner_id):
        _, figures = await _ready_figures(catalog, learner_id)

        first = await cache.accept(learner_id, figures[0].id)
        second = await cache.accept(learner_id, figures[0].id)
        third = await cache.accept(learner_id, figures[1].id)

        assert first.id == second.id == third.id
        plans = await cache.session.execute(select(func.count(TrainingPlan.id)))
        assert plans.scalar_one() == 1
        result = await cache.session.execute(
            select(PlanFigure.figure_id, PlanFigure.order)
            .where(PlanFigure.plan_id == first.id)
            .order_by(PlanFigure.order)
        )
        assert result.all() == [(figures[0].id, 1), (figures[1].id, 2)]

    @pytest.mark.asyncio
    async def test_accepted_figure_leaves_suggestions(self, cache, catalog, learner_id):
        _, figures = await _ready_figures(catalog, learner_id)
        target = SuggestionTarget.learner(learner_id)
        await cache.accept(learner_id, figures[0].id)

        cached = await cache.refresh(target)

        assert [c.figure_id for c in cached] == [figures[1].id]

    @pytest.mark.asyncio
    async def test_accept_unknown_figure(self, cache, learner_id, db_session):
        with pytest.raises(NotFoundError):
            await cache.accept(learner_id, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_dismiss(self, cache, catalog, learner_id):
        _, figures = await _ready_figures(catalog, learner_id)
        await cache.refresh(SuggestionTarget.learner(learner_id))

        assert await cache.dismiss(learner_id, figures[0].id) is True
        assert await cache.dismiss(learner_id, figures[0].id) is False

    @pytest.mark.asyncio
    async def test_dismiss_without_suggestion_is_noop(self, cache, learner_id, db_session):
        assert await cache.dismiss(learner_id, uuid.uuid4()) is False


class TestPersonalPlan:
    """One active personal plan per learner."""

    @pytest.mark.asyncio
    async def test_accept_reuses_existing_personal_plan(self, cache, catalog, learner_id):
        _, figures = await _ready_figures(catalog, learner_id)
        existing = await catalog.plan(learner_id, [], personal=True)
        existing_id = existing.id

        plan = await cache.accept(learner_id, figures[0].id)

        assert plan.id == existing_id
        result = await cache.session.execute(
            select(func.count(TrainingPlan.id)).where(TrainingPlan.owner_id == learner_id)
        )
        assert result.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_second_active_personal_plan_is_rejected(self, catalog, learner_id):
        await catalog.plan(learner_id, [], personal=True)

        with pytest.raises(IntegrityError):
            await catalog.plan(learner_id, [], personal=True)

    @pytest.mark.asyncio
    async def test_authored_plans_are_not_limited(self, catalog, learner_id):
        await catalog.plan(learner_id, [], personal=True)
        await catalog.plan(learner_id, [])
        await catalog.plan(learner_id, [])

        result = await catalog.session.execute(
            select(func.count(TrainingPlan.id)).where(TrainingPlan.owner_id == learner_id)
        )
        assert result.scalar_one() == 3
