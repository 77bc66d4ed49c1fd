"""
Pytest fixtures for readiness engine tests.
"""

import os
import tempfile
import uuid
from typing import AsyncGenerator, Dict, List, Optional

# Use file-based SQLite so every connection shares the same DB
_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
TEST_DB_PATH = _tmp.name
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
from readiness_engine.config import get_settings
get_settings.cache_clear()

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from readiness_engine.database import async_session_maker, engine
from readiness_engine.kernel.models import (
    Base,
    Figure,
    Group,
    GroupMember,
    PlanAssignment,
    PlanFigure,
    PrerequisiteEdge,
    ProgressionStatus,
    StepProgress,
    StepTemplate,
    TrainingPlan,
)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """A session on a freshly created schema."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_maker() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


class CatalogBuilder:
    """Seeds catalog, graph, progression and program rows for a test."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.steps: Dict[uuid.UUID, List[StepTemplate]] = {}

    async def figure(self, name: str, steps: int = 2, difficulty: int = 1) -> Figure:
        figure = Figure(id=uuid.uuid4(), name=name, difficulty_level=difficulty)
        self.session.add(figure)
        await self.session.flush()
        templates = [
            StepTemplate(id=uuid.uuid4(), figure_id=figure.id, order=i + 1, title=f"{name} {i + 1}")
            for i in range(steps)
        ]
        self.session.add_all(templates)
        await self.session.commit()
        self.steps[figure.id] = templates
        return figure

    async def edge(
        self,
        figure: Figure,
        prerequisite: Figure,
        weight: int = 1,
        required: bool = True,
        order: int = 1,
    ) -> PrerequisiteEdge:
        edge = PrerequisiteEdge(
            id=uuid.uuid4(),
            figure_id=figure.id,
            prerequisite_id=prerequisite.id,
            weight=weight,
            is_required=required,
            order=order,
        )
        self.session.add(edge)
        await self.session.commit()
        return edge

    async def enroll(
        self,
        learner_id: uuid.UUID,
        figure: Figure,
        status: ProgressionStatus = ProgressionStatus.NOT_STARTED,
    ) -> List[StepProgress]:
        """Create one progression row per step of the figure."""
        rows = [
            StepProgress(id=uuid.uuid4(), learner_id=learner_id, step_id=step.id, status=status.value)
            for step in self.steps[figure.id]
        ]
        self.session.add_all(rows)
        await self.session.commit()
        return rows

    async def master(self, learner_id: uuid.UUID, figure: Figure) -> List[StepProgress]:
        """Enroll the learner with every step of the figure already valide."""
        return await self.enroll(learner_id, figure, status=ProgressionStatus.VALIDATED)

    async def group(self, learner_ids: List[uuid.UUID], name: str = "Groupe A") -> Group:
        group = Group(id=uuid.uuid4(), name=name)
        self.session.add(group)
        await self.session.flush()
        self.session.add_all(
            [GroupMember(id=uuid.uuid4(), group_id=group.id, learner_id=lid) for lid in learner_ids]
        )
        await self.session.commit()
        return group

    async def plan(
        self,
        owner_id: uuid.UUID,
        figures: List[Figure],
        assign_to: Optional[uuid.UUID] = None,
        personal: bool = False,
    ) -> TrainingPlan:
        plan = TrainingPlan(id=uuid.uuid4(), owner_id=owner_id, name="Programme", is_personal=personal)
        self.session.add(plan)
        await self.session.flush()
        self.session.add_all(
            [
                PlanFigure(id=uuid.uuid4(), plan_id=plan.id, figure_id=f.id, order=i + 1)
                for i, f in enumerate(figures)
            ]
        )
        if assign_to is not None:
            self.session.add(PlanAssignment(id=uuid.uuid4(), plan_id=plan.id, learner_id=assign_to))
        await self.session.commit()
        return plan


@pytest_asyncio.fixture
async def catalog(db_session: AsyncSession) -> CatalogBuilder:
    return CatalogBuilder(db_session)


@pytest.fixture
def learner_id() -> uuid.UUID:
    return uuid.uuid4()


def pytest_sessionfinish(session, exitstatus):
    for suffix in ("", "-wal", "-shm"):
        try:
            os.remove(TEST_DB_PATH + suffix)
        except OSError:
            pass
