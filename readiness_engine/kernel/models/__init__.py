"""
Kernel Data Models

Core SQLAlchemy models: catalog (read-only), prerequisite graph, progression
store, program/assignment collaborators, suggestion cache and event log.
"""

from readiness_engine.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow
from readiness_engine.kernel.models.catalog import Discipline, Figure, StepTemplate
from readiness_engine.kernel.models.graph import PrerequisiteEdge, MIN_WEIGHT, MAX_WEIGHT
from readiness_engine.kernel.models.progression import (
    AttemptMode,
    PracticeAttempt,
    ProgressionStatus,
    StepProgress,
)
from readiness_engine.kernel.models.program import (
    PERSONAL_PLAN_NAME,
    Group,
    GroupMember,
    PlanAssignment,
    PlanFigure,
    TrainingPlan,
)
from readiness_engine.kernel.models.suggestion import (
    SuggestionCacheEntry,
    SuggestionStatus,
    TargetKind,
)
from readiness_engine.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "utcnow",
    # Catalog
    "Discipline",
    "Figure",
    "StepTemplate",
    # Graph
    "PrerequisiteEdge",
    "MIN_WEIGHT",
    "MAX_WEIGHT",
    # Progression
    "AttemptMode",
    "PracticeAttempt",
    "ProgressionStatus",
    "StepProgress",
    # Program
    "PERSONAL_PLAN_NAME",
    "Group",
    "GroupMember",
    "PlanAssignment",
    "PlanFigure",
    "TrainingPlan",
    # Suggestions
    "SuggestionCacheEntry",
    "SuggestionStatus",
    "TargetKind",
    # Event Log
    "EventLog",
    "EventType",
]
