"""
Kernel Layer

Persistent models and the progression event log shared by every engine.

Invariants:
- One progression record per (learner, step); status never regresses
- The prerequisite graph is acyclic
- At most one cached suggestion per (target, figure)
"""

from readiness_engine.kernel.models import (
    Figure,
    StepTemplate,
    PrerequisiteEdge,
    StepProgress,
    PracticeAttempt,
    ProgressionStatus,
    AttemptMode,
    SuggestionCacheEntry,
    SuggestionStatus,
    TargetKind,
    EventLog,
    EventType,
)

__all__ = [
    # Catalog
    "Figure",
    "StepTemplate",
    # Graph
    "PrerequisiteEdge",
    # Progression
    "StepProgress",
    "PracticeAttempt",
    "ProgressionStatus",
    "AttemptMode",
    # Suggestions
    "SuggestionCacheEntry",
    "SuggestionStatus",
    "TargetKind",
    # Event Log
    "EventLog",
    "EventType",
]
