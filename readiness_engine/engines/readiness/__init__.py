"""
Readiness Engine - weighted share of a figure's required prerequisites a learner has mastered.
"""

from readiness_engine.engines.readiness.scorer import (
    PrerequisiteDetail,
    ReadinessScore,
    ReadinessScorer,
    round_half_up,
    weighted_percentage,
)

__all__ = [
    "PrerequisiteDetail",
    "ReadinessScore",
    "ReadinessScorer",
    "round_half_up",
    "weighted_percentage",
]
