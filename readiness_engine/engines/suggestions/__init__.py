"""
Suggestion Engine - figures a learner or a group is ready to start.

Defaults:
- Individual: score >= 60, top 5
- Group: member ready at score >= 80; >= 50% of the group ready, top 5
- Cache refresh: top 10, rows expire after 24 hours
"""

from readiness_engine.engines.suggestions.aggregator import (
    FigureSuggestion,
    GroupSuggestion,
    SuggestionAggregator,
)
from readiness_engine.engines.suggestions.cache import (
    CachedSuggestionView,
    PlanView,
    SuggestionCache,
    SuggestionTarget,
)

__all__ = [
    "FigureSuggestion",
    "GroupSuggestion",
    "SuggestionAggregator",
    "CachedSuggestionView",
    "PlanView",
    "SuggestionCache",
    "SuggestionTarget",
]
