"""Unit tests for score rounding and graph reachability."""

import uuid

import pytest

from readiness_engine.engines.graph.prerequisite_graph import path_exists
from readiness_engine.engines.readiness.scorer import round_half_up, weighted_percentage
from readiness_engine.errors import CycleError, ReadinessEngineError


class TestRounding:
    """Half-up rounding of weighted percentages."""

    @pytest.mark.parametrize(
        "numerator, denominator, expected",
        [(1, 2, 1), (5, 2, 3), (1, 3, 0), (2, 3, 1), (250, 100, 3), (0, 7, 0)],
    )
    def test_round_half_up(self, numerator, denominator, expected):
        assert round_half_up(numerator, denominator) == expected

    @pytest.mark.parametrize(
        "validated, total, expected",
        [(2, 5, 40), (1, 3, 33), (2, 3, 67), (1, 8, 13), (3, 3, 100), (0, 4, 0)],
    )
    def test_weighted_percentage(self, validated, total, expected):
        assert weighted_percentage(validated, total) == expected

    def test_nothing_to_weigh_scores_zero(self):
        assert weighted_percentage(0, 0) == 0

    def test_exact_half_rounds_up(self):
        # 100 * 1 / 8 = 12.5
        assert weighted_percentage(1, 8) == 13


class TestPathExists:
    """Depth-first reachability over figure -> prerequisites."""

    def test_chain(self):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        adjacency = {a: [b], b: [c]}
        assert path_exists(adjacency, a, c) is True
        assert path_exists(adjacency, c, a) is False

    def test_diamond_visits_shared_node_once(self):
        a, b, c, d = (uuid.uuid4() for _ in range(4))
        adjacency = {a: [b, c], b: [d], c: [d]}
        assert path_exists(adjacency, a, d) is True
        assert path_exists(adjacency, d, a) is False

    def test_start_equals_goal(self):
        a = uuid.uuid4()
        assert path_exists({}, a, a) is True

    def test_deep_chain_is_not_recursive(self):
        nodes = [uuid.uuid4() for _ in range(5000)]
        adjacency = {n: [nodes[i + 1]] for i, n in enumerate(nodes[:-1])}
        assert path_exists(adjacency, nodes[0], nodes[-1]) is True


class TestErrors:
    """Error payloads."""

    def test_to_dict(self):
        error = CycleError("Cycle detected", details={"figure": "Rondade"})
        assert isinstance(error, ReadinessEngineError)
        assert error.to_dict() == {
            "error_type": "CycleError",
            "message": "Cycle detected",
            "details": {"figure": "Rondade"},
        }
