"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Baseline Grid Search Test Suite
===============================================================================
Tests for the revolution sweep at a single grid point (minimum selection,
tie-break, partial failures) and for the full sweep (one record per grid
point in enumeration order, invalid points contained, determinism).
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import logging
import math

import pytest
from numpy.testing import assert_allclose

from core.data_structures import GridAxis, GridPoint, SearchBounds
from core.exceptions import AllRevolutionsFailed, InvalidConfiguration
from core.interfaces import FunctionCostEvaluator
from guidance.grid_search import GridSearchExplorer
from simulation.synthetic import SyntheticEvaluatorFactory


def small_bounds():
    """[0, 10] x [0, 10] with step 10: two values per axis, four points."""
    return SearchBounds(
        epoch=GridAxis(0.0, 10.0, step=10.0),
        time_of_flight=GridAxis(0.0, 10.0, step=10.0),
    )


def factory_of(function):
    """Evaluator factory wrapping a plain cost function."""
    def factory(free_parameter_count):
        assert free_parameter_count == 0
        return FunctionCostEvaluator(function)
    return factory


# =============================================================================
# Revolution sweep at one point
# =============================================================================

class TestBestRevolution:

    def test_minimum_over_revolutions(self):
        explorer = GridSearchExplorer(small_bounds(), revolution_range=(0, 5))
        evaluator = FunctionCostEvaluator(lambda t0, tof, n, p: (n - 3) ** 2 + 1.0)
        candidate = explorer.best_revolution(evaluator, GridPoint(0.0, 10.0))
        assert candidate.revolution_count == 3
        assert candidate.cost == 1.0
        assert candidate.free_parameters == ()

    def test_ties_keep_lowest_revolution_count(self):
        explorer = GridSearchExplorer(small_bounds(), revolution_range=(0, 5))
        evaluator = FunctionCostEvaluator(lambda t0, tof, n, p: 0.0 if n in (2, 4) else 1.0)
        candidate = explorer.best_revolution(evaluator, GridPoint(0.0, 10.0))
        assert candidate.revolution_count == 2

    def test_sweeps_revolutions_in_ascending_order(self):
        calls = []

        def cost(t0, tof, n, p):
            calls.append(n)
            return 1.0

        explorer = GridSearchExplorer(small_bounds(), revolution_range=(1, 4))
        explorer.best_revolution(FunctionCostEvaluator(cost), GridPoint(0.0, 10.0))
        assert calls == [1, 2, 3, 4]

    def test_all_failures_raise(self):
        explorer = GridSearchExplorer(small_bounds(), revolution_range=(0, 2))
        evaluator = FunctionCostEvaluator(lambda t0, tof, n, p: math.nan)
        with pytest.raises(AllRevolutionsFailed) as info:
            explorer.best_revolution(evaluator, GridPoint(10.0, 0.0))
        assert info.value.epoch == 10.0
        assert info.value.time_of_flight == 0.0

    @pytest.mark.parametrize("revolution_range", [(-1, 2), (3, 1)])
    def test_invalid_revolution_range(self, revolution_range):
        with pytest.raises(InvalidConfiguration):
            GridSearchExplorer(small_bounds(), revolution_range=revolution_range)


# =============================================================================
# Full sweep
# =============================================================================

class TestExplore:

    def test_constant_surface_picks_zero_revolutions(self):
        """Cost equal to the revolution count: every point takes N=0, cost 0."""
        explorer = GridSearchExplorer(small_bounds(), revolution_range=(0, 1))
        records = explorer.explore(factory_of(lambda t0, tof, n, p: float(n)))

        assert len(records) == 4
        for record in records:
            assert record.best_cost == 0.0
            assert record.revolution_count == 0

    def test_failed_revolution_is_skipped(self):
        """Revolution 0 fails everywhere, revolution 1 costs 5."""
        def cost(t0, tof, n, p):
            if n == 0:
                raise RuntimeError("no solution for zero revolutions")
            return 5.0

        explorer = GridSearchExplorer(small_bounds(), revolution_range=(0, 1))
        records = explorer.explore(factory_of(cost))
        assert all(r.best_cost == 5.0 for r in records)
        assert all(r.revolution_count == 1 for r in records)

    @pytest.mark.parametrize("bad_cost", [[1.0, 2.0], "n/a", (3.0, 4.0)])
    def test_non_scalar_cost_skips_revolution(self, bad_cost):
        """A list or string returned for N=0 only drops that revolution."""
        def cost(t0, tof, n, p):
            return bad_cost if n == 0 else 5.0

        explorer = GridSearchExplorer(small_bounds(), revolution_range=(0, 1))
        records = explorer.explore(factory_of(cost))
        assert len(records) == 4
        assert all(r.best_cost == 5.0 for r in records)
        assert all(r.revolution_count == 1 for r in records)

    def test_failed_point_yields_invalid_record(self, caplog):
        """A point where every revolution fails is flagged and the sweep goes on."""
        def cost(t0, tof, n, p):
            if t0 == 10.0 and tof == 0.0:
                raise RuntimeError("shaping failed")
            return t0 + tof + n

        explorer = GridSearchExplorer(small_bounds(), revolution_range=(0, 1))
        with caplog.at_level(logging.WARNING, logger='guidance.grid_search'):
            records = explorer.explore(factory_of(cost))

        assert len(records) == 4
        assert [r.is_valid for r in records] == [True, False, True, True]
        assert math.isinf(records[1].best_cost)
        assert records[1].revolution_count is None
        assert records[3].best_cost == 20.0
        assert any('invalid' in message for message in caplog.messages)

    def test_records_follow_enumeration_order(self):
        bounds = SearchBounds(
            epoch=GridAxis(0.0, 30.0, step=10.0),
            time_of_flight=GridAxis(100.0, 300.0, step=100.0),
        )
        explorer = GridSearchExplorer(bounds, revolution_range=(0, 0))
        records = explorer.explore(factory_of(lambda t0, tof, n, p: 1.0))
        assert [r.point for r in records] == list(bounds.grid_points())

    def test_deterministic(self):
        bounds = SearchBounds(
            epoch=GridAxis(7304.5, 7704.5, point_count=9),
            time_of_flight=GridAxis(500.0, 1500.0, step=250.0),
        )
        explorer = GridSearchExplorer(bounds, revolution_range=(0, 3))
        first = explorer.explore(SyntheticEvaluatorFactory())
        second = explorer.explore(SyntheticEvaluatorFactory())
        assert first == second
        assert all(r.is_valid for r in first)

    def test_iter_explore_is_lazy(self):
        calls = []

        def cost(t0, tof, n, p):
            calls.append((t0, tof))
            return 1.0

        explorer = GridSearchExplorer(small_bounds(), revolution_range=(0, 0))
        stream = explorer.iter_explore(factory_of(cost))
        first = next(stream)
        assert first.point == GridPoint(0.0, 0.0)
        assert calls == [(0.0, 0.0)]

    def test_synthetic_surface_prefers_matching_revolutions(self):
        """Long transfers favour more revolutions on the synthetic surface."""
        bounds = SearchBounds(
            epoch=GridAxis(7304.5, 7305.5, point_count=2),
            time_of_flight=GridAxis(700.0, 2100.0, step=1400.0),
        )
        explorer = GridSearchExplorer(bounds, revolution_range=(0, 5))
        records = explorer.explore(SyntheticEvaluatorFactory())
        short = [r.revolution_count for r in records if r.time_of_flight == 700.0]
        long = [r.revolution_count for r in records if r.time_of_flight == 2100.0]
        assert_allclose(short, [1, 1])
        assert_allclose(long, [3, 3])
