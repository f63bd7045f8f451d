"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Population Optimizer Test Suite
===============================================================================
Tests for the transfer objective, the generation barrier (one batch per
generation, error surfacing with the generation index, worker pool), and
the PopulationOptimizer contract: champion no worse than any sampled
individual, reproducibility under a fixed seed, failure propagation, and
identical results for in-process and multi-process evaluation.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from core.data_structures import GridPoint, OptimizationConfig, ParameterBounds
from core.exceptions import EvaluationFailure, OptimizationFailure
from core.interfaces import CostEvaluator
from optimization.population import (
    MIN_POPULATION_SIZE,
    GenerationBarrier,
    PopulationOptimizer,
    TransferObjective,
)
from simulation.synthetic import SyntheticEvaluatorFactory

POINT = GridPoint(epoch=7304.5, time_of_flight=700.0)
UNIT_BOX = ParameterBounds.from_pairs([(0.0, 1.0), (0.0, 1.0)])


class RecordingEvaluator(CostEvaluator):
    """Negative parameter sum; remembers every cost it returned."""

    def __init__(self):
        self.costs = []

    def evaluate(self, epoch, time_of_flight, revolution_count, free_parameters):
        cost = -float(np.sum(free_parameters))
        self.costs.append(cost)
        return cost


class FailingEvaluator(CostEvaluator):
    """Succeeds for the first ``good_calls`` evaluations, then raises."""

    def __init__(self, good_calls):
        self.good_calls = good_calls
        self.calls = 0

    def evaluate(self, epoch, time_of_flight, revolution_count, free_parameters):
        self.calls += 1
        if self.calls > self.good_calls:
            raise RuntimeError("shape infeasible")
        return float(np.sum(free_parameters ** 2))


def make_config(population_size=5, generation_count=1, seed=0, workers=1,
                bounds=UNIT_BOX):
    return OptimizationConfig(
        population_size=population_size,
        generation_count=generation_count,
        parameter_bounds=bounds,
        random_seed=seed,
        workers=workers,
    )


# =============================================================================
# Objective
# =============================================================================

class TestTransferObjective:

    def test_fixed_coordinates(self):
        calls = []

        class Spy(CostEvaluator):
            def evaluate(self, epoch, time_of_flight, revolution_count, free_parameters):
                calls.append((epoch, time_of_flight, revolution_count, tuple(free_parameters)))
                return 3.0

        objective = TransferObjective(Spy(), POINT, 2)
        assert objective(np.array([0.5, 0.25])) == 3.0
        assert calls == [(7304.5, 700.0, 2, (0.5, 0.25))]

    def test_non_finite_cost_raises(self):
        class NanEvaluator(CostEvaluator):
            def evaluate(self, epoch, time_of_flight, revolution_count, free_parameters):
                return float('nan')

        with pytest.raises(EvaluationFailure):
            TransferObjective(NanEvaluator(), POINT, 1)(np.zeros(2))


# =============================================================================
# Generation barrier
# =============================================================================

class TestGenerationBarrier:

    def test_batches_advance_generation(self):
        rows = np.arange(6, dtype=float).reshape(3, 2)
        with GenerationBarrier(1) as barrier:
            assert barrier.generation == -1
            costs = barrier(sum, rows)
            assert barrier.generation == 0
            barrier(sum, rows)
            assert barrier.generation == 1
        assert_allclose(costs, [1.0, 5.0, 9.0])
        assert barrier.best_cost == 1.0

    def test_failure_carries_generation_index(self):
        def cost(x):
            if x[0] > 10.0:
                raise EvaluationFailure("no transfer")
            return float(x[0])

        with GenerationBarrier(1) as barrier:
            barrier(cost, [np.array([1.0])])
            with pytest.raises(OptimizationFailure) as info:
                barrier(cost, [np.array([2.0]), np.array([20.0])])
        assert info.value.generation == 0
        assert isinstance(info.value.__cause__, EvaluationFailure)

    def test_worker_pool_keeps_row_order(self):
        rows = np.arange(20, dtype=float).reshape(10, 2)
        with GenerationBarrier(2) as barrier:
            costs = barrier(sum, rows)
        assert_allclose(costs, rows.sum(axis=1))


# =============================================================================
# Optimizer
# =============================================================================

class TestPopulationOptimizer:

    def test_champion_no_worse_than_any_sampled_individual(self):
        """Population 4, one generation, cost = -sum(params) on the unit box."""
        evaluator = RecordingEvaluator()
        optimizer = PopulationOptimizer(make_config(population_size=4, generation_count=1))
        champion = optimizer.optimize(evaluator, POINT, 1)

        assert len(evaluator.costs) >= optimizer.population_size
        assert champion.cost <= min(evaluator.costs)
        assert champion.revolution_count == 1
        assert len(champion.free_parameters) == 2
        assert all(0.0 <= v <= 1.0 for v in champion.free_parameters)
        assert_allclose(champion.cost, -sum(champion.free_parameters))

    def test_population_size_floor(self):
        assert PopulationOptimizer(make_config(population_size=2)).population_size \
            == MIN_POPULATION_SIZE
        assert PopulationOptimizer(make_config(population_size=12)).population_size == 12

    def test_initial_population_inside_bounds(self):
        bounds = ParameterBounds.from_pairs([(-600.0, 800.0), (0.0, 1500.0)])
        optimizer = PopulationOptimizer(make_config(population_size=64, bounds=bounds))
        population = optimizer.initial_population(bounds, np.random.default_rng(1))
        assert population.shape == (64, 2)
        assert np.all(population >= [-600.0, 0.0])
        assert np.all(population <= [800.0, 1500.0])

    def test_more_generations_do_not_hurt(self):
        short = PopulationOptimizer(make_config(population_size=16, generation_count=1, seed=5))
        long = PopulationOptimizer(make_config(population_size=16, generation_count=20, seed=5))
        first = short.optimize(RecordingEvaluator(), POINT, 1)
        second = long.optimize(RecordingEvaluator(), POINT, 1)
        assert second.cost <= first.cost
        assert second.cost < -1.8

    def test_same_seed_same_champion(self):
        config = make_config(population_size=12, generation_count=4, seed=123)
        first = PopulationOptimizer(config).optimize(RecordingEvaluator(), POINT, 1)
        second = PopulationOptimizer(config).optimize(RecordingEvaluator(), POINT, 1)
        assert first == second

    def test_shared_generator_changes_later_calls(self):
        config = make_config(population_size=12, generation_count=2, seed=123)
        optimizer = PopulationOptimizer(config)
        rng = np.random.default_rng(123)
        first = optimizer.optimize(RecordingEvaluator(), POINT, 1, rng=rng)
        second = optimizer.optimize(RecordingEvaluator(), POINT, 1, rng=rng)
        fresh = optimizer.optimize(RecordingEvaluator(), POINT, 1)
        assert first == fresh
        assert second != first

    def test_explicit_bounds_override_config(self):
        bounds = ParameterBounds.from_pairs([(10.0, 11.0)])
        champion = PopulationOptimizer(make_config()).optimize(
            RecordingEvaluator(), POINT, 0, bounds=bounds)
        assert len(champion.free_parameters) == 1
        assert 10.0 <= champion.free_parameters[0] <= 11.0

    def test_strategy_options(self):
        optimizer = PopulationOptimizer(
            make_config(population_size=8, generation_count=3),
            strategy='rand1bin', mutation=0.6, recombination=0.9,
        )
        champion = optimizer.optimize(RecordingEvaluator(), POINT, 1)
        assert all(0.0 <= v <= 1.0 for v in champion.free_parameters)

    def test_failure_in_initial_population(self):
        optimizer = PopulationOptimizer(make_config())
        with pytest.raises(OptimizationFailure) as info:
            optimizer.optimize(FailingEvaluator(good_calls=2), POINT, 1)
        assert info.value.generation == -1

    def test_failure_in_generation(self):
        """Five initial evaluations, five in generation 0, failure in generation 1."""
        optimizer = PopulationOptimizer(make_config(population_size=5, generation_count=3))
        with pytest.raises(OptimizationFailure) as info:
            optimizer.optimize(FailingEvaluator(good_calls=12), POINT, 1)
        assert info.value.generation == 1
        assert isinstance(info.value.__cause__, EvaluationFailure)

    def test_worker_pool_matches_in_process(self):
        """Batches are evaluated in row order whatever the worker count."""
        factory = SyntheticEvaluatorFactory()
        bounds = ParameterBounds.from_pairs([(-600.0, 800.0), (0.0, 1500.0)])
        serial = PopulationOptimizer(
            make_config(population_size=8, generation_count=2, seed=11, bounds=bounds))
        parallel = PopulationOptimizer(
            make_config(population_size=8, generation_count=2, seed=11, bounds=bounds,
                        workers=2))
        first = serial.optimize(factory(2), POINT, 1)
        second = parallel.optimize(factory(2), POINT, 1)
        assert first == second
