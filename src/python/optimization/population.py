"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Population-Based Refinement
===============================================================================
Stochastic search over the free shaping parameters of one transfer whose
epoch, time of flight and revolution count are fixed.

Algorithm
---------
Differential evolution (``scipy.optimize.differential_evolution``) on the
box-bounded free-parameter vector:

    1. Sample ``population_size`` individuals uniformly inside the bounds
       from the optimizer's random generator (the initial population).
    2. Run ``generation_count`` generations with deferred updating, so every
       generation is evaluated as one batch before selection.
    3. Return the champion: the cheapest individual evaluated in any
       generation. Selection is greedy, so the best member of the final
       population is the best individual ever evaluated.

Convergence tolerances are zero and polishing is off: the generation count
is the only stopping rule besides a population whose costs are all equal.

Generation barrier
------------------
Each batch goes through a :class:`GenerationBarrier`, the map-like callable
handed to SciPy as ``workers``. A batch returns only when every individual
has been evaluated, in-process or on a ``multiprocessing.Pool``; an error
in any individual is surfaced there as OptimizationFailure carrying the
generation index, and the call to ``optimize()`` is aborted.

Reproducibility
---------------
All randomness comes from one ``numpy.random.Generator`` seeded with
``OptimizationConfig.random_seed`` (or supplied by the caller). Batches come
back in row order whatever the worker count, so identical inputs give
bit-identical champions.
===============================================================================
"""

import logging
from multiprocessing import Pool
from typing import Callable, Iterable, List, Optional

import numpy as np
from scipy.optimize import differential_evolution

from core.data_structures import Candidate, GridPoint, OptimizationConfig, ParameterBounds
from core.exceptions import OptimizationFailure
from core.interfaces import CostEvaluator, evaluate_cost

logger = logging.getLogger(__name__)

# Smallest population differential evolution accepts
MIN_POPULATION_SIZE = 5

DEFAULT_STRATEGY = 'best1bin'
DEFAULT_MUTATION = (0.5, 1.0)
DEFAULT_RECOMBINATION = 0.7


class TransferObjective:
    """Cost of one transfer as a function of its free parameters.

    Module-level so that it pickles for worker processes.
    """

    def __init__(self, evaluator: CostEvaluator, point: GridPoint, revolution_count: int):
        self.evaluator = evaluator
        self.epoch = point.epoch
        self.time_of_flight = point.time_of_flight
        self.revolution_count = revolution_count

    def __call__(self, free_parameters: np.ndarray) -> float:
        return evaluate_cost(
            self.evaluator, self.epoch, self.time_of_flight,
            self.revolution_count, free_parameters,
        )


class GenerationBarrier:
    """
    Map-like batch evaluator with one call per generation.

    The first batch is the initial population (generation -1); batch k+1 is
    generation k. Use as a context manager so worker processes are released
    when the optimization finishes.
    """

    def __init__(self, workers: int = 1):
        self.workers = workers
        self.generation = -1
        self.best_cost = np.inf
        self._pool = None

    def __enter__(self) -> "GenerationBarrier":
        if self.workers > 1:
            logger.debug("Starting evaluation pool with %d workers", self.workers)
            self._pool = Pool(processes=self.workers)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._pool is None:
            return
        if exc_type is not None:
            self._pool.terminate()
        else:
            self._pool.close()
        self._pool.join()
        self._pool = None

    def __call__(self, func: Callable[[np.ndarray], float], individuals: Iterable) -> List[float]:
        """Evaluate one batch and block until every cost is back."""
        individuals = list(individuals)
        try:
            if self._pool is None:
                costs = [func(x) for x in individuals]
            else:
                costs = self._pool.map(func, individuals)
        except Exception as exc:
            raise OptimizationFailure(
                f"Generation {self.generation} failed: {exc}",
                generation=self.generation,
            ) from exc

        if costs:
            self.best_cost = min(self.best_cost, min(costs))
        logger.debug("Generation %d: %d individuals, best cost so far %.6f",
                     self.generation, len(costs), self.best_cost)
        self.generation += 1
        return costs


class PopulationOptimizer:
    """
    Population-based optimizer for the free shaping parameters.

    Attributes:
        config:        Population size, generation count, bounds, seed, workers.
        strategy:      Differential evolution strategy name.
        mutation:      Differential weight, or (min, max) for dithering.
        recombination: Crossover probability.
    """

    def __init__(
        self,
        config: OptimizationConfig,
        strategy: str = DEFAULT_STRATEGY,
        mutation=DEFAULT_MUTATION,
        recombination: float = DEFAULT_RECOMBINATION,
    ) -> None:
        self.config = config
        self.strategy = strategy
        self.mutation = mutation
        self.recombination = recombination

    @property
    def population_size(self) -> int:
        """Individuals per generation actually evaluated."""
        return max(self.config.population_size, MIN_POPULATION_SIZE)

    def initial_population(self, bounds: ParameterBounds, rng: np.random.Generator) -> np.ndarray:
        lower, upper = bounds.as_arrays()
        return lower + rng.random((self.population_size, bounds.dimension)) * (upper - lower)

    def optimize(
        self,
        evaluator: CostEvaluator,
        point: GridPoint,
        revolution_count: int,
        bounds: Optional[ParameterBounds] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> Candidate:
        """
        Optimize the free parameters at one grid point.

        Args:
            evaluator:        Cost evaluator taking the free parameters.
            point:            Fixed epoch and time of flight.
            revolution_count: Fixed revolution count.
            bounds:           Parameter bounds; defaults to the config's.
            rng:              Random generator to draw from instead of a fresh
                              one seeded with ``config.random_seed``. Sharing
                              one generator across calls makes each call
                              depend on the calls before it.

        Returns:
            The champion Candidate over all generations.

        Raises:
            OptimizationFailure: If any generation raised.
        """
        bounds = bounds or self.config.parameter_bounds
        if rng is None:
            rng = np.random.default_rng(self.config.random_seed)

        objective = TransferObjective(evaluator, point, revolution_count)
        population = self.initial_population(bounds, rng)

        with GenerationBarrier(self.config.workers) as barrier:
            result = differential_evolution(
                objective,
                bounds=bounds.as_pairs(),
                strategy=self.strategy,
                maxiter=self.config.generation_count,
                tol=0.0,
                atol=0.0,
                mutation=self.mutation,
                recombination=self.recombination,
                seed=rng,
                polish=False,
                init=population,
                updating='deferred',
                workers=barrier,
            )

        logger.debug(
            "Optimized epoch=%.3f tof=%.3f N=%d: cost %.6f after %d generations",
            point.epoch, point.time_of_flight, revolution_count,
            result.fun, result.nit,
        )
        return Candidate(
            cost=float(result.fun),
            revolution_count=revolution_count,
            free_parameters=tuple(float(v) for v in result.x),
        )
