"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Baseline Grid Search
===============================================================================
Coarse survey of the departure-epoch x time-of-flight plane.

For every grid point the shaped trajectory is evaluated with zero free
parameters for each revolution count of a small range, and the cheapest
revolution count is kept:

    best(point) = min over N in [N_min, N_max] { cost(epoch, tof, N, []) }

Revolution counts are swept in ascending order and the incumbent is only
replaced on a strict improvement, so equal costs keep the lowest revolution
count.

Failures are contained per grid point (bulkhead isolation):
    - a failed revolution count is skipped, the sweep continues;
    - a point where every revolution count failed still produces a record,
      flagged invalid by the sentinel cost, so record index i always maps to
      grid point i.
===============================================================================
"""

import logging
from typing import Iterator, List, Tuple

from core.data_structures import Candidate, GridPoint, ResultRecord, SearchBounds
from core.exceptions import AllRevolutionsFailed, EvaluationFailure, InvalidConfiguration
from core.interfaces import CostEvaluator, EvaluatorFactory, evaluate_cost

logger = logging.getLogger(__name__)


class GridSearchExplorer:
    """
    Exhaustive epoch x time-of-flight sweep with a revolution-count sweep at
    every grid point.

    Attributes:
        bounds:           Search region and discretization.
        revolution_range: Inclusive (min, max) revolution counts to sweep.
        progress_every:   Log an INFO progress line every this many points
                          (0 disables progress logging).
    """

    def __init__(
        self,
        bounds: SearchBounds,
        revolution_range: Tuple[int, int] = (0, 5),
        progress_every: int = 0,
    ) -> None:
        n_min, n_max = (int(v) for v in revolution_range)
        if n_min < 0 or n_max < n_min:
            raise InvalidConfiguration(
                f"Revolution range must be non-empty and non-negative, "
                f"got {tuple(revolution_range)}"
            )
        self.bounds = bounds
        self.revolution_range = (n_min, n_max)
        self.progress_every = progress_every

    @property
    def revolution_counts(self) -> range:
        return range(self.revolution_range[0], self.revolution_range[1] + 1)

    # -------------------------------------------------------------------------
    # Single grid point
    # -------------------------------------------------------------------------

    def best_revolution(self, evaluator: CostEvaluator, point: GridPoint) -> Candidate:
        """
        Sweep the revolution counts at one grid point.

        Args:
            evaluator: Zero-free-parameter cost evaluator.
            point:     Grid point to evaluate.

        Returns:
            Candidate with the minimum cost and the lowest revolution count
            achieving it.

        Raises:
            AllRevolutionsFailed: If no revolution count produced a valid cost.
        """
        best_cost = None
        best_revolutions = None

        for revolutions in self.revolution_counts:
            try:
                cost = evaluate_cost(
                    evaluator, point.epoch, point.time_of_flight, revolutions
                )
            except EvaluationFailure as exc:
                logger.debug(
                    "Skipping N=%d at epoch=%.3f, tof=%.3f: %s",
                    revolutions, point.epoch, point.time_of_flight, exc,
                )
                continue

            # Strict inequality: ties keep the earliest revolution count
            if best_cost is None or cost < best_cost:
                best_cost = cost
                best_revolutions = revolutions

        if best_cost is None:
            raise AllRevolutionsFailed(
                f"All revolution counts {self.revolution_range} failed",
                epoch=point.epoch, time_of_flight=point.time_of_flight,
            )
        return Candidate(cost=best_cost, revolution_count=best_revolutions)

    # -------------------------------------------------------------------------
    # Full sweep
    # -------------------------------------------------------------------------

    def iter_explore(self, evaluator_factory: EvaluatorFactory) -> Iterator[ResultRecord]:
        """Yield one ResultRecord per grid point in enumeration order."""
        evaluator = evaluator_factory(0)
        total = self.bounds.size

        for index, point in enumerate(self.bounds.grid_points()):
            try:
                candidate = self.best_revolution(evaluator, point)
            except AllRevolutionsFailed as exc:
                logger.warning(
                    "Grid point %d/%d (epoch=%.3f, tof=%.3f) invalid: %s",
                    index + 1, total, point.epoch, point.time_of_flight, exc,
                )
                yield ResultRecord.invalid(point)
            else:
                yield ResultRecord.from_candidate(point, candidate)

            if self.progress_every and (index + 1) % self.progress_every == 0:
                logger.info("Grid search progress: %d/%d points", index + 1, total)

    def explore(self, evaluator_factory: EvaluatorFactory) -> List[ResultRecord]:
        """
        Run the full sweep.

        Args:
            evaluator_factory: Called once with 0 free parameters to build the
                               baseline evaluator.

        Returns:
            Ordered list with exactly one ResultRecord per grid point (outer
            time of flight, inner epoch).
        """
        logger.info(
            "Grid search: %d TOF x %d epoch points, revolutions %d..%d",
            self.bounds.time_of_flight.size, self.bounds.epoch.size,
            *self.revolution_range,
        )
        records = list(self.iter_explore(evaluator_factory))
        n_invalid = sum(1 for r in records if not r.is_valid)
        logger.info(
            "Grid search complete: %d records, %d invalid", len(records), n_invalid
        )
        return records
