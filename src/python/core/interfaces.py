"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Collaborator Interfaces
===============================================================================
Boundaries between the search campaign and the astrodynamics it drives.

    EphemerisProvider  -- state_at(epoch) -> Cartesian state (6,)
    CostEvaluator      -- evaluate(epoch, tof, revolutions, free_parameters)
                          -> velocity change (m/s)
    EvaluatorFactory   -- callable(free_parameter_count) -> CostEvaluator

Ownership
---------
The campaign owns its evaluator factories. A factory that needs an
ephemeris provider holds a plain reference to it for as long as the
evaluators it creates are alive; it never owns or mutates the provider.

Evaluators must be pure with respect to their inputs: the grid search relies
on the revolution sweep being order-independent except for its tie-break.
Evaluators used with a multi-process worker pool must also be picklable
(module-level classes or functions, no lambdas).
===============================================================================
"""

import math
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

import numpy as np

from core.exceptions import EvaluationFailure


class EphemerisProvider(ABC):
    """Source of body states used to build transfer boundary conditions."""

    @abstractmethod
    def state_at(self, epoch: float) -> np.ndarray:
        """Cartesian state [r(3), v(3)] of the body at ``epoch`` (days)."""


class CostEvaluator(ABC):
    """Velocity-change cost of one shaped transfer.

    Subclasses implement :meth:`evaluate`. Failure is signalled by raising
    or by returning a non-finite value.
    """

    @abstractmethod
    def evaluate(
        self,
        epoch: float,
        time_of_flight: float,
        revolution_count: int,
        free_parameters: np.ndarray,
    ) -> float:
        """Return the transfer cost for the given design point."""

    def __call__(self, epoch, time_of_flight, revolution_count, free_parameters):
        return self.evaluate(epoch, time_of_flight, revolution_count, free_parameters)


class FunctionCostEvaluator(CostEvaluator):
    """Adapts a plain function ``f(epoch, tof, revolutions, params)``."""

    def __init__(self, function: Callable[..., float], name: Optional[str] = None) -> None:
        self.function = function
        self.name = name or getattr(function, '__name__', 'cost_function')

    def evaluate(self, epoch, time_of_flight, revolution_count, free_parameters):
        return self.function(epoch, time_of_flight, revolution_count, free_parameters)

    def __repr__(self) -> str:
        return f"FunctionCostEvaluator({self.name})"


EvaluatorFactory = Callable[[int], CostEvaluator]


def evaluate_cost(
    evaluator: CostEvaluator,
    epoch: float,
    time_of_flight: float,
    revolution_count: int,
    free_parameters: Optional[Sequence[float]] = None,
) -> float:
    """Call ``evaluator`` and normalise every failure to EvaluationFailure.

    Returns
    -------
    float
        The finite cost.

    Raises
    ------
    EvaluationFailure
        If the evaluator raised, or returned None, a non-numeric value or a
        non-finite value.
    """
    params = np.asarray(
        free_parameters if free_parameters is not None else (), dtype=np.float64
    )
    try:
        cost = evaluator.evaluate(epoch, time_of_flight, revolution_count, params)
    except EvaluationFailure:
        raise
    except Exception as exc:
        raise EvaluationFailure(
            f"Evaluator raised {type(exc).__name__}: {exc}",
            epoch=epoch, time_of_flight=time_of_flight,
            revolution_count=revolution_count, free_parameters=params,
        ) from exc

    if cost is None:
        raise EvaluationFailure(
            "Evaluator returned no cost",
            epoch=epoch, time_of_flight=time_of_flight,
            revolution_count=revolution_count, free_parameters=params,
        )
    try:
        cost = float(cost)
    except (TypeError, ValueError) as exc:
        raise EvaluationFailure(
            f"Evaluator returned a non-scalar cost {cost!r}",
            epoch=epoch, time_of_flight=time_of_flight,
            revolution_count=revolution_count, free_parameters=params,
        ) from exc
    if not math.isfinite(cost):
        raise EvaluationFailure(
            f"Evaluator returned non-finite cost {cost}",
            epoch=epoch, time_of_flight=time_of_flight,
            revolution_count=revolution_count, free_parameters=params,
        )
    return cost
