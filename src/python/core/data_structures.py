"""
Data model for the transfer search campaign.

Structures
----------
GridAxis            -- One discretized search axis (step or point-count mode).
SearchBounds        -- Epoch x time-of-flight search region and its grid.
GridPoint           -- A concrete (epoch, time of flight) pair of the grid.
Candidate           -- Output of one evaluation or of one optimizer run.
ResultRecord        -- Immutable, externally visible unit of output.
ParameterBounds     -- Box bounds on the free shaping parameters.
OptimizationConfig  -- Settings of one population optimization.

Validation happens in ``__post_init__`` and raises
:class:`core.exceptions.InvalidConfiguration`, so a malformed campaign is
rejected before any sweep starts.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from core.constants import INVALID_COST, KEY_DECIMALS
from core.exceptions import InvalidConfiguration


# ---------------------------------------------------------------------------
# Grid definition
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GridAxis:
    """One discretized axis of the search grid.

    Exactly one of ``step`` and ``point_count`` must be given.

    Step mode enumerates ``lower + i * step`` for
    ``i = 0 .. floor((upper - lower) / step)``; both bounds are included when
    the step divides the range, otherwise the fractional remainder is
    truncated. Point-count mode enumerates ``point_count`` evenly spaced
    values including both bounds.

    Attributes
    ----------
    lower, upper : float
        Axis bounds (days), ``lower < upper``.
    step : float or None
        Spacing between consecutive values, > 0.
    point_count : int or None
        Number of values, >= 2.
    """
    lower: float
    upper: float
    step: Optional[float] = None
    point_count: Optional[int] = None

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lower) and math.isfinite(self.upper)):
            raise InvalidConfiguration(
                f"Axis bounds must be finite, got [{self.lower}, {self.upper}]"
            )
        if self.lower >= self.upper:
            raise InvalidConfiguration(
                f"Axis lower bound must be below upper bound, "
                f"got [{self.lower}, {self.upper}]"
            )
        if (self.step is None) == (self.point_count is None):
            raise InvalidConfiguration(
                "Exactly one of 'step' and 'point_count' must be given"
            )
        if self.step is not None and not self.step > 0.0:
            raise InvalidConfiguration(f"Axis step must be positive, got {self.step}")
        if self.point_count is not None and self.point_count < 2:
            raise InvalidConfiguration(
                f"Axis point count must be at least 2, got {self.point_count}"
            )

    @property
    def size(self) -> int:
        """Number of values on the axis."""
        if self.step is not None:
            return int(math.floor((self.upper - self.lower) / self.step)) + 1
        return int(self.point_count)

    def values(self) -> np.ndarray:
        """Return the axis values in ascending order."""
        indices = np.arange(self.size, dtype=np.float64)
        if self.step is not None:
            return self.lower + indices * self.step
        spacing = (self.upper - self.lower) / (self.point_count - 1)
        return self.lower + indices * spacing


@dataclass(frozen=True)
class GridPoint:
    """A concrete (epoch, time of flight) pair drawn from the grid (days)."""
    epoch: float
    time_of_flight: float


@dataclass(frozen=True)
class SearchBounds:
    """Epoch x time-of-flight search region.

    Enumeration order is outer time of flight, inner epoch, which is also the
    order of every result sequence produced from these bounds.
    """
    epoch: GridAxis
    time_of_flight: GridAxis

    @property
    def epoch_min(self) -> float:
        return self.epoch.lower

    @property
    def epoch_max(self) -> float:
        return self.epoch.upper

    @property
    def tof_min(self) -> float:
        return self.time_of_flight.lower

    @property
    def tof_max(self) -> float:
        return self.time_of_flight.upper

    @property
    def size(self) -> int:
        """Total number of grid points."""
        return self.epoch.size * self.time_of_flight.size

    def grid_points(self) -> Iterator[GridPoint]:
        """Yield every grid point, outer loop TOF, inner loop epoch."""
        epochs = self.epoch.values()
        for tof in self.time_of_flight.values():
            for epoch in epochs:
                yield GridPoint(epoch=float(epoch), time_of_flight=float(tof))


# ---------------------------------------------------------------------------
# Evaluation output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Candidate:
    """Output of one cost evaluation or of one optimizer run.

    Attributes
    ----------
    cost : float
        Velocity change (m/s). Non-finite marks the candidate invalid.
    revolution_count : int or None
        Number of revolutions of the shaped trajectory.
    free_parameters : tuple of float
        Free shaping parameters the cost was evaluated with.
    """
    cost: float
    revolution_count: Optional[int]
    free_parameters: Tuple[float, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.cost is not None and math.isfinite(self.cost)


def _grid_key(time_of_flight: float, epoch: float) -> Tuple[float, float]:
    return (round(time_of_flight, KEY_DECIMALS), round(epoch, KEY_DECIMALS))


@dataclass(frozen=True)
class ResultRecord:
    """Externally visible unit of output, one per grid point.

    Records are created once per grid point after the revolution sweep (or
    the optimization) completes and never change afterwards. Invalid points
    carry ``INVALID_COST`` and, for phase-1 points, no revolution count.
    """
    time_of_flight: float
    epoch: float
    best_cost: float
    revolution_count: Optional[int]

    @classmethod
    def from_candidate(cls, point: GridPoint, candidate: Candidate) -> "ResultRecord":
        return cls(
            time_of_flight=point.time_of_flight,
            epoch=point.epoch,
            best_cost=float(candidate.cost),
            revolution_count=candidate.revolution_count,
        )

    @classmethod
    def invalid(
        cls, point: GridPoint, revolution_count: Optional[int] = None
    ) -> "ResultRecord":
        """Record flagged invalid by the sentinel cost."""
        return cls(
            time_of_flight=point.time_of_flight,
            epoch=point.epoch,
            best_cost=INVALID_COST,
            revolution_count=revolution_count,
        )

    @property
    def is_valid(self) -> bool:
        return math.isfinite(self.best_cost)

    @property
    def point(self) -> GridPoint:
        return GridPoint(epoch=self.epoch, time_of_flight=self.time_of_flight)

    @property
    def key(self) -> Tuple[float, float]:
        """Rounded (time of flight, epoch) pair used to join result streams."""
        return _grid_key(self.time_of_flight, self.epoch)

    def as_row(self) -> Tuple[float, float, float, float]:
        """Row in output column order; a missing revolution becomes NaN."""
        revolutions = (
            float(self.revolution_count)
            if self.revolution_count is not None else np.nan
        )
        return (self.time_of_flight, self.epoch, self.best_cost, revolutions)


# ---------------------------------------------------------------------------
# Optimizer settings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParameterBounds:
    """Box bounds on the free shaping parameters."""
    lower: Tuple[float, ...]
    upper: Tuple[float, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, 'lower', tuple(float(v) for v in self.lower))
        object.__setattr__(self, 'upper', tuple(float(v) for v in self.upper))
        if len(self.lower) != len(self.upper):
            raise InvalidConfiguration(
                f"Parameter bounds length mismatch: "
                f"{len(self.lower)} lower vs {len(self.upper)} upper"
            )
        if not self.lower:
            raise InvalidConfiguration("Parameter bounds must not be empty")
        for i, (lo, hi) in enumerate(zip(self.lower, self.upper)):
            if not (math.isfinite(lo) and math.isfinite(hi)) or lo >= hi:
                raise InvalidConfiguration(
                    f"Parameter {i}: lower bound must be below upper bound, "
                    f"got [{lo}, {hi}]"
                )

    @classmethod
    def from_pairs(cls, pairs: Sequence[Sequence[float]]) -> "ParameterBounds":
        """Build from ``[(lower_0, upper_0), (lower_1, upper_1), ...]``."""
        try:
            lower, upper = zip(*[(p[0], p[1]) for p in pairs])
        except (TypeError, IndexError, ValueError) as exc:
            raise InvalidConfiguration(
                f"Parameter bounds must be (lower, upper) pairs, got {pairs!r}"
            ) from exc
        return cls(lower=lower, upper=upper)

    @property
    def dimension(self) -> int:
        return len(self.lower)

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        return (np.asarray(self.lower, dtype=np.float64),
                np.asarray(self.upper, dtype=np.float64))

    def as_pairs(self) -> List[Tuple[float, float]]:
        return list(zip(self.lower, self.upper))


@dataclass(frozen=True)
class OptimizationConfig:
    """Settings of one population optimization.

    Owned by the campaign for the duration of one phase-2 grid point.

    Attributes
    ----------
    population_size : int
        Individuals per generation, >= 2. The optimizer evaluates at least
        five, the smallest differential-evolution population.
    generation_count : int
        Number of generation rounds, >= 1.
    parameter_bounds : ParameterBounds
        Box bounds of the free parameters.
    random_seed : int
        Seed of the optimizer's random generator.
    workers : int
        Worker processes used to evaluate one generation (1 = in-process).
    """
    population_size: int
    generation_count: int
    parameter_bounds: ParameterBounds
    random_seed: int = 0
    workers: int = field(default=1)

    def __post_init__(self) -> None:
        if self.population_size < 2:
            raise InvalidConfiguration(
                f"Population size must be at least 2, got {self.population_size}"
            )
        if self.generation_count < 1:
            raise InvalidConfiguration(
                f"Generation count must be at least 1, got {self.generation_count}"
            )
        if self.workers < 1:
            raise InvalidConfiguration(f"Worker count must be at least 1, got {self.workers}")
        if self.random_seed < 0:
            raise InvalidConfiguration(
                f"Random seed must be non-negative, got {self.random_seed}"
            )
