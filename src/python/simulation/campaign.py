"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Two-Phase Campaign
===============================================================================
Drives the search from a coarse survey to refined candidates.

Phase 1 -- baseline
    Grid search over the full epoch x time-of-flight space with zero free
    shaping parameters and a revolution-count sweep at every point.
    Produces ``baseline``.

Phase 2 -- refinement
    Narrower grid, fixed revolution count. At every point:
      a. the free shaping parameters are optimized by the population
         optimizer                                    -> ``high_order``
      b. the same transfer is re-evaluated with the degenerate (all-zero)
         parameter vector for comparison               -> ``low_order``
    Record i of ``high_order`` and record i of ``low_order`` always describe
    the same (epoch, time of flight) pair.

Each phase goes IDLE -> RUNNING -> COMPLETE (or FAILED on an unexpected
error) and phase 2 never starts before phase 1 is COMPLETE. Evaluation and
optimization failures are isolated to their grid point: the point gets
invalid records, the failure is logged and the sweep continues. Only an
invalid configuration stops a campaign, before it starts.

Configuration is read from YAML (``config/campaign_config.yaml``) into the
validated dataclasses below.
===============================================================================
"""

import dataclasses
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
import yaml

from core.constants import (
    BASELINE_EPOCH_BOUNDS,
    BASELINE_EPOCH_POINTS,
    BASELINE_FILENAME,
    BASELINE_REVOLUTION_RANGE,
    BASELINE_TOF_BOUNDS,
    BASELINE_TOF_STEP,
    DEFAULT_SEED_POLICY,
    GENERATION_COUNT,
    HIGH_ORDER_FILENAME,
    LOW_ORDER_FILENAME,
    OUTPUT_DELIMITER,
    OUTPUT_DIR,
    OUTPUT_PRECISION,
    POPULATION_SIZE,
    RANDOM_SEED,
    REFINEMENT_EPOCH_BOUNDS,
    REFINEMENT_EPOCH_STEP,
    REFINEMENT_PARAMETER_BOUNDS,
    REFINEMENT_REVOLUTION_COUNT,
    REFINEMENT_TOF_BOUNDS,
    REFINEMENT_TOF_STEP,
    SEED_POLICIES,
)
from core.data_structures import (
    GridAxis,
    GridPoint,
    OptimizationConfig,
    ParameterBounds,
    ResultRecord,
    SearchBounds,
)
from core.exceptions import EvaluationFailure, InvalidConfiguration, OptimizationFailure
from core.interfaces import EvaluatorFactory, evaluate_cost
from guidance.grid_search import GridSearchExplorer
from optimization.population import PopulationOptimizer
from simulation.result_sink import records_to_frame

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class BaselineConfig:
    """Phase-1 grid and revolution sweep."""
    bounds: SearchBounds
    revolution_range: Tuple[int, int] = BASELINE_REVOLUTION_RANGE

    def __post_init__(self) -> None:
        n_min, n_max = self.revolution_range
        if n_min < 0 or n_max < n_min:
            raise InvalidConfiguration(
                f"Revolution range must be non-empty and non-negative, "
                f"got {tuple(self.revolution_range)}"
            )


@dataclass(frozen=True)
class RefinementConfig:
    """Phase-2 grid and optimizer settings.

    Attributes
    ----------
    bounds : SearchBounds
        Refinement grid.
    revolution_count : int
        Fixed revolution count of every refined transfer.
    parameter_bounds : ParameterBounds
        Bounds of the free shaping parameters.
    population_size, generation_count : int
        Optimizer budget per grid point.
    random_seed : int
        Seed of the optimizer random state.
    seed_policy : str
        ``"per_campaign"`` seeds one generator for the whole phase, so a
        point's result depends on every point before it. ``"per_point"``
        seeds each point with ``random_seed + point_index`` so every point
        is reproducible on its own.
    workers : int
        Worker processes evaluating one generation.
    low_order_parameters : tuple of float or None
        Parameter vector of the low-order comparison; zeros when None.
    """
    bounds: SearchBounds
    revolution_count: int = REFINEMENT_REVOLUTION_COUNT
    parameter_bounds: ParameterBounds = field(
        default_factory=lambda: ParameterBounds.from_pairs(REFINEMENT_PARAMETER_BOUNDS)
    )
    population_size: int = POPULATION_SIZE
    generation_count: int = GENERATION_COUNT
    random_seed: int = RANDOM_SEED
    seed_policy: str = DEFAULT_SEED_POLICY
    workers: int = 1
    low_order_parameters: Optional[Tuple[float, ...]] = None

    def __post_init__(self) -> None:
        if self.revolution_count < 0:
            raise InvalidConfiguration(
                f"Revolution count must be non-negative, got {self.revolution_count}"
            )
        if self.seed_policy not in SEED_POLICIES:
            raise InvalidConfiguration(
                f"Unknown seed policy '{self.seed_policy}'. Valid: {list(SEED_POLICIES)}"
            )
        if (self.low_order_parameters is not None
                and len(self.low_order_parameters) != self.parameter_bounds.dimension):
            raise InvalidConfiguration(
                f"Low-order parameter vector has {len(self.low_order_parameters)} "
                f"entries, expected {self.parameter_bounds.dimension}"
            )
        # Validates population size, generation count, seed and workers
        self.optimization_config(0)

    @property
    def free_parameter_count(self) -> int:
        return self.parameter_bounds.dimension

    def low_order_vector(self) -> np.ndarray:
        if self.low_order_parameters is None:
            return np.zeros(self.free_parameter_count)
        return np.asarray(self.low_order_parameters, dtype=np.float64)

    def optimization_config(self, point_index: int) -> OptimizationConfig:
        """Optimizer settings owned by one grid point."""
        seed = self.random_seed
        if self.seed_policy == "per_point":
            seed += point_index
        return OptimizationConfig(
            population_size=self.population_size,
            generation_count=self.generation_count,
            parameter_bounds=self.parameter_bounds,
            random_seed=seed,
            workers=self.workers,
        )


@dataclass(frozen=True)
class OutputConfig:
    """Where and how result files are written."""
    directory: str = OUTPUT_DIR
    delimiter: str = OUTPUT_DELIMITER
    precision: int = OUTPUT_PRECISION
    plots: bool = True
    baseline_file: str = BASELINE_FILENAME
    low_order_file: str = LOW_ORDER_FILENAME
    high_order_file: str = HIGH_ORDER_FILENAME

    def __post_init__(self) -> None:
        if not self.delimiter:
            raise InvalidConfiguration("Output delimiter must not be empty")
        if self.precision < 1:
            raise InvalidConfiguration(
                f"Output precision must be at least 1, got {self.precision}"
            )


def _default_baseline() -> BaselineConfig:
    return BaselineConfig(
        bounds=SearchBounds(
            epoch=GridAxis(*BASELINE_EPOCH_BOUNDS, point_count=BASELINE_EPOCH_POINTS),
            time_of_flight=GridAxis(*BASELINE_TOF_BOUNDS, step=BASELINE_TOF_STEP),
        ),
    )


def _default_refinement() -> RefinementConfig:
    return RefinementConfig(
        bounds=SearchBounds(
            epoch=GridAxis(*REFINEMENT_EPOCH_BOUNDS, step=REFINEMENT_EPOCH_STEP),
            time_of_flight=GridAxis(*REFINEMENT_TOF_BOUNDS, step=REFINEMENT_TOF_STEP),
        ),
    )


def _parse_axis(section: Dict[str, Any]) -> GridAxis:
    """Build a GridAxis from ``{bounds: [lo, hi], step: s}`` or ``points: n``."""
    lower, upper = section['bounds']
    step = section.get('step')
    points = section.get('points')
    return GridAxis(
        lower=float(lower),
        upper=float(upper),
        step=float(step) if step is not None else None,
        point_count=int(points) if points is not None else None,
    )


def _parse_bounds(section: Dict[str, Any], default: SearchBounds) -> SearchBounds:
    """Grid of a phase section; each axis left out keeps its default."""
    epoch = default.epoch
    time_of_flight = default.time_of_flight
    if 'epoch' in section:
        epoch = _parse_axis(section['epoch'])
    if 'time_of_flight' in section:
        time_of_flight = _parse_axis(section['time_of_flight'])
    return SearchBounds(epoch=epoch, time_of_flight=time_of_flight)


@dataclass(frozen=True)
class CampaignConfig:
    """Complete campaign configuration."""
    baseline: BaselineConfig = field(default_factory=_default_baseline)
    refinement: RefinementConfig = field(default_factory=_default_refinement)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> "CampaignConfig":
        """
        Build and validate a configuration from a parsed YAML mapping.

        Missing sections and keys fall back to the nominal Earth-Mars
        campaign.

        Raises:
            InvalidConfiguration: On any malformed or inconsistent value.
        """
        config = config or {}
        if not isinstance(config, dict):
            raise InvalidConfiguration(
                f"Campaign configuration must be a mapping, got {type(config).__name__}"
            )
        try:
            baseline = _default_baseline()
            section = config.get('baseline')
            if section:
                bounds = _parse_bounds(section, baseline.bounds)
                revolutions = tuple(int(n) for n in section.get(
                    'revolutions', baseline.revolution_range))
                baseline = BaselineConfig(bounds=bounds, revolution_range=revolutions)

            refinement = _default_refinement()
            section = config.get('refinement')
            if section:
                overrides: Dict[str, Any] = {}
                if 'epoch' in section or 'time_of_flight' in section:
                    overrides['bounds'] = _parse_bounds(section, refinement.bounds)
                if 'revolutions' in section:
                    overrides['revolution_count'] = int(section['revolutions'])
                if 'parameter_bounds' in section:
                    overrides['parameter_bounds'] = ParameterBounds.from_pairs(
                        section['parameter_bounds'])
                for key in ('population_size', 'generation_count', 'random_seed', 'workers'):
                    if key in section:
                        overrides[key] = int(section[key])
                if 'seed_policy' in section:
                    overrides['seed_policy'] = str(section['seed_policy'])
                if section.get('low_order_parameters') is not None:
                    overrides['low_order_parameters'] = tuple(
                        float(v) for v in section['low_order_parameters'])
                refinement = dataclasses.replace(refinement, **overrides)

            output = OutputConfig()
            section = config.get('output')
            if section:
                output = dataclasses.replace(output, **section)
        except InvalidConfiguration:
            raise
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidConfiguration(f"Malformed campaign configuration: {exc}") from exc

        return cls(baseline=baseline, refinement=refinement, output=output)

    def quick(self) -> "CampaignConfig":
        """Reduced-fidelity copy for smoke runs: coarse grids, small population."""
        baseline = BaselineConfig(
            bounds=SearchBounds(
                epoch=GridAxis(self.baseline.bounds.epoch_min,
                               self.baseline.bounds.epoch_max, point_count=11),
                time_of_flight=GridAxis(self.baseline.bounds.tof_min,
                                        self.baseline.bounds.tof_max, point_count=6),
            ),
            revolution_range=self.baseline.revolution_range,
        )
        refinement = dataclasses.replace(
            self.refinement,
            bounds=SearchBounds(
                epoch=GridAxis(self.refinement.bounds.epoch_min,
                               self.refinement.bounds.epoch_max, point_count=2),
                time_of_flight=GridAxis(self.refinement.bounds.tof_min,
                                        self.refinement.bounds.tof_max, point_count=3),
            ),
            population_size=min(self.refinement.population_size, 32),
            generation_count=min(self.refinement.generation_count, 5),
        )
        return CampaignConfig(baseline=baseline, refinement=refinement, output=self.output)


def load_config(config_path: Union[str, Path]) -> CampaignConfig:
    """
    Load a campaign configuration from a YAML file.

    Args:
        config_path: Path to the YAML file.

    Returns:
        Validated CampaignConfig.
    """
    logger.info(f"Loading configuration from: {config_path}")
    with open(config_path, 'r') as f:
        raw = yaml.safe_load(f)
    return CampaignConfig.from_dict(raw)


# =============================================================================
# RESULTS
# =============================================================================

class PhaseState(Enum):
    """Lifecycle of one campaign phase."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class CampaignResults:
    """Read-only view of the three result streams of a finished campaign.

    Attributes
    ----------
    baseline : tuple of ResultRecord
        Phase-1 records, one per baseline grid point.
    low_order, high_order : tuple of ResultRecord
        Phase-2 records, aligned index by index.
    high_order_parameters : tuple
        Champion free-parameter vector per phase-2 point (None if invalid).
    """
    baseline: Tuple[ResultRecord, ...]
    low_order: Tuple[ResultRecord, ...]
    high_order: Tuple[ResultRecord, ...]
    high_order_parameters: Tuple[Optional[Tuple[float, ...]], ...] = ()

    def best_baseline(self) -> Optional[ResultRecord]:
        """Cheapest valid baseline record, earliest on ties."""
        valid = [r for r in self.baseline if r.is_valid]
        return min(valid, key=lambda r: r.best_cost) if valid else None

    def best_high_order(self) -> Optional[ResultRecord]:
        """Cheapest valid high-order record, earliest on ties."""
        valid = [r for r in self.high_order if r.is_valid]
        return min(valid, key=lambda r: r.best_cost) if valid else None

    def comparison(self) -> pd.DataFrame:
        """
        Align the phase-2 streams with each other and with phase 1.

        Rows follow the phase-2 grid order. ``baseline_cost`` is filled where
        the phase-1 grid contains the same (time of flight, epoch) key and NaN
        elsewhere; invalid costs are reported as NaN.

        Returns:
            DataFrame with columns time_of_flight_days, epoch_days,
            low_order_cost, high_order_cost, improvement, baseline_cost,
            baseline_revolution_count.
        """
        high = records_to_frame(self.high_order)
        low = records_to_frame(self.low_order)

        frame = pd.DataFrame({
            'time_of_flight_days': high['time_of_flight_days'],
            'epoch_days': high['epoch_days'],
            'low_order_cost': low['best_cost'].replace(np.inf, np.nan),
            'high_order_cost': high['best_cost'].replace(np.inf, np.nan),
        })
        frame['improvement'] = frame['low_order_cost'] - frame['high_order_cost']

        baseline_by_key = {r.key: r for r in self.baseline}
        matches = [baseline_by_key.get(r.key) for r in self.high_order]
        frame['baseline_cost'] = [
            m.best_cost if m is not None and m.is_valid else np.nan for m in matches
        ]
        frame['baseline_revolution_count'] = [
            float(m.revolution_count)
            if m is not None and m.revolution_count is not None else np.nan
            for m in matches
        ]
        return frame

    def summary(self) -> Dict[str, Any]:
        """Counts and best costs of the three streams."""
        best_base = self.best_baseline()
        best_high = self.best_high_order()
        return {
            'baseline_records': len(self.baseline),
            'baseline_invalid': sum(1 for r in self.baseline if not r.is_valid),
            'refinement_records': len(self.high_order),
            'high_order_invalid': sum(1 for r in self.high_order if not r.is_valid),
            'low_order_invalid': sum(1 for r in self.low_order if not r.is_valid),
            'best_baseline_cost': best_base.best_cost if best_base else np.nan,
            'best_high_order_cost': best_high.best_cost if best_high else np.nan,
        }


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class CampaignOrchestrator:
    """
    Runs the baseline grid search, then the refinement sweep.

    The orchestrator owns the evaluator factories and the three result
    sequences. Sequences are appended to from this object only and exposed
    as tuples once the campaign is finished.

    Args:
        config:             Validated campaign configuration.
        baseline_factory:   Builds the phase-1 evaluator (called with 0).
        refinement_factory: Builds the phase-2 evaluator of each grid point
                            (called with the free-parameter count).
                            Defaults to ``baseline_factory``.
        optimizer_cls:      Optimizer class, instantiated once per point with
                            that point's OptimizationConfig.
        optimizer_options:  Extra keyword arguments of the optimizer, e.g.
                            ``strategy`` or ``mutation``.
    """

    BASELINE = 'baseline'
    REFINEMENT = 'refinement'

    def __init__(
        self,
        config: CampaignConfig,
        baseline_factory: EvaluatorFactory,
        refinement_factory: Optional[EvaluatorFactory] = None,
        optimizer_cls: Callable[..., PopulationOptimizer] = PopulationOptimizer,
        optimizer_options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.config = config
        self.baseline_factory = baseline_factory
        self.refinement_factory = refinement_factory or baseline_factory
        self.optimizer_cls = optimizer_cls
        self.optimizer_options = dict(optimizer_options or {})

        self.phase_states: Dict[str, PhaseState] = {
            self.BASELINE: PhaseState.IDLE,
            self.REFINEMENT: PhaseState.IDLE,
        }
        self._baseline: List[ResultRecord] = []
        self._low_order: List[ResultRecord] = []
        self._high_order: List[ResultRecord] = []
        self._high_order_parameters: List[Optional[Tuple[float, ...]]] = []

    # -------------------------------------------------------------------------
    # Phase bookkeeping
    # -------------------------------------------------------------------------

    def _run_phase(self, name: str, body: Callable[[], None]) -> None:
        if self.phase_states[name] is not PhaseState.IDLE:
            raise RuntimeError(
                f"Phase '{name}' already {self.phase_states[name].value}"
            )
        self.phase_states[name] = PhaseState.RUNNING
        start = time.time()
        logger.info("=" * 60)
        logger.info(f"PHASE {name.upper()} STARTED")
        logger.info("=" * 60)
        try:
            body()
        except Exception:
            self.phase_states[name] = PhaseState.FAILED
            logger.error(f"Phase '{name}' failed", exc_info=True)
            raise
        self.phase_states[name] = PhaseState.COMPLETE
        logger.info(f"Phase '{name}' complete in {time.time() - start:.1f} s")

    # -------------------------------------------------------------------------
    # Phase 1
    # -------------------------------------------------------------------------

    def run_baseline(self) -> List[ResultRecord]:
        """Run the phase-1 grid search and store its records."""
        baseline = self.config.baseline
        explorer = GridSearchExplorer(
            baseline.bounds,
            revolution_range=baseline.revolution_range,
            progress_every=max(1, baseline.bounds.size // 10),
        )

        def body() -> None:
            for record in explorer.iter_explore(self.baseline_factory):
                self._baseline.append(record)

        self._run_phase(self.BASELINE, body)
        return list(self._baseline)

    # -------------------------------------------------------------------------
    # Phase 2
    # -------------------------------------------------------------------------

    def _refine_point(
        self,
        index: int,
        point: GridPoint,
        rng: Optional[np.random.Generator],
    ) -> None:
        refinement = self.config.refinement
        revolutions = refinement.revolution_count
        optimizer = self.optimizer_cls(
            refinement.optimization_config(index), **self.optimizer_options
        )
        evaluator = self.refinement_factory(refinement.free_parameter_count)

        try:
            champion = optimizer.optimize(evaluator, point, revolutions, rng=rng)
        except (OptimizationFailure, EvaluationFailure) as exc:
            logger.error(
                f"Refinement point {index} (epoch={point.epoch:.3f}, "
                f"tof={point.time_of_flight:.3f}) skipped: {exc}"
            )
            self._high_order.append(ResultRecord.invalid(point))
            self._high_order_parameters.append(None)
            self._low_order.append(ResultRecord.invalid(point))
            return

        self._high_order.append(ResultRecord.from_candidate(point, champion))
        self._high_order_parameters.append(champion.free_parameters)

        try:
            low_cost = evaluate_cost(
                evaluator, point.epoch, point.time_of_flight, revolutions,
                refinement.low_order_vector(),
            )
        except EvaluationFailure as exc:
            logger.error(
                f"Low-order evaluation at point {index} (epoch={point.epoch:.3f}, "
                f"tof={point.time_of_flight:.3f}) failed: {exc}"
            )
            self._low_order.append(ResultRecord.invalid(point))
            return
        self._low_order.append(ResultRecord(
            time_of_flight=point.time_of_flight,
            epoch=point.epoch,
            best_cost=low_cost,
            revolution_count=revolutions,
        ))

    def run_refinement(self) -> Tuple[List[ResultRecord], List[ResultRecord]]:
        """Run the phase-2 sweep; requires a completed phase 1.

        Returns:
            (high_order, low_order) record lists, aligned index by index.
        """
        if self.phase_states[self.BASELINE] is not PhaseState.COMPLETE:
            raise RuntimeError("Refinement requires a completed baseline phase")

        refinement = self.config.refinement
        logger.info(
            f"Refinement: {refinement.bounds.size} points, N={refinement.revolution_count}, "
            f"population={refinement.population_size}, "
            f"generations={refinement.generation_count}, "
            f"seed={refinement.random_seed} ({refinement.seed_policy})"
        )

        def body() -> None:
            rng = None
            if refinement.seed_policy == "per_campaign":
                rng = np.random.default_rng(refinement.random_seed)
            for index, point in enumerate(refinement.bounds.grid_points()):
                self._refine_point(index, point, rng)

        self._run_phase(self.REFINEMENT, body)
        return list(self._high_order), list(self._low_order)

    # -------------------------------------------------------------------------
    # Whole campaign
    # -------------------------------------------------------------------------

    def results(self) -> CampaignResults:
        return CampaignResults(
            baseline=tuple(self._baseline),
            low_order=tuple(self._low_order),
            high_order=tuple(self._high_order),
            high_order_parameters=tuple(self._high_order_parameters),
        )

    def run(self) -> CampaignResults:
        """Run both phases in order and return the read-only results."""
        self.run_baseline()
        self.run_refinement()
        results = self.results()
        summary = results.summary()
        logger.info(
            f"Campaign finished: {summary['baseline_records']} baseline records "
            f"({summary['baseline_invalid']} invalid), "
            f"{summary['refinement_records']} refined points "
            f"({summary['high_order_invalid']} invalid)"
        )
        return results
