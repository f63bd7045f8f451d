"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Synthetic Cost Surface
===============================================================================
Analytic stand-in for a shaping-based cost evaluator, used for smoke runs,
demonstrations and tests of the campaign machinery. It has the qualitative
features of a porkchop surface (periodic in departure epoch, a preferred
time of flight per revolution count, an interior optimum in the free shaping
parameters) without modelling any dynamics.

    cost = W_PHASE * |r_dep(t0) - r_arr(t0 + tof)|
         + W_SPEED * |v_dep(t0) - v_arr(t0 + tof)|
         + W_REV   * |N - tof / DAYS_PER_REVOLUTION|
         + W_SHAPE * (1 - exp(-|(p - p*(tof)) / P_SCALE|^2))

Boundary states come from two borrowed EphemerisProvider objects.
===============================================================================
"""

import numpy as np

from core.constants import JULIAN_DAY, JULIAN_YEAR
from core.interfaces import CostEvaluator, EphemerisProvider

# Surface weights (m/s per unit)
W_PHASE = 2500.0
W_SPEED = 1500.0
W_REV = 400.0
W_SHAPE = 900.0

DAYS_PER_REVOLUTION = 700.0

# Location and spread of the free-parameter optimum
P_CENTER = np.array([100.0, 750.0, 0.0, 0.0])
P_DRIFT = np.array([0.25, -0.5, 0.0, 0.0])    # per day of TOF beyond 500
P_SCALE = 400.0

EARTH_LIKE_PERIOD = JULIAN_YEAR / JULIAN_DAY  # days
MARS_LIKE_PERIOD = 686.98                     # days


class SyntheticEphemeris(EphemerisProvider):
    """Uniform circular motion in the reference plane (nondimensional).

    Args:
        period:  Revolution period (days).
        radius:  Orbit radius (nondimensional).
        phase:   Angle at epoch 0 (rad).
    """

    def __init__(self, period: float, radius: float = 1.0, phase: float = 0.0):
        if period <= 0.0 or radius <= 0.0:
            raise ValueError("Period and radius must be positive")
        self.period = period
        self.radius = radius
        self.phase = phase

    def state_at(self, epoch: float) -> np.ndarray:
        rate = 2.0 * np.pi / self.period
        angle = rate * epoch + self.phase
        r = self.radius
        return np.array([
            r * np.cos(angle), r * np.sin(angle), 0.0,
            -r * rate * np.sin(angle), r * rate * np.cos(angle), 0.0,
        ])


class SyntheticTransferEvaluator(CostEvaluator):
    """Synthetic transfer cost between two ephemerides.

    The ephemerides are borrowed from the factory that built the evaluator.
    """

    def __init__(
        self,
        departure: EphemerisProvider,
        arrival: EphemerisProvider,
        free_parameter_count: int = 0,
    ) -> None:
        if not 0 <= free_parameter_count <= P_CENTER.shape[0]:
            raise ValueError(
                f"Synthetic surface supports 0..{P_CENTER.shape[0]} free parameters, "
                f"got {free_parameter_count}"
            )
        self.departure = departure
        self.arrival = arrival
        self.free_parameter_count = free_parameter_count

    def evaluate(self, epoch, time_of_flight, revolution_count, free_parameters):
        if time_of_flight <= 0.0:
            raise ValueError(f"Time of flight must be positive, got {time_of_flight}")
        params = np.asarray(free_parameters, dtype=np.float64)
        if params.shape != (self.free_parameter_count,):
            raise ValueError(
                f"Expected {self.free_parameter_count} free parameters, got {params.shape}"
            )

        s_dep = self.departure.state_at(epoch)
        s_arr = self.arrival.state_at(epoch + time_of_flight)
        # Rates are per day; scale to per year so both gaps are O(1)
        speed_gap = np.linalg.norm(s_dep[3:] - s_arr[3:]) * EARTH_LIKE_PERIOD
        cost = (
            W_PHASE * np.linalg.norm(s_dep[:3] - s_arr[:3])
            + W_SPEED * speed_gap
            + W_REV * abs(revolution_count - time_of_flight / DAYS_PER_REVOLUTION)
        )

        if self.free_parameter_count:
            n = self.free_parameter_count
            optimum = P_CENTER[:n] + P_DRIFT[:n] * (time_of_flight - 500.0)
            offset = (params - optimum) / P_SCALE
            cost += W_SHAPE * (1.0 - np.exp(-np.dot(offset, offset)))
        return float(cost)


class SyntheticEvaluatorFactory:
    """Builds synthetic evaluators sharing two borrowed ephemerides.

    The campaign calls the factory with the number of free parameters of
    the phase it is running.
    """

    def __init__(
        self,
        departure: EphemerisProvider = None,
        arrival: EphemerisProvider = None,
    ) -> None:
        self.departure = departure or SyntheticEphemeris(EARTH_LIKE_PERIOD, 1.0)
        self.arrival = arrival or SyntheticEphemeris(MARS_LIKE_PERIOD, 1.524, phase=1.0)

    def __call__(self, free_parameter_count: int) -> SyntheticTransferEvaluator:
        return SyntheticTransferEvaluator(
            self.departure, self.arrival, free_parameter_count
        )
