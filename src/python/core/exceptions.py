"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Error Taxonomy
===============================================================================
Exceptions raised by the search campaign.

    CampaignError
    +-- InvalidConfiguration   fatal, raised before any sweep starts
    +-- EvaluationFailure      one cost evaluation raised or was non-finite
    |   +-- AllRevolutionsFailed   every revolution count failed at a point
    +-- OptimizationFailure    a generation round of the optimizer raised

Only InvalidConfiguration is allowed to escape a campaign. The other errors
are recovered at the revolution or grid-point level and turned into invalid
result records.
===============================================================================
"""

from typing import Optional, Sequence


class CampaignError(Exception):
    """Base class for all search campaign errors."""


class InvalidConfiguration(CampaignError, ValueError):
    """Malformed bounds, step sizes, revolution ranges or optimizer settings."""


class EvaluationFailure(CampaignError):
    """A single cost evaluation raised or returned a non-finite cost.

    Parameters
    ----------
    message : str
        Human-readable reason.
    epoch, time_of_flight : float, optional
        Grid coordinates of the failed evaluation (days).
    revolution_count : int, optional
        Revolution count that was evaluated.
    free_parameters : sequence of float, optional
        Free shaping parameters passed to the evaluator.
    """

    def __init__(
        self,
        message: str,
        epoch: Optional[float] = None,
        time_of_flight: Optional[float] = None,
        revolution_count: Optional[int] = None,
        free_parameters: Optional[Sequence[float]] = None,
    ) -> None:
        super().__init__(message)
        self.epoch = epoch
        self.time_of_flight = time_of_flight
        self.revolution_count = revolution_count
        self.free_parameters = (
            tuple(free_parameters) if free_parameters is not None else None
        )


class AllRevolutionsFailed(EvaluationFailure):
    """Every revolution count of the sweep failed at one grid point."""


class OptimizationFailure(CampaignError):
    """A generation round of the population optimizer raised.

    Parameters
    ----------
    message : str
        Human-readable reason.
    generation : int, optional
        Zero-based index of the failed round (-1 for the initial population).
    """

    def __init__(self, message: str, generation: Optional[int] = None) -> None:
        super().__init__(message)
        self.generation = generation
