"""
===============================================================================
LOW-THRUST TRANSFER SEARCH - Constants and Campaign Defaults
===============================================================================
Central repository for the time constants and the nominal campaign settings
used throughout the search. Grid coordinates are expressed in days: epochs as
days since J2000 (MJD2000), times of flight as elapsed days.

The default campaign reproduces the Earth-Mars low-thrust survey:
    Phase 1 -- baseline grid search, zero free shaping parameters,
               revolution counts 0..5.
    Phase 2 -- restricted grid, one revolution, two free radial-velocity
               coefficients tuned by a population-based optimizer.
===============================================================================
"""

import numpy as np


# =============================================================================
# TIME CONSTANTS
# =============================================================================
JULIAN_DAY = 86400.0                   # s
JULIAN_YEAR = 365.25 * JULIAN_DAY      # s
MJD2000_OFFSET = 51544.5               # MJD of the J2000 epoch (days)

# =============================================================================
# RESULT RECORD CONVENTIONS
# =============================================================================
# Cost written for grid points that produced no valid candidate.
INVALID_COST = np.inf

# Significant digits used when writing result files (double precision).
OUTPUT_PRECISION = int(np.finfo(np.float64).precision)   # 15
OUTPUT_DELIMITER = ","

# Grid coordinates are rounded to this many decimals when used as join keys.
KEY_DECIMALS = 9

# =============================================================================
# PHASE 1 -- BASELINE GRID SEARCH
# =============================================================================
BASELINE_EPOCH_BOUNDS = (7304.5, 10225.5)    # MJD2000 days
BASELINE_EPOCH_POINTS = 401
BASELINE_TOF_BOUNDS = (500.0, 2000.0)        # days
BASELINE_TOF_STEP = 5.0                      # days
BASELINE_REVOLUTION_RANGE = (0, 5)

# =============================================================================
# PHASE 2 -- REFINED OPTIMIZATION SWEEP
# =============================================================================
REFINEMENT_EPOCH_BOUNDS = (7304.5, 7379.5)   # MJD2000 days
REFINEMENT_EPOCH_STEP = 15.0                 # days
REFINEMENT_TOF_BOUNDS = (500.0, 900.0)       # days
REFINEMENT_TOF_STEP = 20.0                   # days
REFINEMENT_REVOLUTION_COUNT = 1

# Bounds on the two additional radial-velocity shaping coefficients
REFINEMENT_PARAMETER_BOUNDS = ((-600.0, 800.0), (0.0, 1500.0))

POPULATION_SIZE = 1024
GENERATION_COUNT = 10
RANDOM_SEED = 123

SEED_POLICIES = ("per_campaign", "per_point")
DEFAULT_SEED_POLICY = "per_campaign"

# =============================================================================
# OUTPUT
# =============================================================================
OUTPUT_DIR = "output/campaign"
BASELINE_FILENAME = "baseline_grid_search.dat"
LOW_ORDER_FILENAME = "low_order_one_revolution.dat"
HIGH_ORDER_FILENAME = "high_order_optimized.dat"


def days_to_seconds(days: float) -> float:
    """Convert a duration in Julian days to seconds."""
    return days * JULIAN_DAY


def seconds_to_days(seconds: float) -> float:
    """Convert a duration in seconds to Julian days."""
    return seconds / JULIAN_DAY
