"""Domain constants for frontier_api.

This module centralizes the numeric tolerances, iteration caps and
formatting rules used by the optimization engine.
"""

# ============================================================================
# Numeric guards
# ============================================================================

# Added to variances before inversion and to return spreads before division
EPSILON = 1e-10

# A weight sum below this is treated as collapsed (reset to uniform)
MIN_WEIGHT_SUM = 1e-10

# Tolerance on |sum(w) - 1| when validating a weight vector
WEIGHT_SUM_TOLERANCE = 1e-4


# ============================================================================
# Markowitz solver
# ============================================================================

SOLVER_MAX_ITERATIONS = 3000
SOLVER_TOLERANCE = 1e-6

# Projected-gradient step size schedule
SOLVER_INITIAL_STEP = 0.05
SOLVER_MIN_STEP = 0.0001
SOLVER_MAX_STEP = 0.2
SOLVER_STEP_SHRINK = 0.95
SOLVER_STEP_GROW = 1.05
SOLVER_SHRINK_AFTER_ITERATIONS = 200
SOLVER_SHRINK_ERROR = 0.01
SOLVER_GROW_ERROR = 0.005

# 2x2 Lagrange system is skipped below this determinant magnitude
SOLVER_MIN_DETERMINANT = 1e-10

# Return gap above which the heuristic nudge is applied inside the loop
SOLVER_NUDGE_ERROR = 0.01
SOLVER_NUDGE_SCALE = 0.2

# Post-iteration return refinement
REFINE_MAX_ITERATIONS = 200
REFINE_TOLERANCE = 1e-5
REFINE_INITIAL_STEP = 0.5
REFINE_STEP_DECAY = 0.7
REFINE_STEP_GROWTH = 1.1
REFINE_MIN_STEP = 0.01
REFINE_WEIGHT_FLOOR = 0.01


# ============================================================================
# Frontier
# ============================================================================

# Decimal places (in decimal units) used to de-duplicate frontier points
FRONTIER_DEDUP_DECIMALS = 5

# Default number of points on a generated frontier
DEFAULT_FRONTIER_POINTS = 500

# Upper bound accepted at the API boundary
MAX_FRONTIER_POINTS = 1000


# ============================================================================
# Allocation
# ============================================================================

ALLOCATION_REFINE_MAX_ITERATIONS = 500
ALLOCATION_EXACT_TOLERANCE = 1e-6
ALLOCATION_STALL_BOOST_AFTER = 20
ALLOCATION_STALL_BREAK_AFTER = 50
ALLOCATION_BOOST_TOP_N = 3
ALLOCATION_BOOST_AMOUNT = 0.05

# Nearby-target re-solves when refinement leaves a visible gap
ALLOCATION_RETRY_ATTEMPTS = 5
ALLOCATION_RETRY_ERROR = 0.001
ALLOCATION_RETRY_OVERSHOOT = 0.1

# Percentage-point gap that triggers the nearest-frontier-point fallback
ALLOCATION_FRONTIER_FALLBACK_PCT = 0.1

# Frontier points whose distances differ by less than this are ties
ALLOCATION_FRONTIER_TIE_PCT = 0.01

# Return gap (percentage points) under which the target counts as met
ALLOCATION_EXACT_MATCH_PCT = 0.01


# ============================================================================
# Covariance
# ============================================================================

# Correlation assumed between assets when the sample covariance is unavailable
DEFAULT_FALLBACK_CORRELATION = 0.5


# ============================================================================
# Output formatting
# ============================================================================

RETURN_DECIMALS = 2
RISK_DECIMALS = 2
FRONTIER_WEIGHT_DECIMALS = 4
PERCENT_DECIMALS = 2
AMOUNT_DECIMALS = 2

# Minimum number of assets required for optimization
MIN_ASSETS = 2

# Minimum number of prices per asset
MIN_PRICE_POINTS = 2
