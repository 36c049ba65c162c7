"""Domain services - pure business logic with no external dependencies.

These services contain the core algorithms and business logic.
They depend only on domain entities, numpy and pandas.
"""

from frontier_api.domain.services.allocation import (
    nearest_frontier_point,
    refine_allocation,
    resolve_allocation,
)
from frontier_api.domain.services.covariance import (
    align_returns,
    compute_covariance,
    daily_returns,
    estimate_covariance,
    fallback_covariance,
)
from frontier_api.domain.services.frontier import generate_frontier
from frontier_api.domain.services.markowitz import (
    interpolate_weights,
    inverse_variance_weights,
    max_return_weights,
    portfolio_return,
    portfolio_risk,
    solve_markowitz,
)

__all__ = [
    # Covariance
    "daily_returns",
    "align_returns",
    "compute_covariance",
    "fallback_covariance",
    "estimate_covariance",
    # Solver
    "solve_markowitz",
    "inverse_variance_weights",
    "max_return_weights",
    "interpolate_weights",
    "portfolio_return",
    "portfolio_risk",
    # Frontier
    "generate_frontier",
    # Allocation
    "resolve_allocation",
    "refine_allocation",
    "nearest_frontier_point",
]
