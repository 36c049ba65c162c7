"""Solver configuration and tagged solve results.

A solve either runs the iterative method to completion (``Converged``)
or degrades to the deterministic interpolation portfolio
(``Interpolated``). Callers branch on the type instead of catching
exceptions.
"""

from dataclasses import dataclass
from typing import Any

from frontier_api.domain import constants


@dataclass(frozen=True)
class SolverConfig:
    """Iteration caps and step-size schedule for the Markowitz solver."""

    max_iterations: int = constants.SOLVER_MAX_ITERATIONS
    tolerance: float = constants.SOLVER_TOLERANCE

    initial_step: float = constants.SOLVER_INITIAL_STEP
    min_step: float = constants.SOLVER_MIN_STEP
    max_step: float = constants.SOLVER_MAX_STEP

    refine_iterations: int = constants.REFINE_MAX_ITERATIONS
    refine_tolerance: float = constants.REFINE_TOLERANCE


# Default configuration
DEFAULT_SOLVER_CONFIG = SolverConfig()


@dataclass(frozen=True)
class Converged:
    """Weights produced by the iterative solver.

    ``return_error`` is |w'mu - target| (0.0 in minimum-variance mode).
    The iteration cap may have been hit; the weights are still a valid
    portfolio.
    """

    weights: Any  # np.ndarray, non-negative, sums to 1
    iterations: int
    return_error: float = 0.0


@dataclass(frozen=True)
class Interpolated:
    """Deterministic fallback between inverse-variance and max-return weights."""

    weights: Any  # np.ndarray, non-negative, sums to 1
    reason: str = ""


SolveResult = Converged | Interpolated
