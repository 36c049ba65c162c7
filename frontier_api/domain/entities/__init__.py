"""Domain entities - pure dataclasses with no external dependencies.

These entities represent the core business objects in the domain model.
"""

from frontier_api.domain.entities.allocation import Allocation, AssetAllocation
from frontier_api.domain.entities.assets import AssetSeries
from frontier_api.domain.entities.frontier import Frontier, FrontierPoint
from frontier_api.domain.entities.solver import (
    DEFAULT_SOLVER_CONFIG,
    Converged,
    Interpolated,
    SolveResult,
    SolverConfig,
)

__all__ = [
    # Inputs
    "AssetSeries",
    # Solver
    "SolverConfig",
    "DEFAULT_SOLVER_CONFIG",
    "Converged",
    "Interpolated",
    "SolveResult",
    # Frontier
    "FrontierPoint",
    "Frontier",
    # Allocation
    "AssetAllocation",
    "Allocation",
]
