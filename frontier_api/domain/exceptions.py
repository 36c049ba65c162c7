"""Custom exceptions for frontier_api domain.

This module defines domain-specific exceptions so that boundary errors
(bad input, unusable data) are distinguishable from numerical trouble
inside the optimizer, which is always recovered internally.
"""

from typing import Any


class FrontierAPIError(Exception):
    """Base exception for all frontier_api errors."""

    pass


# ============================================================================
# Data errors
# ============================================================================


class DataError(FrontierAPIError):
    """Base class for data-related errors."""

    pass


class InsufficientDataError(DataError):
    """Raised when there's not enough data to perform an operation.

    Examples:
    - Aligned return series have zero length
    - Fewer than two usable assets after filtering
    """

    def __init__(self, message: str, required: int | None = None, available: int | None = None):
        super().__init__(message)
        self.required = required
        self.available = available


class InputValidationError(DataError):
    """Raised when request input fails the boundary validation contract.

    Examples:
    - Non-positive investment amount
    - Requested return outside the supplied frontier's range
    - Too few assets with a valid return and price history
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


# ============================================================================
# Optimization errors
# ============================================================================


class OptimizationError(FrontierAPIError):
    """Base class for optimizer errors."""

    pass


class SolverError(OptimizationError):
    """Raised inside the solver when an iterate stops being a valid portfolio.

    Never escapes the solver: it triggers the interpolation fallback.
    """

    pass


class UnresolvedAllocationError(OptimizationError):
    """Raised when no candidate weight vector can be produced at all.

    Examples:
    - Fewer than two valid assets and no frontier to fall back on
    """

    pass
