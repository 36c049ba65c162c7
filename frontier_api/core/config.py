"""Configuration for the optimization service."""

import os
from dataclasses import dataclass

from frontier_api.domain.constants import (
    DEFAULT_FALLBACK_CORRELATION,
    DEFAULT_FRONTIER_POINTS,
    MAX_FRONTIER_POINTS,
)
from frontier_api.domain.exceptions import InputValidationError
from frontier_api.domain.services.covariance import validate_correlation

# Environment variable names
ENV_FRONTIER_NUM_POINTS = "FRONTIER_NUM_POINTS"
ENV_FALLBACK_CORRELATION = "FRONTIER_FALLBACK_CORRELATION"


@dataclass(frozen=True)
class OptimizationSettings:
    """Runtime settings resolved from the environment."""

    # Points on a frontier when the request does not specify a count
    num_points: int = DEFAULT_FRONTIER_POINTS

    # Correlation assumed when the sample covariance cannot be computed
    fallback_correlation: float = DEFAULT_FALLBACK_CORRELATION


def resolve_num_points() -> int:
    """Resolve the default frontier size.

    Reads FRONTIER_NUM_POINTS (default: 500, allowed: 2-1000).
    """
    raw = os.environ.get(ENV_FRONTIER_NUM_POINTS, "")
    if not raw:
        return DEFAULT_FRONTIER_POINTS

    try:
        num_points = int(raw)
    except ValueError as e:
        raise InputValidationError(
            f"{ENV_FRONTIER_NUM_POINTS} must be an integer, got {raw!r}",
            field=ENV_FRONTIER_NUM_POINTS,
            value=raw,
        ) from e

    if not 2 <= num_points <= MAX_FRONTIER_POINTS:
        raise InputValidationError(
            f"{ENV_FRONTIER_NUM_POINTS} must be between 2 and {MAX_FRONTIER_POINTS}, got {num_points}",
            field=ENV_FRONTIER_NUM_POINTS,
            value=num_points,
        )
    return num_points


def resolve_fallback_correlation() -> float:
    """Resolve the correlation assumed by the fallback covariance.

    Reads FRONTIER_FALLBACK_CORRELATION (default: 0.5, allowed: -1 to 1).
    """
    raw = os.environ.get(ENV_FALLBACK_CORRELATION, "")
    if not raw:
        return DEFAULT_FALLBACK_CORRELATION

    try:
        correlation = float(raw)
    except ValueError as e:
        raise InputValidationError(
            f"{ENV_FALLBACK_CORRELATION} must be a number, got {raw!r}",
            field=ENV_FALLBACK_CORRELATION,
            value=raw,
        ) from e

    return validate_correlation(correlation)


def get_settings() -> OptimizationSettings:
    """Build settings from the current environment."""
    return OptimizationSettings(
        num_points=resolve_num_points(),
        fallback_correlation=resolve_fallback_correlation(),
    )
