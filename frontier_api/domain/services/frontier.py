"""Efficient frontier generation.

Sweeps target returns between the minimum-variance portfolio and the
best single asset, solves the Markowitz problem for each, and shapes the
result into a fixed number of unique points ordered by risk.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from frontier_api.domain import constants
from frontier_api.domain.entities.frontier import Frontier, FrontierPoint
from frontier_api.domain.entities.solver import (
    DEFAULT_SOLVER_CONFIG,
    Interpolated,
    SolverConfig,
)
from frontier_api.domain.exceptions import InputValidationError, OptimizationError
from frontier_api.domain.services.markowitz import (
    interpolate_weights,
    max_return_weights,
    portfolio_return,
    portfolio_risk,
    solve_markowitz,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Candidate:
    """A frontier point in decimal units, before formatting."""

    expected_return: float
    risk: float
    weights: np.ndarray

    @property
    def key(self) -> tuple[float, float]:
        return (
            round(self.expected_return, constants.FRONTIER_DEDUP_DECIMALS),
            round(self.risk, constants.FRONTIER_DEDUP_DECIMALS),
        )


def _candidate(weights: np.ndarray, covariance: np.ndarray, expected_returns: np.ndarray) -> _Candidate:
    return _Candidate(
        expected_return=portfolio_return(weights, expected_returns),
        risk=portfolio_risk(weights, covariance),
        weights=weights,
    )


def deduplicate(candidates: Sequence[_Candidate]) -> list[_Candidate]:
    """Keep the first candidate for each rounded (return, risk) pair."""
    seen: set[tuple[float, float]] = set()
    unique = []
    for candidate in candidates:
        if candidate.key in seen:
            continue
        seen.add(candidate.key)
        unique.append(candidate)
    return unique


def _sort_by_risk(candidates: list[_Candidate]) -> list[_Candidate]:
    return sorted(candidates, key=lambda c: c.risk)


def _stride_sample(candidates: list[_Candidate], num_points: int) -> list[_Candidate]:
    """Evenly strided subsample of ``num_points`` candidates.

    A floor stride over at least ``num_points`` candidates always yields
    enough indices, so nothing needs filling. Input order (ascending
    risk) is preserved and the first candidate is always kept.
    """
    stride = max(1, len(candidates) // num_points)
    return candidates[::stride][:num_points]


def _pad_with_interpolation(
    candidates: list[_Candidate],
    covariance: np.ndarray,
    expected_returns: np.ndarray,
    min_return: float,
    max_return: float,
    num_points: int,
) -> list[_Candidate]:
    """Synthesize interpolated points until ``num_points`` unique points exist.

    Each round spreads the missing count evenly over (min_return,
    max_return). Stops as soon as a round adds no new unique point.
    """
    points = list(candidates)

    while len(points) < num_points:
        count = len(points)
        needed = num_points - count

        for i in range(needed):
            target = min_return + (max_return - min_return) * (i + 1) / (needed + 1)
            weights = interpolate_weights(
                covariance,
                expected_returns,
                target,
                low=min_return,
                high=max_return,
            )
            points.append(_candidate(weights, covariance, expected_returns))

        points = _sort_by_risk(deduplicate(points))

        if len(points) <= count:
            break

    return points


def generate_frontier(
    covariance: np.ndarray,
    expected_returns: np.ndarray,
    symbols: Sequence[str],
    num_points: int = constants.DEFAULT_FRONTIER_POINTS,
    config: SolverConfig = DEFAULT_SOLVER_CONFIG,
) -> Frontier:
    """Generate the efficient frontier.

    Algorithm:
    1. Minimum-variance portfolio -> lowest target return
    2. One-hot best asset -> highest target return
    3. ``num_points`` evenly spaced targets between them
    4. Solve each target (interpolation fallback on failure)
    5. De-duplicate on (return, risk) rounded to 5 decimals
    6. Sort ascending by risk
    7. Stride down to ``num_points`` or pad with interpolated points

    Args:
        covariance: n x n covariance of daily returns
        expected_returns: Decimal annualized returns (length n)
        symbols: Asset symbols, aligned with expected_returns
        num_points: Number of frontier points to return (>= 2)
        config: Solver configuration

    Returns:
        Frontier with returns/risks in percent and weights keyed by symbol

    Raises:
        InputValidationError: on inconsistent inputs or num_points < 2
    """
    cov = np.asarray(covariance, dtype=float)
    mu = np.asarray(expected_returns, dtype=float)
    symbols = list(symbols)

    if num_points < 2:
        raise InputValidationError(
            f"num_points must be at least 2, got {num_points}",
            field="num_points",
            value=num_points,
        )
    if len(symbols) != len(mu):
        raise InputValidationError(
            f"Got {len(symbols)} symbols for {len(mu)} expected returns",
            field="symbols",
            value=symbols,
        )

    min_var_weights = solve_markowitz(cov, mu, None, config).weights
    min_return = portfolio_return(min_var_weights, mu)
    max_return = portfolio_return(max_return_weights(mu), mu)

    targets = np.linspace(min_return, max_return, num_points)

    candidates: list[_Candidate] = []
    fallback_points = 0

    for target in targets:
        try:
            result = solve_markowitz(cov, mu, float(target), config)
            weights = result.weights
            if isinstance(result, Interpolated):
                fallback_points += 1
        except (OptimizationError, ArithmeticError, np.linalg.LinAlgError) as e:
            logger.warning(f"Frontier solve failed at target {target:.6f}: {e}")
            weights = interpolate_weights(cov, mu, float(target))
            fallback_points += 1

        candidates.append(_candidate(weights, cov, mu))

    if fallback_points > 0:
        logger.warning(f"Solver fell back to interpolation for {fallback_points} frontier points")

    points = _sort_by_risk(deduplicate(candidates))
    logger.info(f"Generated {len(points)} unique frontier points from {num_points} targets")

    if len(points) >= num_points:
        points = _stride_sample(points, num_points)
    else:
        points = _pad_with_interpolation(points, cov, mu, min_return, max_return, num_points)
        if len(points) < num_points:
            logger.warning(f"Only {len(points)} unique frontier points available, expected {num_points}")

    points = _sort_by_risk(points)[:num_points]

    frontier_points = [
        FrontierPoint(
            risk=c.risk * 100.0,
            expected_return=c.expected_return * 100.0,
            weights={symbol: float(w) for symbol, w in zip(symbols, c.weights)},
        )
        for c in points
    ]
    returns = [p.expected_return for p in frontier_points]

    return Frontier(
        points=frontier_points,
        min_return=min(returns),
        max_return=max(returns),
        fallback_points=fallback_points,
    )
