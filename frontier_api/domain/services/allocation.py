"""Allocation resolution for a single target return.

Turns one requested return into a concrete portfolio: solve the
Markowitz problem at that return, refine until the return matches, and
fall back to the closest point of a previously computed frontier when
direct solving leaves a visible gap.
"""

import logging
from collections.abc import Sequence

import numpy as np

from frontier_api.domain import constants
from frontier_api.domain.entities.allocation import Allocation, AssetAllocation
from frontier_api.domain.entities.frontier import Frontier, FrontierPoint
from frontier_api.domain.entities.solver import (
    DEFAULT_SOLVER_CONFIG,
    Interpolated,
    SolverConfig,
)
from frontier_api.domain.exceptions import UnresolvedAllocationError
from frontier_api.domain.services.markowitz import (
    is_valid_weights,
    normalize_weights,
    portfolio_return,
    portfolio_risk,
    return_nudge,
    solve_markowitz,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Refinement
# ============================================================================


def refine_allocation(
    weights: np.ndarray,
    expected_returns: np.ndarray,
    target_return: float,
    max_iterations: int = constants.ALLOCATION_REFINE_MAX_ITERATIONS,
    tolerance: float = constants.ALLOCATION_EXACT_TOLERANCE,
) -> np.ndarray:
    """Drive the portfolio return onto the target with accept-if-better nudges.

    Allocation-specific variant of the solver's refinement pass:
    - up to ``max_iterations`` nudges, each accepted only if it reduces
      the return error
    - after 20 consecutive failures, and every 10 failures after that,
      the three highest-return assets are boosted when the portfolio is
      still below target
    - gives up after 50 consecutive failures

    Args:
        weights: Starting weights
        expected_returns: Decimal expected returns
        target_return: Decimal target return
        max_iterations: Iteration cap
        tolerance: Error at which the target counts as met

    Returns:
        Best weights found (never worse than the input)
    """
    mu = np.asarray(expected_returns, dtype=float)
    best = np.asarray(weights, dtype=float).copy()
    working = best.copy()

    error = abs(portfolio_return(best, mu) - target_return)
    step = constants.REFINE_INITIAL_STEP
    stalled = 0

    top_assets = np.argsort(-mu, kind="stable")[: constants.ALLOCATION_BOOST_TOP_N]

    for _ in range(max_iterations):
        if error <= tolerance:
            break

        current = portfolio_return(working, mu)
        gap = target_return - current

        candidate = return_nudge(working, mu, current, gap, step)
        total = candidate.sum()
        if total <= constants.MIN_WEIGHT_SUM:
            break
        candidate = candidate / total

        candidate_error = abs(portfolio_return(candidate, mu) - target_return)

        if candidate_error < error:
            previous_error = error
            best = candidate
            working = candidate
            error = candidate_error
            stalled = 0
            if error < previous_error * 0.9:
                step = min(1.0, step * constants.REFINE_STEP_GROWTH)
            continue

        stalled += 1
        step = max(constants.REFINE_MIN_STEP, step * constants.REFINE_STEP_DECAY)

        if stalled > constants.ALLOCATION_STALL_BREAK_AFTER:
            break

        stuck = stalled > constants.ALLOCATION_STALL_BOOST_AFTER
        if stuck and stalled % 10 == 1 and gap > 0:
            boosted = working.copy()
            boosted[top_assets] += constants.ALLOCATION_BOOST_AMOUNT
            working = normalize_weights(boosted)

    return best


def _retry_nearby_targets(
    weights: np.ndarray,
    covariance: np.ndarray,
    expected_returns: np.ndarray,
    target_return: float,
    config: SolverConfig,
) -> np.ndarray:
    """Re-solve at targets pushed slightly past the goal to close a residual gap."""
    best = weights
    achieved = portfolio_return(best, expected_returns)
    error = abs(achieved - target_return)
    max_ret = float(np.max(expected_returns))

    for _ in range(constants.ALLOCATION_RETRY_ATTEMPTS):
        if error <= constants.ALLOCATION_RETRY_ERROR:
            break

        adjusted = target_return + (target_return - achieved) * constants.ALLOCATION_RETRY_OVERSHOOT
        if adjusted > max_ret:
            break

        trial = solve_markowitz(covariance, expected_returns, adjusted, config).weights
        trial_return = portfolio_return(trial, expected_returns)
        trial_error = abs(trial_return - target_return)

        if trial_error >= error:
            break

        best, achieved, error = trial, trial_return, trial_error

    return best


# ============================================================================
# Frontier lookup
# ============================================================================


def nearest_frontier_point(frontier: Frontier, target_return_pct: float) -> FrontierPoint | None:
    """Frontier point whose return is closest to the target.

    A point within 0.01 percentage points of the current best distance
    replaces it when its risk is lower.
    """
    best: FrontierPoint | None = None
    best_distance = float("inf")

    for point in frontier.points:
        distance = abs(point.expected_return - target_return_pct)
        closer = distance < best_distance
        tied = abs(distance - best_distance) < constants.ALLOCATION_FRONTIER_TIE_PCT

        if best is None or closer or (tied and point.risk < best.risk):
            best = point
            best_distance = distance

    return best


# ============================================================================
# Output
# ============================================================================


def _distribute(values: np.ndarray, total: float, decimals: int) -> list[float]:
    """Round values and push the rounding residual onto the largest value."""
    rounded = np.round(values, decimals)
    residual = round(total - float(rounded.sum()), decimals)
    if residual != 0.0:
        rounded[int(np.argmax(values))] += residual
    return [round(float(v), decimals) for v in rounded]


def build_holdings(
    symbols: Sequence[str],
    weights: np.ndarray,
    investment_amount: float,
) -> list[AssetAllocation]:
    """Per-asset percent and amount.

    Percentages sum to 100 and amounts to ``investment_amount`` after
    rounding to 2 decimals.
    """
    percents = _distribute(weights * 100.0, 100.0, constants.PERCENT_DECIMALS)
    amounts = _distribute(weights * investment_amount, investment_amount, constants.AMOUNT_DECIMALS)

    return [
        AssetAllocation(symbol=symbol, weight=float(w), percent=pct, amount=amt)
        for symbol, w, pct, amt in zip(symbols, weights, percents, amounts)
    ]


def build_explanation(
    holdings: Sequence[AssetAllocation],
    portfolio_return_pct: float,
    requested_return_pct: float,
    portfolio_risk_pct: float,
    target_achievable: bool,
) -> str:
    """Human-readable summary of an allocation."""
    deviation = abs(portfolio_return_pct - requested_return_pct)

    if deviation <= constants.ALLOCATION_EXACT_MATCH_PCT:
        text = (
            f"This allocation minimizes risk ({portfolio_risk_pct:.2f}%) while achieving "
            f"an expected return of exactly {requested_return_pct:.2f}%. "
        )
    else:
        text = (
            f"This allocation minimizes risk ({portfolio_risk_pct:.2f}%) while targeting "
            f"an expected return of {requested_return_pct:.2f}%. "
            f"The optimized portfolio achieves a return of {portfolio_return_pct:.2f}%. "
        )

    if not target_achievable:
        text += (
            "The requested return is above what any single asset offers, "
            "so the portfolio is concentrated in the highest-return asset. "
        )

    largest = max(holdings, key=lambda h: h.weight)
    text += (
        f"The portfolio is diversified across {len(holdings)} assets, with the largest "
        f"allocation to {largest.symbol} ({largest.percent:.2f}%)."
    )
    return text


# ============================================================================
# Entry point
# ============================================================================


def resolve_allocation(
    target_return_pct: float,
    investment_amount: float,
    symbols: Sequence[str] | None = None,
    covariance: np.ndarray | None = None,
    expected_returns: np.ndarray | None = None,
    frontier: Frontier | None = None,
    config: SolverConfig = DEFAULT_SOLVER_CONFIG,
) -> Allocation:
    """Resolve a requested return into a minimum-risk allocation.

    Steps:
    1. Clamp the target to the best single-asset return
    2. Solve the Markowitz problem at the target
    3. Refine while the return error exceeds 1e-6
    4. Retry nearby targets while the error exceeds 0.001
    5. If still more than 0.1 percentage points off and a frontier is
       given, take its closest point (re-solved at that point's return
       when that reduces the error)

    Without asset data the frontier point is used as-is.

    Args:
        target_return_pct: Requested annualized return in percent
        investment_amount: Amount to split across assets
        symbols: Asset symbols, aligned with expected_returns
        covariance: n x n covariance of daily returns
        expected_returns: Decimal annualized returns
        frontier: Previously computed frontier, optional
        config: Solver configuration

    Returns:
        Allocation with percent/amount per asset

    Raises:
        UnresolvedAllocationError: if no weight vector can be produced
    """
    has_assets = (
        symbols is not None
        and len(symbols) >= constants.MIN_ASSETS
        and covariance is not None
        and expected_returns is not None
    )
    has_frontier = frontier is not None and len(frontier.points) > 0

    if not has_assets and not has_frontier:
        raise UnresolvedAllocationError(
            "Could not compute optimal allocation for given return: "
            f"at least {constants.MIN_ASSETS} valid assets or a frontier are required"
        )

    target = target_return_pct / 100.0
    target_achievable = True
    weights: np.ndarray | None = None
    method = "solver"
    achieved_pct = float("nan")
    risk_pct = float("nan")

    if has_assets:
        symbols = list(symbols)
        cov = np.asarray(covariance, dtype=float)
        mu = np.asarray(expected_returns, dtype=float)

        max_ret = float(mu.max())
        if target > max_ret:
            logger.info(
                f"Target return {target_return_pct:.2f}% exceeds maximum achievable "
                f"{max_ret * 100:.2f}%, using maximum return portfolio"
            )
            target = max_ret
            target_achievable = False

        result = solve_markowitz(cov, mu, target, config)
        weights = result.weights
        if isinstance(result, Interpolated):
            method = "interpolated"

        error = abs(portfolio_return(weights, mu) - target)
        if error > constants.ALLOCATION_EXACT_TOLERANCE:
            refined = refine_allocation(weights, mu, target)
            if abs(portfolio_return(refined, mu) - target) < error:
                weights = refined
                method = "solver_refined"

        if target_achievable:
            retried = _retry_nearby_targets(weights, cov, mu, target, config)
            if retried is not weights:
                weights = retried
                method = "solver_refined"

        achieved_pct = portfolio_return(weights, mu) * 100.0
        risk_pct = portfolio_risk(weights, cov) * 100.0

    target_pct = target * 100.0
    needs_frontier = weights is None or abs(achieved_pct - target_pct) > constants.ALLOCATION_FRONTIER_FALLBACK_PCT

    if has_frontier and needs_frontier:
        point = nearest_frontier_point(frontier, target_pct)
        logger.info(
            f"Using frontier point at {point.expected_return:.2f}% for target {target_pct:.2f}%"
        )
        method = "frontier"

        if has_assets:
            mapped_error = float("inf")
            if set(point.weights) == set(symbols):
                weights = normalize_weights(np.array([point.weights[s] for s in symbols]))
                mapped_error = abs(portfolio_return(weights, mu) * 100.0 - target_pct)
            else:
                logger.warning(
                    f"Frontier symbols {sorted(point.weights)} do not match assets {symbols}; "
                    "re-solving at the frontier point's return"
                )

            if mapped_error > constants.ALLOCATION_FRONTIER_FALLBACK_PCT:
                resolved = solve_markowitz(cov, mu, point.expected_return / 100.0, config).weights
                resolved_error = abs(portfolio_return(resolved, mu) * 100.0 - target_pct)
                if resolved_error < mapped_error:
                    weights = resolved
                    method = "frontier_resolved"

            achieved_pct = portfolio_return(weights, mu) * 100.0
            risk_pct = portfolio_risk(weights, cov) * 100.0
        else:
            symbols = list(point.weights.keys())
            weights = normalize_weights(np.array(list(point.weights.values()), dtype=float))
            achieved_pct = point.expected_return
            risk_pct = point.risk

    if weights is None or not is_valid_weights(weights):
        raise UnresolvedAllocationError("Could not compute optimal allocation for given return")

    holdings = build_holdings(symbols, weights, investment_amount)
    explanation = build_explanation(
        holdings,
        portfolio_return_pct=achieved_pct,
        requested_return_pct=target_return_pct,
        portfolio_risk_pct=risk_pct,
        target_achievable=target_achievable,
    )

    return Allocation(
        holdings=holdings,
        portfolio_return=achieved_pct,
        requested_return=target_return_pct,
        portfolio_risk=risk_pct,
        investment_amount=investment_amount,
        target_achievable=target_achievable,
        method=method,
        explanation=explanation,
    )
