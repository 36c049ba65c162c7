"""Markowitz mean-variance solver.

Solves

    minimize    w' S w
    subject to  w' mu = target   (omitted in minimum-variance mode)
                sum(w) = 1
                w >= 0

with a projected-gradient iteration. Each step removes the component of
the variance gradient that would break the two equality constraints by
solving a closed-form 2x2 system for the Lagrange multipliers, then
clips negative weights and renormalizes. A return-only refinement pass
tightens the target match afterwards.

The solver never raises for numerical trouble: any failure degrades to a
deterministic interpolation between the inverse-variance portfolio and
the single highest-return asset, reported as ``Interpolated``.

This module contains pure functions with no dependencies beyond numpy.
"""

import logging

import numpy as np

from frontier_api.domain import constants
from frontier_api.domain.entities.solver import (
    DEFAULT_SOLVER_CONFIG,
    Converged,
    Interpolated,
    SolveResult,
    SolverConfig,
)
from frontier_api.domain.exceptions import InputValidationError, SolverError

logger = logging.getLogger(__name__)


# ============================================================================
# Portfolio arithmetic
# ============================================================================


def portfolio_return(weights: np.ndarray, expected_returns: np.ndarray) -> float:
    """Expected portfolio return w' mu."""
    return float(np.dot(weights, expected_returns))


def portfolio_variance(weights: np.ndarray, covariance: np.ndarray) -> float:
    """Portfolio variance w' S w."""
    return float(weights @ covariance @ weights)


def portfolio_risk(weights: np.ndarray, covariance: np.ndarray) -> float:
    """Portfolio standard deviation, floored at zero variance."""
    return float(np.sqrt(max(0.0, portfolio_variance(weights, covariance))))


def normalize_weights(weights: np.ndarray) -> np.ndarray:
    """Clip to non-negative finite values and rescale to sum 1.

    Falls back to uniform weights when the sum collapses.
    """
    w = np.asarray(weights, dtype=float)
    w = np.where(np.isfinite(w), np.maximum(w, 0.0), 0.0)

    total = w.sum()
    if total > constants.MIN_WEIGHT_SUM:
        return w / total
    return np.full(len(w), 1.0 / len(w))


def is_valid_weights(
    weights: np.ndarray,
    tolerance: float = constants.WEIGHT_SUM_TOLERANCE,
) -> bool:
    """True when weights are finite, non-negative and sum to 1."""
    w = np.asarray(weights, dtype=float)
    if w.size == 0 or not np.all(np.isfinite(w)):
        return False
    if np.any(w < 0):
        return False
    return abs(w.sum() - 1.0) < tolerance


def validate_weights(weights: np.ndarray) -> np.ndarray:
    """Return weights unchanged, or raise SolverError if they are not a portfolio."""
    if not is_valid_weights(weights):
        raise SolverError(f"Invalid weight vector: {np.asarray(weights).tolist()}")
    return weights


# ============================================================================
# Reference portfolios
# ============================================================================


def inverse_variance_weights(covariance: np.ndarray) -> np.ndarray:
    """Weights proportional to 1 / variance.

    Exact minimum-variance weights for uncorrelated assets; the starting
    point of the minimum-variance iteration.
    """
    variances = np.diag(np.asarray(covariance, dtype=float))
    inverse = 1.0 / (variances + constants.EPSILON)
    return normalize_weights(inverse)


def max_return_weights(expected_returns: np.ndarray) -> np.ndarray:
    """One-hot portfolio in the highest-return asset (first on ties)."""
    mu = np.asarray(expected_returns, dtype=float)
    weights = np.zeros(len(mu))
    weights[int(np.argmax(mu))] = 1.0
    return weights


def interpolation_ratio(target: float, low: float, high: float) -> float:
    """Position of target between low and high (not clamped)."""
    return (target - low) / (high - low + constants.EPSILON)


def interpolate_weights(
    covariance: np.ndarray,
    expected_returns: np.ndarray,
    target_return: float | None,
    low: float | None = None,
    high: float | None = None,
) -> np.ndarray:
    """Blend inverse-variance and max-return portfolios for a target.

    The blend ratio is clamped to [0, 1]. With no target the
    inverse-variance portfolio is returned. ``low``/``high`` default to
    the smallest and largest single-asset returns.

    Args:
        covariance: n x n covariance matrix
        expected_returns: Decimal expected returns
        target_return: Decimal target, or None for minimum variance
        low: Return mapped to ratio 0
        high: Return mapped to ratio 1

    Returns:
        Normalized weight vector
    """
    mu = np.asarray(expected_returns, dtype=float)
    base = inverse_variance_weights(covariance)
    if target_return is None:
        return base

    low = float(mu.min()) if low is None else low
    high = float(mu.max()) if high is None else high
    ratio = min(1.0, max(0.0, interpolation_ratio(target_return, low, high)))

    blended = base * (1.0 - ratio) + max_return_weights(mu) * ratio
    return normalize_weights(blended)


def initial_weights(
    covariance: np.ndarray,
    expected_returns: np.ndarray,
    target_return: float | None,
) -> np.ndarray:
    """Starting point for the iteration.

    - Minimum variance: inverse-variance weights
    - Target above every asset: one-hot max-return
    - Target below every asset: inverse-variance weights
    - Otherwise: unclamped interpolation between the two
    """
    mu = np.asarray(expected_returns, dtype=float)
    if target_return is None:
        return inverse_variance_weights(covariance)

    min_ret = float(mu.min())
    max_ret = float(mu.max())

    if target_return > max_ret:
        return max_return_weights(mu)
    if target_return < min_ret:
        return inverse_variance_weights(covariance)

    ratio = interpolation_ratio(target_return, min_ret, max_ret)
    base = inverse_variance_weights(covariance)
    return normalize_weights(base * (1.0 - ratio) + max_return_weights(mu) * ratio)


# ============================================================================
# Iteration
# ============================================================================


def _spectral_scale(covariance: np.ndarray) -> float:
    """Largest eigenvalue of the covariance, used to normalize the objective.

    Dividing the objective by a positive constant leaves the minimizer
    unchanged; the step schedule then applies to daily and annual
    variances alike.
    """
    eigenvalues = np.linalg.eigvalsh(covariance)
    if not np.all(np.isfinite(eigenvalues)):
        raise SolverError("Covariance matrix has non-finite eigenvalues")

    largest = float(eigenvalues.max())
    if largest <= constants.EPSILON:
        return 1.0
    return largest


def _lagrange_multipliers(
    gradient: np.ndarray,
    expected_returns: np.ndarray,
    free: np.ndarray,
    return_error: float,
    sum_error: float,
    step: float,
    minimize_only: bool,
) -> tuple[float, float]:
    """Solve the 2x2 system so a step keeps both constraints satisfied.

    Over the free coordinates F, with d = g - l1 * mu - l2:
        mu_F' d = return_error / step
        1_F'  d = sum_error / step

    When the determinant is (near) zero, e.g. all free assets share
    one return, only the budget constraint is corrected.
    """
    mu = expected_returns[free]
    g = gradient[free]
    count = float(free.sum())

    ones_dot_grad = float(g.sum())
    lambda2_budget_only = (ones_dot_grad - sum_error / step) / count

    if minimize_only:
        return 0.0, lambda2_budget_only

    mu_dot_mu = float(mu @ mu)
    mu_dot_ones = float(mu.sum())
    mu_dot_grad = float(mu @ g)

    det = mu_dot_mu * count - mu_dot_ones * mu_dot_ones
    if abs(det) < constants.SOLVER_MIN_DETERMINANT:
        return 0.0, lambda2_budget_only

    b0 = mu_dot_grad - return_error / step
    b1 = ones_dot_grad - sum_error / step

    lambda1 = (b0 * count - b1 * mu_dot_ones) / det
    lambda2 = (mu_dot_mu * b1 - mu_dot_ones * b0) / det
    return lambda1, lambda2


def _projected_direction(
    weights: np.ndarray,
    gradient: np.ndarray,
    expected_returns: np.ndarray,
    return_error: float,
    sum_error: float,
    step: float,
    minimize_only: bool,
) -> np.ndarray:
    """Constraint-corrected descent direction.

    Free coordinates are held assets plus empty assets the corrected
    step would buy; every other coordinate stays at zero.
    """
    def corrected(free: np.ndarray) -> np.ndarray:
        lambda1, lambda2 = _lagrange_multipliers(
            gradient,
            expected_returns,
            free,
            return_error,
            sum_error,
            step,
            minimize_only,
        )
        return gradient - lambda1 * expected_returns - lambda2

    free = weights > 0
    if not free.any():
        free = np.ones(len(weights), dtype=bool)

    direction = corrected(free)

    entering = (~free) & (direction < 0)
    if entering.any():
        free = free | entering
        direction = corrected(free)

    direction[~free] = 0.0
    return direction


def _nudge_toward_target(
    weights: np.ndarray,
    expected_returns: np.ndarray,
    target_return: float,
) -> np.ndarray:
    """Boost assets that close the return gap, in proportion to the gap."""
    current = portfolio_return(weights, expected_returns)
    gap = target_return - current
    contribution = expected_returns - current

    helpful = np.sign(contribution) == np.sign(gap)
    boost = constants.SOLVER_NUDGE_SCALE * abs(gap) * np.abs(contribution) * weights

    nudged = weights + np.where(helpful, boost, 0.0)
    return normalize_weights(nudged)


def _projected_gradient(
    covariance: np.ndarray,
    expected_returns: np.ndarray,
    target_return: float | None,
    config: SolverConfig,
) -> tuple[np.ndarray, int]:
    """Run the constrained projected-gradient iteration.

    Stops at the iteration cap, or once both constraint errors are below
    the tolerance and a full update (including the return nudge) moves no
    weight by more than it. A target the bounds make unreachable runs to
    the cap.

    Returns:
        Tuple of (weights, iterations used)
    """
    minimize_only = target_return is None
    scaled = covariance / _spectral_scale(covariance)

    weights = initial_weights(covariance, expected_returns, target_return)
    step = config.initial_step
    iteration = 0

    for iteration in range(1, config.max_iterations + 1):
        gradient = 2.0 * (scaled @ weights)

        current = portfolio_return(weights, expected_returns)
        return_error = 0.0 if minimize_only else current - target_return
        sum_error = float(weights.sum()) - 1.0

        direction = _projected_direction(
            weights,
            gradient,
            expected_returns,
            return_error,
            sum_error,
            step,
            minimize_only,
        )
        updated = normalize_weights(np.maximum(0.0, weights - step * direction))

        return_error = 0.0 if minimize_only else portfolio_return(updated, expected_returns) - target_return
        sum_error = float(updated.sum()) - 1.0

        if iteration > constants.SOLVER_SHRINK_AFTER_ITERATIONS and (
            abs(return_error) > constants.SOLVER_SHRINK_ERROR
            or abs(sum_error) > constants.SOLVER_SHRINK_ERROR
        ):
            step = max(config.min_step, step * constants.SOLVER_STEP_SHRINK)

        if abs(return_error) < constants.SOLVER_GROW_ERROR and abs(sum_error) < constants.SOLVER_GROW_ERROR:
            step = min(config.max_step, step * constants.SOLVER_STEP_GROW)

        if not minimize_only and abs(return_error) > constants.SOLVER_NUDGE_ERROR:
            updated = _nudge_toward_target(updated, expected_returns, target_return)

        if not np.all(np.isfinite(updated)):
            raise SolverError(f"Non-finite weights at iteration {iteration}")

        movement = float(np.max(np.abs(updated - weights)))
        weights = updated

        return_error = 0.0 if minimize_only else portfolio_return(weights, expected_returns) - target_return
        sum_error = float(weights.sum()) - 1.0

        if (
            movement < config.tolerance
            and abs(return_error) < config.tolerance
            and abs(sum_error) < config.tolerance
        ):
            break

    return weights, iteration


# ============================================================================
# Refinement
# ============================================================================


def return_nudge(
    weights: np.ndarray,
    expected_returns: np.ndarray,
    current_return: float,
    error: float,
    step: float,
) -> np.ndarray:
    """Shift weight toward assets whose return moves the portfolio by ``error``.

    Each weight moves by error * step * min(1, 10|error|) * (mu_i - current)
    * (w_i + 0.01); the 0.01 floor lets empty assets re-enter. Result is
    clipped at zero but not renormalized.
    """
    factor = error * step * min(1.0, abs(error) * 10.0)
    adjustment = factor * (expected_returns - current_return) * (weights + constants.REFINE_WEIGHT_FLOOR)
    return np.maximum(0.0, weights + adjustment)


def refine_toward_target(
    weights: np.ndarray,
    expected_returns: np.ndarray,
    target_return: float,
    max_iterations: int = constants.REFINE_MAX_ITERATIONS,
    tolerance: float = constants.REFINE_TOLERANCE,
) -> np.ndarray:
    """Tighten the return match with accept-if-better nudges.

    Stops when the error drops below ``tolerance``, when an unreachable
    target is already pinned at the best single asset, or when 20
    passes in a row fail to improve the error by at least 1%.
    """
    mu = np.asarray(expected_returns, dtype=float)
    best = np.asarray(weights, dtype=float).copy()

    current = portfolio_return(best, mu)
    error = abs(current - target_return)
    previous_error = error
    step = constants.REFINE_INITIAL_STEP

    max_ret = float(mu.max())
    unreachable = target_return > max_ret

    for iteration in range(max_iterations):
        if error < tolerance:
            break
        if unreachable and abs(current - max_ret) < constants.SOLVER_TOLERANCE:
            break

        candidate = return_nudge(best, mu, current, target_return - current, step)
        total = candidate.sum()
        if total <= constants.MIN_WEIGHT_SUM:
            break
        candidate = candidate / total

        candidate_return = portfolio_return(candidate, mu)
        candidate_error = abs(candidate_return - target_return)

        if candidate_error < error:
            best = candidate
            current = candidate_return
            previous_error = error
            error = candidate_error
            step = min(1.0, step * constants.REFINE_STEP_GROWTH)
        else:
            step = max(constants.REFINE_MIN_STEP, step * constants.REFINE_STEP_DECAY)

        if iteration > 20 and error >= previous_error * 0.99:
            break

    return best


# ============================================================================
# Entry point
# ============================================================================


def solve_markowitz(
    covariance: np.ndarray,
    expected_returns: np.ndarray,
    target_return: float | None = None,
    config: SolverConfig = DEFAULT_SOLVER_CONFIG,
) -> SolveResult:
    """Minimum-variance weights for a target return (or global minimum variance).

    Args:
        covariance: n x n covariance matrix
        expected_returns: Decimal expected returns (length n)
        target_return: Decimal target return, or None for minimum variance
        config: Iteration caps and step schedule

    Returns:
        Converged with the iterated weights, or Interpolated if any step
        failed numerically. Weights are always non-negative and sum to 1.

    Raises:
        InputValidationError: if shapes are inconsistent or empty
    """
    cov = np.asarray(covariance, dtype=float)
    mu = np.asarray(expected_returns, dtype=float)
    n = len(mu)

    if n == 0:
        raise InputValidationError("At least one asset is required", field="expected_returns")
    if cov.shape != (n, n):
        raise InputValidationError(
            f"Covariance shape {cov.shape} does not match {n} expected returns",
            field="covariance",
            value=cov.shape,
        )

    if n == 1:
        return Converged(weights=np.ones(1), iterations=0)

    try:
        with np.errstate(over="raise", invalid="raise", divide="raise"):
            if not (np.all(np.isfinite(cov)) and np.all(np.isfinite(mu))):
                raise SolverError("Covariance or expected returns contain non-finite values")

            weights, iterations = _projected_gradient(cov, mu, target_return, config)

            if target_return is not None:
                weights = refine_toward_target(
                    weights,
                    mu,
                    target_return,
                    max_iterations=config.refine_iterations,
                    tolerance=config.refine_tolerance,
                )

            validate_weights(weights)
    except (ArithmeticError, np.linalg.LinAlgError, SolverError) as e:
        logger.warning(f"Markowitz solve failed ({type(e).__name__}: {e}); using interpolation")
        with np.errstate(all="ignore"):
            fallback = interpolate_weights(cov, mu, target_return)
        return Interpolated(weights=fallback, reason=str(e))

    return_error = 0.0 if target_return is None else abs(portfolio_return(weights, mu) - target_return)
    return Converged(weights=weights, iterations=iterations, return_error=return_error)
