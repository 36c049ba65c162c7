"""Portfolio optimization boundary.

Validates caller input, turns asset series into the covariance matrix
and return vector the domain services expect, and exposes the two
high-level operations: frontier computation and allocation resolution.

Input problems are reported as InputValidationError here; the numeric
core never sees them.
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from frontier_api.core.config import OptimizationSettings, get_settings
from frontier_api.domain import constants
from frontier_api.domain.entities import Allocation, AssetSeries, Frontier
from frontier_api.domain.exceptions import InputValidationError, InsufficientDataError
from frontier_api.domain.services.allocation import resolve_allocation
from frontier_api.domain.services.covariance import estimate_covariance
from frontier_api.domain.services.frontier import generate_frontier

logger = logging.getLogger(__name__)

OPTIMIZATION_METHOD = "Markowitz Mean-Variance Optimization (QP)"


# ============================================================================
# Data structures
# ============================================================================


@dataclass
class PreparedAssets:
    """Assets that passed validation, with their optimizer inputs."""

    symbols: list[str]

    # Decimal annualized returns, aligned with symbols
    expected_returns: np.ndarray

    # Covariance of daily returns, indexed by symbol
    covariance: pd.DataFrame

    # Symbols dropped for missing return or too few prices
    symbols_excluded: list[str] = field(default_factory=list)


@dataclass
class FrontierResult:
    """Frontier plus the metadata reported alongside it."""

    frontier: Frontier
    symbols: list[str]
    symbols_excluded: list[str]
    method: str = OPTIMIZATION_METHOD

    def to_dict(self) -> dict:
        """Convert to dictionary, applying the output rounding rules."""
        points = [
            {
                "risk": round(p.risk, constants.RISK_DECIMALS),
                "expected_return": round(p.expected_return, constants.RETURN_DECIMALS),
                "weights": {
                    symbol: round(w, constants.FRONTIER_WEIGHT_DECIMALS)
                    for symbol, w in p.weights.items()
                },
            }
            for p in self.frontier.points
        ]
        returns = [p["expected_return"] for p in points]

        return {
            "points": points,
            "min_return": min(returns) if returns else 0.0,
            "max_return": max(returns) if returns else 0.0,
            "summary": {
                "method": self.method,
                "frontier_points": len(points),
                "assets": self.symbols,
                "symbols_excluded": self.symbols_excluded,
                "fallback_points": self.frontier.fallback_points,
            },
        }


# ============================================================================
# Validation helpers
# ============================================================================


def normalize_symbol(symbol: str) -> str:
    """Canonical ticker form: stripped, upper case."""
    return symbol.strip().upper()


def _is_usable(asset: AssetSeries) -> bool:
    if asset.annual_return is None or not math.isfinite(asset.annual_return):
        return False
    if len(asset.prices) < constants.MIN_PRICE_POINTS:
        return False
    return all(math.isfinite(p) for p in asset.prices)


def filter_assets(assets: Sequence[AssetSeries]) -> tuple[list[AssetSeries], list[str]]:
    """Split assets into usable ones and excluded symbols.

    An asset is usable with a finite return and at least two finite
    prices. Repeated symbols keep their first occurrence.

    Returns:
        Tuple of (usable assets with normalized symbols, excluded symbols)
    """
    usable: list[AssetSeries] = []
    excluded: list[str] = []
    seen: set[str] = set()

    for asset in assets:
        symbol = normalize_symbol(asset.symbol)
        if symbol in seen or not _is_usable(asset):
            excluded.append(symbol)
            continue

        seen.add(symbol)
        usable.append(
            AssetSeries(
                symbol=symbol,
                annual_return=asset.annual_return,
                prices=list(asset.prices),
                annual_risk=asset.annual_risk,
            )
        )

    if excluded:
        logger.info(f"Excluded {len(excluded)} assets without usable data: {excluded}")

    return usable, excluded


def _build_inputs(
    usable: list[AssetSeries],
    excluded: list[str],
    fallback_correlation: float,
) -> PreparedAssets:
    prices = {a.symbol: a.prices for a in usable}
    risks = {a.symbol: a.annual_risk_decimal for a in usable}

    try:
        covariance = estimate_covariance(prices, risks, fallback_correlation)
    except InsufficientDataError as e:
        raise InputValidationError(
            "Price data is empty or misaligned: no daily returns could be computed",
            field="prices",
        ) from e

    return PreparedAssets(
        symbols=[a.symbol for a in usable],
        expected_returns=np.array([a.annual_return_decimal for a in usable]),
        covariance=covariance,
        symbols_excluded=excluded,
    )


def prepare_assets(
    assets: Sequence[AssetSeries],
    fallback_correlation: float = constants.DEFAULT_FALLBACK_CORRELATION,
) -> PreparedAssets:
    """Validate assets and build the optimizer inputs.

    Args:
        assets: Caller-supplied asset series
        fallback_correlation: Correlation for the fallback covariance

    Returns:
        PreparedAssets for the usable subset

    Raises:
        InputValidationError: if fewer than 2 assets are usable or no
            daily returns survive alignment
    """
    if len(assets) < constants.MIN_ASSETS:
        raise InputValidationError(
            f"At least {constants.MIN_ASSETS} assets are required for portfolio optimization",
            field="assets",
            value=len(assets),
        )

    usable, excluded = filter_assets(assets)
    if len(usable) < constants.MIN_ASSETS:
        raise InputValidationError(
            f"At least {constants.MIN_ASSETS} assets with valid data are required",
            field="assets",
            value=excluded,
        )

    return _build_inputs(usable, excluded, fallback_correlation)


# ============================================================================
# High-level API
# ============================================================================


def compute_frontier(
    assets: Sequence[AssetSeries],
    num_points: int | None = None,
    settings: OptimizationSettings | None = None,
) -> FrontierResult:
    """Compute the efficient frontier for a set of assets.

    This is the main entry point for frontier computation.

    Args:
        assets: Asset series with annualized returns
        num_points: Frontier size (defaults to the configured size)
        settings: Runtime settings (defaults to the environment)

    Returns:
        FrontierResult with the frontier and asset metadata
    """
    settings = settings or get_settings()
    num_points = num_points or settings.num_points

    prepared = prepare_assets(assets, settings.fallback_correlation)

    frontier = generate_frontier(
        prepared.covariance.to_numpy(),
        prepared.expected_returns,
        prepared.symbols,
        num_points=num_points,
    )

    if len(frontier.points) < num_points / 2:
        logger.warning(f"Only generated {len(frontier.points)} frontier points, expected around {num_points}")
    else:
        logger.info(f"Successfully generated {len(frontier.points)} frontier points")

    return FrontierResult(
        frontier=frontier,
        symbols=prepared.symbols,
        symbols_excluded=prepared.symbols_excluded,
    )


def validate_allocation_request(
    expected_return: float,
    investment_amount: float,
    frontier: Frontier | None,
) -> None:
    """Boundary checks for an allocation request.

    Raises:
        InputValidationError: on a non-positive amount, or a requested
            return outside the supplied frontier's range
    """
    if not math.isfinite(investment_amount) or investment_amount <= 0:
        raise InputValidationError(
            "Investment amount must be a positive number",
            field="investment_amount",
            value=investment_amount,
        )

    if not math.isfinite(expected_return):
        raise InputValidationError(
            "Expected return must be a finite number",
            field="expected_return",
            value=expected_return,
        )

    if frontier is not None and not frontier.min_return <= expected_return <= frontier.max_return:
        raise InputValidationError(
            f"Expected return must be between {frontier.min_return}% and {frontier.max_return}%",
            field="expected_return",
            value=expected_return,
        )


def compute_allocation(
    expected_return: float,
    investment_amount: float,
    assets: Sequence[AssetSeries] | None = None,
    frontier: Frontier | None = None,
    settings: OptimizationSettings | None = None,
) -> Allocation:
    """Find the minimum-risk allocation for a requested return.

    Solves directly when at least two usable assets are supplied;
    otherwise (or when solving misses the target) relies on the
    frontier.

    Args:
        expected_return: Requested annualized return in percent
        investment_amount: Amount to allocate (> 0)
        assets: Asset series, optional
        frontier: Previously computed frontier, optional
        settings: Runtime settings (defaults to the environment)

    Returns:
        Allocation with per-asset percent and amount

    Raises:
        InputValidationError: on invalid amount or out-of-range return
        UnresolvedAllocationError: if neither assets nor frontier can
            produce a weight vector
    """
    settings = settings or get_settings()
    validate_allocation_request(expected_return, investment_amount, frontier)

    prepared: PreparedAssets | None = None
    if assets:
        usable, excluded = filter_assets(assets)
        if len(usable) >= constants.MIN_ASSETS:
            prepared = _build_inputs(usable, excluded, settings.fallback_correlation)

    allocation = resolve_allocation(
        target_return_pct=expected_return,
        investment_amount=investment_amount,
        symbols=prepared.symbols if prepared else None,
        covariance=prepared.covariance.to_numpy() if prepared else None,
        expected_returns=prepared.expected_returns if prepared else None,
        frontier=frontier,
    )

    logger.info(
        f"Resolved allocation for {expected_return:.2f}% via {allocation.method}, "
        f"deviation {allocation.return_deviation:.4f} percentage points"
    )
    return allocation
