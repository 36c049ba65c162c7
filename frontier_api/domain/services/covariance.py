"""Covariance estimation from aligned price histories.

Turns per-asset price series into daily simple returns, aligns them by
truncating to the shortest series, and estimates a population
covariance matrix. A fixed-correlation matrix built from annualized
risks stands in when no return data survives alignment.
"""

import logging
from collections.abc import Mapping, Sequence

import numpy as np
import pandas as pd

from frontier_api.domain.constants import DEFAULT_FALLBACK_CORRELATION
from frontier_api.domain.exceptions import InputValidationError, InsufficientDataError

logger = logging.getLogger(__name__)


def daily_returns(prices: Sequence[float]) -> np.ndarray:
    """Compute simple daily returns from a price series.

    Return i is (p[i] - p[i-1]) / p[i-1]. Pairs whose preceding price is
    not positive are skipped rather than zero-filled, so the output can
    be shorter than len(prices) - 1.

    Args:
        prices: Ordered prices, oldest first

    Returns:
        1-D array of daily returns
    """
    values = np.asarray(prices, dtype=float)
    if values.size < 2:
        return np.empty(0, dtype=float)

    previous = values[:-1]
    current = values[1:]
    valid = previous > 0

    return (current[valid] - previous[valid]) / previous[valid]


def align_returns(returns: Mapping[str, Sequence[float]]) -> pd.DataFrame:
    """Align return series by truncating each to the shortest length.

    The leading observations of every series are kept, matching the
    caller's convention that all price series start on the same day.

    Args:
        returns: Dict mapping symbol -> daily returns

    Returns:
        DataFrame with columns = symbols (input order), rows = periods
    """
    if not returns:
        return pd.DataFrame()

    min_length = min(len(r) for r in returns.values())
    aligned = {
        symbol: np.asarray(series, dtype=float)[:min_length]
        for symbol, series in returns.items()
    }
    return pd.DataFrame(aligned)


def compute_covariance(returns: pd.DataFrame) -> pd.DataFrame:
    """Population covariance of aligned daily returns.

    cov[i, j] = mean((r_i - mean(r_i)) * (r_j - mean(r_j)))

    Args:
        returns: Aligned returns, columns = symbols

    Returns:
        Symmetric covariance matrix (DataFrame indexed by symbol)

    Raises:
        InsufficientDataError: if the aligned length is 0
    """
    if returns.empty or len(returns.index) == 0:
        raise InsufficientDataError(
            "No return data available for covariance estimation",
            required=1,
            available=0,
        )

    cov = returns.cov(ddof=0)

    # Enforce exact symmetry against floating-point drift
    values = cov.to_numpy()
    values = 0.5 * (values + values.T)

    return pd.DataFrame(values, index=returns.columns, columns=returns.columns)


def fallback_covariance(
    symbols: Sequence[str],
    risks: Sequence[float],
    correlation: float = DEFAULT_FALLBACK_CORRELATION,
) -> pd.DataFrame:
    """Covariance matrix from per-asset risks and one assumed correlation.

    Diagonal entries are risk^2; off-diagonal entries are
    correlation * risk_i * risk_j.

    Args:
        symbols: Asset symbols (row/column labels)
        risks: Decimal risk per asset, aligned with symbols
        correlation: Assumed pairwise correlation

    Returns:
        Covariance matrix (DataFrame indexed by symbol)
    """
    sigma = np.asarray(risks, dtype=float)
    values = correlation * np.outer(sigma, sigma)
    np.fill_diagonal(values, sigma**2)

    return pd.DataFrame(values, index=list(symbols), columns=list(symbols))


def estimate_covariance(
    prices: Mapping[str, Sequence[float]],
    risks: Mapping[str, float | None] | None = None,
    correlation: float = DEFAULT_FALLBACK_CORRELATION,
) -> pd.DataFrame:
    """Estimate the covariance matrix for a set of price series.

    Uses the sample (population) covariance of aligned daily returns.
    When that is impossible and every asset has a risk figure, falls
    back to the fixed-correlation matrix.

    Args:
        prices: Dict mapping symbol -> prices (insertion order = asset order)
        risks: Optional dict mapping symbol -> decimal annualized risk
        correlation: Correlation assumed by the fallback

    Returns:
        Covariance matrix (DataFrame indexed by symbol)

    Raises:
        InsufficientDataError: if no returns survive alignment and the
            fallback cannot be built
    """
    symbols = list(prices.keys())
    returns = {symbol: daily_returns(series) for symbol, series in prices.items()}

    try:
        return compute_covariance(align_returns(returns))
    except InsufficientDataError:
        fallback_risks = [None if risks is None else risks.get(s) for s in symbols]
        if any(r is None for r in fallback_risks):
            raise

        logger.warning(
            f"Sample covariance unavailable for {symbols}; "
            f"using fixed correlation {correlation} fallback"
        )
        return fallback_covariance(symbols, fallback_risks, correlation)


def validate_correlation(correlation: float) -> float:
    """Check that an assumed correlation lies in [-1, 1]."""
    if not -1.0 <= correlation <= 1.0:
        raise InputValidationError(
            f"Fallback correlation must be between -1 and 1, got {correlation}",
            field="correlation",
            value=correlation,
        )
    return correlation
