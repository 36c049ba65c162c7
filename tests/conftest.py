"""Pytest configuration and fixtures for all tests.

This module ensures tests run in isolation from production environment variables.
"""

import os

import numpy as np
import pytest

from frontier_api.domain.entities import AssetSeries

# Environment variables read by frontier_api.core.config
FRONTIER_ENV_VARS = [
    "FRONTIER_NUM_POINTS",
    "FRONTIER_FALLBACK_CORRELATION",
]


@pytest.fixture(autouse=True)
def isolate_from_env():
    """Clear optimizer env vars before each test so defaults apply.

    This fixture runs automatically for every test (autouse=True).
    It saves original values, clears them for the test, then restores after.
    """
    original_values = {}
    for var in FRONTIER_ENV_VARS:
        if var in os.environ:
            original_values[var] = os.environ.pop(var)

    yield

    for var, value in original_values.items():
        os.environ[var] = value


def make_prices(days: int = 120, volatility: float = 0.01, drift: float = 0.0005, seed: int = 42) -> list[float]:
    """Geometric random-walk closing prices starting at 100."""
    rng = np.random.default_rng(seed)
    returns = rng.normal(drift, volatility, days)
    return (100 * np.exp(np.cumsum(returns))).tolist()


@pytest.fixture()
def sample_assets() -> list[AssetSeries]:
    """Four assets with distinct volatilities and returns."""
    return [
        AssetSeries(symbol="AAPL", annual_return=12.0, prices=make_prices(volatility=0.015, seed=1)),
        AssetSeries(symbol="MSFT", annual_return=10.0, prices=make_prices(volatility=0.012, seed=2)),
        AssetSeries(symbol="KO", annual_return=6.0, prices=make_prices(volatility=0.006, seed=3)),
        AssetSeries(symbol="NVDA", annual_return=18.0, prices=make_prices(volatility=0.025, seed=4)),
    ]
