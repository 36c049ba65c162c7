"""Allocation-related domain entities."""

from dataclasses import dataclass


@dataclass
class AssetAllocation:
    """Holding for a single asset."""

    symbol: str

    # Raw decimal weight
    weight: float

    # Percentage of the portfolio (2 dp; all assets sum to 100)
    percent: float

    # Absolute amount (2 dp; all assets sum to the investment amount)
    amount: float


@dataclass
class Allocation:
    """Result of resolving one target return into a portfolio."""

    holdings: list[AssetAllocation]

    # Achieved and requested annualized return, in percent
    portfolio_return: float
    requested_return: float

    # Portfolio standard deviation of daily returns, in percent
    portfolio_risk: float

    investment_amount: float

    # False when the request exceeded the best single-asset return
    target_achievable: bool = True

    # "solver", "solver_refined", "interpolated", "frontier" or "frontier_resolved"
    method: str = "solver"

    explanation: str = ""

    @property
    def return_deviation(self) -> float:
        """Absolute gap between achieved and requested return (percentage points)."""
        return abs(self.portfolio_return - self.requested_return)

    def weights_by_symbol(self) -> dict[str, float]:
        return {h.symbol: h.weight for h in self.holdings}
