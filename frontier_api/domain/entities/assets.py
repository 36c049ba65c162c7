"""Asset input entities."""

from dataclasses import dataclass, field


@dataclass
class AssetSeries:
    """One asset's input to the optimizer.

    Prices are already currency-normalized and gap-handled by the caller.
    The engine never mutates them.
    """

    symbol: str

    # Expected annualized return in percent (e.g. 12.5 means 12.5%)
    annual_return: float | None

    # Ordered closing prices, oldest first
    prices: list[float] = field(default_factory=list)

    # Annualized risk in percent; only used by the fallback covariance
    annual_risk: float | None = None

    @property
    def annual_return_decimal(self) -> float:
        """Annualized return as a decimal (12.5 -> 0.125)."""
        return self.annual_return / 100.0

    @property
    def annual_risk_decimal(self) -> float | None:
        """Annualized risk as a decimal, or None when not supplied."""
        if self.annual_risk is None:
            return None
        return self.annual_risk / 100.0
