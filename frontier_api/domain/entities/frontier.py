"""Efficient frontier entities."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FrontierPoint:
    """One (risk, return, weights) triple on the efficient frontier."""

    # Portfolio standard deviation of daily returns, in percent
    risk: float

    # Portfolio expected annualized return, in percent
    expected_return: float

    # symbol -> weight (decimal, sums to 1), in the caller's asset order
    weights: dict[str, float] = field(default_factory=dict)


@dataclass
class Frontier:
    """Ordered frontier, ascending by risk.

    ``min_return``/``max_return`` are the bounds of the produced points,
    not the theoretical bounds of the asset universe.
    """

    points: list[FrontierPoint]
    min_return: float
    max_return: float

    # Number of targets where the solver fell back to interpolation
    fallback_points: int = 0

    @property
    def symbols(self) -> list[str]:
        """Asset symbols in the order the weights were attached."""
        if not self.points:
            return []
        return list(self.points[0].weights.keys())
