"""Unit tests for allocation resolution."""

import logging

import numpy as np
import pytest

import frontier_api.domain.services.allocation as allocation_service
from frontier_api.domain.entities import AssetAllocation, Converged, Frontier, FrontierPoint
from frontier_api.domain.exceptions import UnresolvedAllocationError
from frontier_api.domain.services.allocation import (
    build_explanation,
    build_holdings,
    nearest_frontier_point,
    refine_allocation,
    resolve_allocation,
)
from frontier_api.domain.services.markowitz import portfolio_return, solve_markowitz

# 5% / 15% assets for the round-trip check
COV_LOW_HIGH = np.array([[0.04, 0.01], [0.01, 0.09]])
MU_LOW_HIGH = np.array([0.05, 0.15])

COV_2 = np.array([[0.04, 0.018], [0.018, 0.09]])
MU_2 = np.array([0.08, 0.12])


def _frontier(*points: tuple[float, float, dict[str, float]]) -> Frontier:
    """Build a frontier from (risk, expected_return, weights) tuples."""
    frontier_points = [FrontierPoint(risk=r, expected_return=ret, weights=w) for r, ret, w in points]
    returns = [p.expected_return for p in frontier_points]
    return Frontier(points=frontier_points, min_return=min(returns), max_return=max(returns))


class TestResolveAllocation:
    """Tests for resolve_allocation with asset data."""

    def test_round_trip_two_assets(self):
        """Requested 10% from 5% / 15% assets is met exactly."""
        allocation = resolve_allocation(10.0, 10_000, ["LOW", "HIGH"], COV_LOW_HIGH, MU_LOW_HIGH)

        assert allocation.portfolio_return == pytest.approx(10.0, abs=0.01)
        assert sum(h.percent for h in allocation.holdings) == pytest.approx(100.0, abs=0.5)
        assert allocation.target_achievable
        assert allocation.method == "solver"

    def test_amounts_sum_to_investment(self):
        allocation = resolve_allocation(10.0, 12_345.67, ["LOW", "HIGH"], COV_LOW_HIGH, MU_LOW_HIGH)

        assert sum(h.amount for h in allocation.holdings) == pytest.approx(12_345.67, abs=1e-6)

    def test_target_above_max_clamps_to_best_asset(self):
        allocation = resolve_allocation(25.0, 1000, ["LOW", "HIGH"], COV_LOW_HIGH, MU_LOW_HIGH)
        weights = allocation.weights_by_symbol()

        assert weights["HIGH"] == pytest.approx(1.0, abs=1e-3)
        assert allocation.portfolio_return == pytest.approx(15.0, abs=0.01)
        assert allocation.requested_return == 25.0
        assert not allocation.target_achievable
        assert "above what any single asset offers" in allocation.explanation

    def test_below_midpoint_overweights_low_variance_asset(self):
        allocation = resolve_allocation(9.5, 1000, ["A", "B"], COV_2, MU_2)
        weights = allocation.weights_by_symbol()

        assert weights["A"] > 0.5
        assert weights["A"] == pytest.approx(0.625, abs=1e-3)

    def test_singular_covariance_gives_valid_allocation(self):
        cov = np.full((2, 2), 0.0004)

        allocation = resolve_allocation(10.0, 1000, ["A", "B"], cov, MU_2)

        assert sum(h.weight for h in allocation.holdings) == pytest.approx(1.0, abs=1e-4)
        assert all(h.weight >= 0 for h in allocation.holdings)

    def test_explanation_mentions_exact_match(self):
        allocation = resolve_allocation(10.0, 1000, ["LOW", "HIGH"], COV_LOW_HIGH, MU_LOW_HIGH)
        assert "exactly 10.00%" in allocation.explanation


class TestResolveAllocationWithFrontier:
    """Tests for the frontier fallback."""

    def test_frontier_only(self):
        """Without assets the nearest frontier point is used as-is."""
        frontier = _frontier(
            (1.0, 8.0, {"A": 1.0, "B": 0.0}),
            (2.0, 10.0, {"A": 0.5, "B": 0.5}),
        )

        allocation = resolve_allocation(9.9, 1000, frontier=frontier)

        assert allocation.method == "frontier"
        assert allocation.portfolio_return == 10.0
        assert allocation.portfolio_risk == 2.0
        assert {h.symbol: h.percent for h in allocation.holdings} == {"A": 50.0, "B": 50.0}

    def test_close_solution_ignores_frontier(self):
        frontier = _frontier((1.0, 8.0, {"LOW": 1.0, "HIGH": 0.0}))

        allocation = resolve_allocation(10.0, 1000, ["LOW", "HIGH"], COV_LOW_HIGH, MU_LOW_HIGH, frontier)

        assert allocation.method == "solver"
        assert allocation.portfolio_return == pytest.approx(10.0, abs=0.01)

    def test_nothing_to_work_with_raises(self):
        with pytest.raises(UnresolvedAllocationError):
            resolve_allocation(10.0, 1000)

    def test_single_asset_without_frontier_raises(self):
        with pytest.raises(UnresolvedAllocationError):
            resolve_allocation(10.0, 1000, ["A"], np.array([[0.04]]), np.array([0.1]))

    def test_frontier_fallback_with_assets(self):
        """A target below every asset leaves a gap the frontier point has to cover."""
        frontier = _frontier(
            (20.0, 3.0, {"LOW": 1.0, "HIGH": 0.0}),
            (25.0, 12.0, {"LOW": 0.3, "HIGH": 0.7}),
        )

        allocation = resolve_allocation(3.0, 1000, ["LOW", "HIGH"], COV_LOW_HIGH, MU_LOW_HIGH, frontier)

        assert allocation.method.startswith("frontier")
        assert allocation.weights_by_symbol()["LOW"] == pytest.approx(1.0, abs=1e-3)
        assert allocation.portfolio_return == pytest.approx(5.0, abs=0.01)
        assert allocation.portfolio_risk == pytest.approx(20.0, abs=0.01)

    def test_stale_frontier_weights_are_resolved(self):
        """Point weights far from the point's return are replaced by a solve at that return."""
        frontier = _frontier(
            (20.0, 3.0, {"LOW": 0.0, "HIGH": 1.0}),
            (25.0, 12.0, {"LOW": 0.3, "HIGH": 0.7}),
        )

        allocation = resolve_allocation(3.0, 1000, ["LOW", "HIGH"], COV_LOW_HIGH, MU_LOW_HIGH, frontier)

        assert allocation.method == "frontier_resolved"
        assert allocation.weights_by_symbol()["LOW"] == pytest.approx(1.0, abs=1e-3)
        # The stale weights would have given 15%, 12 points off
        assert abs(allocation.portfolio_return - 3.0) < 12.0
        assert allocation.portfolio_return == pytest.approx(5.0, abs=0.01)

    def test_frontier_with_other_symbols_is_resolved(self, caplog):
        frontier = _frontier(
            (20.0, 3.0, {"X": 0.5, "Y": 0.5}),
            (25.0, 12.0, {"X": 0.3, "Y": 0.7}),
        )

        with caplog.at_level(logging.WARNING, logger="frontier_api.domain.services.allocation"):
            allocation = resolve_allocation(3.0, 1000, ["LOW", "HIGH"], COV_LOW_HIGH, MU_LOW_HIGH, frontier)

        assert "do not match" in caplog.text
        assert allocation.method == "frontier_resolved"
        assert set(allocation.weights_by_symbol()) == {"LOW", "HIGH"}
        assert allocation.weights_by_symbol()["LOW"] == pytest.approx(1.0, abs=1e-3)


class TestResolveAllocationRecovery:
    """Refinement and nearby-target retries after an off-target solve."""

    def test_off_target_solve_is_refined(self, monkeypatch):
        def off_target_solve(cov, mu, target, config):
            # 0.6 * 5% + 0.4 * 15% = 9%
            return Converged(weights=np.array([0.6, 0.4]), iterations=1, return_error=0.01)

        monkeypatch.setattr(allocation_service, "solve_markowitz", off_target_solve)

        allocation = resolve_allocation(10.0, 1000, ["LOW", "HIGH"], COV_LOW_HIGH, MU_LOW_HIGH)

        assert allocation.method == "solver_refined"
        assert abs(allocation.portfolio_return - 10.0) < 1.0
        assert sum(h.percent for h in allocation.holdings) == pytest.approx(100.0, abs=0.05)

    def test_residual_gap_is_closed_by_nearby_target(self, monkeypatch):
        targets = []

        def first_solve_misses(cov, mu, target, config):
            targets.append(target)
            if len(targets) == 1:
                # 0.52 * 5% + 0.48 * 15% = 9.8%
                return Converged(weights=np.array([0.52, 0.48]), iterations=1, return_error=0.002)
            return solve_markowitz(cov, mu, target, config)

        monkeypatch.setattr(allocation_service, "solve_markowitz", first_solve_misses)

        allocation = resolve_allocation(10.0, 1000, ["LOW", "HIGH"], COV_LOW_HIGH, MU_LOW_HIGH)

        assert len(targets) >= 2
        # Retries aim past the goal in the direction of the gap
        assert targets[1] > 0.10
        assert allocation.method == "solver_refined"
        assert allocation.portfolio_return == pytest.approx(10.0, abs=0.05)


class TestNearestFrontierPoint:
    """Tests for nearest_frontier_point."""

    def test_closest_return_wins(self):
        frontier = _frontier((1.0, 8.0, {}), (2.0, 10.0, {}), (3.0, 12.0, {}))
        assert nearest_frontier_point(frontier, 10.4).expected_return == 10.0

    def test_tie_prefers_lower_risk(self):
        """Equidistant points resolve to the lower-risk one in either order."""
        low_risk = (1.5, 9.0, {})
        high_risk = (2.5, 11.0, {})

        assert nearest_frontier_point(_frontier(low_risk, high_risk), 10.0).risk == 1.5
        assert nearest_frontier_point(_frontier(high_risk, low_risk), 10.0).risk == 1.5

    def test_empty_frontier(self):
        assert nearest_frontier_point(Frontier(points=[], min_return=0.0, max_return=0.0), 5.0) is None


class TestRefineAllocation:
    """Tests for refine_allocation."""

    def test_moves_toward_target(self):
        start = np.array([0.5, 0.5])
        refined = refine_allocation(start, MU_2, 0.11)

        assert abs(portfolio_return(refined, MU_2) - 0.11) < abs(portfolio_return(start, MU_2) - 0.11)
        assert refined.sum() == pytest.approx(1.0)
        assert np.all(refined >= 0)

    def test_never_worse_for_unreachable_target(self):
        start = np.array([0.0, 1.0])
        refined = refine_allocation(start, MU_2, 0.20)

        np.testing.assert_array_equal(refined, start)


class TestBuildHoldings:
    """Tests for build_holdings rounding."""

    def test_residual_goes_to_largest_holding(self):
        holdings = build_holdings(["A", "B", "C"], np.array([1 / 3, 1 / 3, 1 / 3]), 1000)

        assert sum(h.percent for h in holdings) == pytest.approx(100.0)
        assert sum(h.amount for h in holdings) == pytest.approx(1000.0)
        assert sorted(h.percent for h in holdings) == [33.33, 33.33, 33.34]

    def test_two_decimal_places(self):
        holdings = build_holdings(["A", "B"], np.array([0.123456, 0.876544]), 1000)

        assert holdings[0].percent == 12.35
        assert holdings[0].amount == 123.46
        assert holdings[1].percent == 87.65


class TestBuildExplanation:
    def test_mentions_largest_holding(self):
        holdings = [
            AssetAllocation(symbol="A", weight=0.3, percent=30.0, amount=300.0),
            AssetAllocation(symbol="B", weight=0.7, percent=70.0, amount=700.0),
        ]

        text = build_explanation(holdings, 10.5, 10.0, 12.0, target_achievable=True)

        assert "achieves a return of 10.50%" in text
        assert "largest allocation to B (70.00%)" in text
        assert "2 assets" in text
