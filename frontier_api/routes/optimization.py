"""Portfolio optimization endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from frontier_api.core.config import OptimizationSettings, get_settings
from frontier_api.core.optimization import (
    FrontierResult,
    compute_allocation,
    compute_frontier,
)
from frontier_api.domain import constants
from frontier_api.domain.entities import AssetSeries, Frontier, FrontierPoint
from frontier_api.domain.exceptions import DataError, OptimizationError

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Request / Response models
# ============================================================================


class AssetInput(BaseModel):
    """One asset with its return estimate and price history."""

    symbol: str = Field(..., min_length=1, description="Ticker symbol")
    annual_return: float | None = Field(
        None,
        description="Expected annualized return in percent (e.g. 10.0 = 10%)",
    )
    annual_risk: float | None = Field(
        None,
        ge=0,
        description="Annualized volatility in percent, used only if covariance cannot be estimated",
    )
    prices: list[float] = Field(
        default_factory=list,
        description="Chronological closing prices",
    )

    def to_entity(self) -> AssetSeries:
        return AssetSeries(
            symbol=self.symbol,
            annual_return=self.annual_return,
            prices=self.prices,
            annual_risk=self.annual_risk,
        )


class FrontierRequest(BaseModel):
    """Request model for the frontier endpoint."""

    assets: list[AssetInput] = Field(..., description="Candidate assets (at least 2 with valid data)")
    num_points: int | None = Field(
        None,
        ge=2,
        le=constants.MAX_FRONTIER_POINTS,
        description="Number of frontier points (defaults to FRONTIER_NUM_POINTS, 500)",
    )


class FrontierPointModel(BaseModel):
    """A single point on the efficient frontier."""

    risk: float = Field(..., description="Portfolio risk in percent")
    expected_return: float = Field(..., description="Portfolio return in percent")
    weights: dict[str, float] = Field(..., description="Decimal weight per symbol (sum to 1)")


class FrontierSummary(BaseModel):
    method: str
    frontier_points: int
    assets: list[str]
    symbols_excluded: list[str] = Field(default_factory=list)
    fallback_points: int = Field(0, description="Frontier targets served by the interpolation fallback")


class FrontierResponse(BaseModel):
    """Response model for the frontier endpoint."""

    points: list[FrontierPointModel] = Field(..., description="Frontier points ordered by risk")
    min_return: float = Field(..., description="Lowest return on the frontier (percent)")
    max_return: float = Field(..., description="Highest return on the frontier (percent)")
    summary: FrontierSummary


class FrontierInput(BaseModel):
    """A previously computed frontier, echoed back for allocation."""

    points: list[FrontierPointModel]
    min_return: float
    max_return: float

    def to_entity(self) -> Frontier:
        return Frontier(
            points=[
                FrontierPoint(risk=p.risk, expected_return=p.expected_return, weights=p.weights)
                for p in self.points
            ],
            min_return=self.min_return,
            max_return=self.max_return,
        )


class AllocationRequest(BaseModel):
    """Request model for the allocation endpoint."""

    expected_return: float = Field(..., description="Requested annualized return in percent")
    investment_amount: float = Field(..., gt=0, description="Amount to allocate")
    frontier: FrontierInput | None = Field(
        None,
        description="Frontier from /optimization/frontier; bounds the requested return",
    )
    assets: list[AssetInput] | None = Field(
        None,
        description="Asset data for solving directly at the requested return",
    )


class HoldingModel(BaseModel):
    percent: float = Field(..., description="Share of the portfolio in percent (2 dp)")
    amount: float = Field(..., description="Amount allocated (2 dp)")


class PortfolioMetrics(BaseModel):
    expected_return: float = Field(..., description="Achieved return in percent")
    requested_return: float = Field(..., description="Requested return in percent")
    risk: float = Field(..., description="Portfolio risk in percent")


class AllocationResponse(BaseModel):
    """Response model for the allocation endpoint."""

    allocations: dict[str, HoldingModel] = Field(
        ...,
        description="Percent and amount per symbol, largest allocation first",
    )
    portfolio_metrics: PortfolioMetrics
    explanation: str
    investment_amount: float
    method: str = Field(
        ...,
        description=(
            "How the weights were found: solver, solver_refined, interpolated, "
            "frontier or frontier_resolved"
        ),
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/frontier", response_model=FrontierResponse)
def efficient_frontier(
    request: FrontierRequest,
    settings: OptimizationSettings = Depends(get_settings),
) -> FrontierResponse:
    """Compute the efficient frontier for the supplied assets.

    The frontier runs from the minimum-variance portfolio to the single
    highest-return asset. Each point is the long-only, fully invested
    portfolio with the lowest risk for its return.

    Raises:
        HTTPException 400: on invalid or insufficient asset data
    """
    try:
        result: FrontierResult = compute_frontier(
            [a.to_entity() for a in request.assets],
            num_points=request.num_points,
            settings=settings,
        )
    except (DataError, OptimizationError) as e:
        logger.info(f"Frontier request rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e

    return FrontierResponse(**result.to_dict())


@router.post("/allocation", response_model=AllocationResponse)
def optimal_allocation(
    request: AllocationRequest,
    settings: OptimizationSettings = Depends(get_settings),
) -> AllocationResponse:
    """Find the minimum-risk allocation for a requested return.

    Requests above the best single-asset return are served with the
    maximum-return portfolio. When a frontier is supplied the requested
    return must lie within its range.

    Raises:
        HTTPException 400: on invalid input or if no allocation can be found
    """
    try:
        allocation = compute_allocation(
            expected_return=request.expected_return,
            investment_amount=request.investment_amount,
            assets=[a.to_entity() for a in request.assets] if request.assets else None,
            frontier=request.frontier.to_entity() if request.frontier else None,
            settings=settings,
        )
    except (DataError, OptimizationError) as e:
        logger.info(f"Allocation request rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e

    holdings = sorted(allocation.holdings, key=lambda h: h.percent, reverse=True)

    return AllocationResponse(
        allocations={h.symbol: HoldingModel(percent=h.percent, amount=h.amount) for h in holdings},
        portfolio_metrics=PortfolioMetrics(
            expected_return=round(allocation.portfolio_return, constants.RETURN_DECIMALS),
            requested_return=round(allocation.requested_return, constants.RETURN_DECIMALS),
            risk=round(allocation.portfolio_risk, constants.RISK_DECIMALS),
        ),
        explanation=allocation.explanation,
        investment_amount=round(allocation.investment_amount, constants.AMOUNT_DECIMALS),
        method=allocation.method,
    )
