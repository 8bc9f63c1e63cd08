"""
REST API endpoints for demand, seating and turnover analytics.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tablequeue.database import get_session
from tablequeue.schemas.analytics import (
    AllocationStrategyName,
    AllocationStrategyRead,
    ApplyTurnoverRequest,
    CapacityRecommendationRead,
    DailyDemandForecastRead,
    DemandForecastResponse,
    DemandIncentiveRead,
    DemandPredictionRead,
    DemandShiftingResponse,
    OptimizationSuggestionRead,
    TableAllocationRead,
    TableAssignmentResponse,
    TableAvailabilityRead,
    TableConfigurationRead,
    TableCountRecommendationRead,
    TableEfficiencyRead,
    TurnoverAnalysisRead,
    TurnoverReportResponse,
    TurnoverSummaryRead,
    WaitEstimateRead,
    WaitTimeReductionRead,
)
from tablequeue.schemas.table_type import TableTypeRead
from tablequeue.services.analytics_service import AnalyticsService
from tablequeue.services.table_type_service import TableTypeService
from tablequeue.services.turnover_analyzer import describe_turnover_analysis

router = APIRouter(prefix="/api/v1", tags=["analytics"])


@router.get(
    "/restaurants/{restaurant_id}/analytics/demand",
    response_model=DemandForecastResponse,
)
async def get_demand_forecast(
    restaurant_id: UUID,
    weather_factor: float = Query(1.0, gt=0, description="1.0 is neutral, higher is worse weather"),
    special_events: Optional[List[str]] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> DemandForecastResponse:
    """Predicted demand for the next four hours and capacity recommendations."""
    now = datetime.utcnow()
    service = AnalyticsService(session)
    forecast = await service.predict_demand(
        restaurant_id,
        weather_factor=weather_factor,
        special_events=special_events or (),
        now=now,
    )
    return DemandForecastResponse(
        restaurant_id=restaurant_id,
        generated_at=now,
        predictions=[DemandPredictionRead.model_validate(p) for p in forecast.predictions],
        recommendations=[
            CapacityRecommendationRead.model_validate(r) for r in forecast.recommendations
        ],
    )


@router.get(
    "/restaurants/{restaurant_id}/analytics/optimization",
    response_model=List[OptimizationSuggestionRead],
)
async def get_seating_suggestions(
    restaurant_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> List[OptimizationSuggestionRead]:
    """Seating suggestions for waiting and notified parties, most confident first."""
    service = AnalyticsService(session)
    suggestions = await service.analyze_waitlist_optimization(restaurant_id)
    return [OptimizationSuggestionRead.model_validate(s) for s in suggestions]


@router.get(
    "/restaurants/{restaurant_id}/analytics/turnover",
    response_model=TurnoverReportResponse,
)
async def get_turnover_report(
    restaurant_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> TurnoverReportResponse:
    """Configured vs measured turnover per table type."""
    service = AnalyticsService(session)
    analyses, summary = await service.analyze_turnover(restaurant_id)

    reads = []
    for analysis in analyses:
        read = TurnoverAnalysisRead.model_validate(analysis)
        read.description = describe_turnover_analysis(analysis)
        reads.append(read)

    return TurnoverReportResponse(
        restaurant_id=restaurant_id,
        analyses=reads,
        summary=TurnoverSummaryRead.model_validate(summary) if summary else None,
    )


@router.post(
    "/restaurants/{restaurant_id}/analytics/turnover/apply",
    response_model=List[TableTypeRead],
)
async def apply_turnover_recommendations(
    restaurant_id: UUID,
    data: Optional[ApplyTurnoverRequest] = None,
    session: AsyncSession = Depends(get_session),
) -> List[TableTypeRead]:
    """Write recommended turnover times back to the table inventory."""
    table_type_service = TableTypeService(session)
    analytics = AnalyticsService(session, table_type_service)

    analyses, _ = await analytics.analyze_turnover(restaurant_id)
    updated = await table_type_service.apply_turnover_recommendations(
        restaurant_id,
        analyses,
        data.table_type_ids if data else None,
    )
    return [TableTypeRead.model_validate(t) for t in updated]


@router.get(
    "/restaurants/{restaurant_id}/analytics/wait-estimate",
    response_model=WaitEstimateRead,
)
async def get_wait_estimate(
    restaurant_id: UUID,
    party_size: int = Query(..., ge=1, le=50),
    session: AsyncSession = Depends(get_session),
) -> WaitEstimateRead:
    """Quote a wait for a party before they join."""
    service = AnalyticsService(session)
    estimate = await service.estimate_wait(restaurant_id, party_size)
    return WaitEstimateRead.model_validate(estimate)


@router.get(
    "/restaurants/{restaurant_id}/analytics/table-configuration",
    response_model=TableConfigurationRead,
)
async def get_table_configuration(
    restaurant_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> TableConfigurationRead:
    """Compare seated party sizes with the floor plan's seat mix."""
    service = AnalyticsService(session)
    analysis = await service.table_configuration_needs(restaurant_id)
    return TableConfigurationRead.model_validate(analysis)


@router.get(
    "/restaurants/{restaurant_id}/analytics/availability",
    response_model=List[TableAvailabilityRead],
)
async def get_table_availability(
    restaurant_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> List[TableAvailabilityRead]:
    """Free and occupied tables per type, with turnover predicted for this hour."""
    service = AnalyticsService(session)
    availability = await service.table_availability(restaurant_id)
    return [TableAvailabilityRead.model_validate(a) for a in availability]


@router.get(
    "/restaurants/{restaurant_id}/analytics/allocation-strategy",
    response_model=AllocationStrategyRead,
)
async def get_allocation_strategy(
    restaurant_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> AllocationStrategyRead:
    """Allocation strategy suited to the current queue length."""
    service = AnalyticsService(session)
    strategy = await service.recommended_allocation_strategy(restaurant_id)
    return AllocationStrategyRead.model_validate(strategy)


@router.get(
    "/restaurants/{restaurant_id}/analytics/table-assignment/{entry_id}",
    response_model=TableAssignmentResponse,
)
async def get_table_assignment(
    restaurant_id: UUID,
    entry_id: int,
    strategy: Optional[AllocationStrategyName] = Query(None),
    session: AsyncSession = Depends(get_session),
) -> TableAssignmentResponse:
    """Free table type for one queued party. Nothing is reserved."""
    service = AnalyticsService(session)
    chosen, allocation = await service.assign_table(
        restaurant_id,
        entry_id,
        strategy.value if strategy else None,
    )
    return TableAssignmentResponse(
        entry_id=entry_id,
        strategy=AllocationStrategyRead.model_validate(chosen),
        allocation=TableAllocationRead.model_validate(allocation) if allocation else None,
        message=None if allocation else "No suitable table is free",
    )


@router.get(
    "/restaurants/{restaurant_id}/analytics/table-efficiency",
    response_model=List[TableEfficiencyRead],
)
async def get_table_efficiency(
    restaurant_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> List[TableEfficiencyRead]:
    service = AnalyticsService(session)
    metrics = await service.table_efficiency(restaurant_id)
    return [TableEfficiencyRead.model_validate(m) for m in metrics]


@router.get(
    "/restaurants/{restaurant_id}/analytics/wait-reduction",
    response_model=WaitTimeReductionRead,
)
async def get_wait_reduction(
    restaurant_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> WaitTimeReductionRead:
    """Expected wait saved by smarter table allocation."""
    service = AnalyticsService(session)
    reduction = await service.wait_time_reduction(restaurant_id)
    return WaitTimeReductionRead.model_validate(reduction)


@router.get(
    "/restaurants/{restaurant_id}/analytics/capacity-plan",
    response_model=List[TableCountRecommendationRead],
)
async def get_capacity_plan(
    restaurant_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> List[TableCountRecommendationRead]:
    """Recommended table count per type from the party-size mix."""
    service = AnalyticsService(session)
    recommendations = await service.optimal_capacity(restaurant_id)
    return [TableCountRecommendationRead.model_validate(r) for r in recommendations]


@router.get(
    "/restaurants/{restaurant_id}/analytics/demand-shifting",
    response_model=DemandShiftingResponse,
)
async def get_demand_shifting(
    restaurant_id: UUID,
    day_of_week: Optional[int] = Query(None, ge=0, le=6, description="0=Monday; defaults to today"),
    session: AsyncSession = Depends(get_session),
) -> DemandShiftingResponse:
    """Daily demand forecast and offers that move guests out of the rush."""
    service = AnalyticsService(session)
    forecast, incentives = await service.demand_shifting(restaurant_id, day_of_week)
    return DemandShiftingResponse(
        restaurant_id=restaurant_id,
        forecast=DailyDemandForecastRead.model_validate(forecast),
        incentives=[DemandIncentiveRead.model_validate(i) for i in incentives],
    )
