from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DemandPredictionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    time_slot: str
    predicted_wait_time: int
    predicted_party_size: float
    confidence_level: int
    factors: List[str]


class CapacityRecommendationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    recommended_action: str
    reasoning: str
    impact: int
    priority: str


class DemandForecastResponse(BaseModel):
    """Upcoming demand plus the capacity actions it suggests."""

    restaurant_id: UUID
    generated_at: datetime
    predictions: List[DemandPredictionRead]
    recommendations: List[CapacityRecommendationRead]


class TableAssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    table_type_id: UUID
    table_count: int
    confidence: int
    reasoning: str


class OptimizationSuggestionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    action: str
    party_id: Optional[int] = None
    table_assignment: Optional[TableAssignmentRead] = None
    estimated_wait_reduction: Optional[int] = None
    reasoning: str
    confidence: int


class TurnoverRecommendationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    suggested_time: int
    percent_difference: int


class TurnoverAnalysisRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    table_type_id: UUID
    table_name: str
    actual_turnover_time: int
    sample_size: int
    confidence: str
    recommendation: Optional[TurnoverRecommendationRead] = None
    description: Optional[str] = None


class TurnoverSummaryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_tables_analyzed: int
    tables_needing_adjustment: int
    average_turnover_time: int
    confidence: str


class TurnoverReportResponse(BaseModel):
    restaurant_id: UUID
    analyses: List[TurnoverAnalysisRead]
    summary: Optional[TurnoverSummaryRead] = None


class ApplyTurnoverRequest(BaseModel):
    """Table type ids whose recommendations should be written back; empty means all."""

    table_type_ids: List[UUID] = Field(default_factory=list)


class WaitEstimateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    estimated_wait_time: int
    confidence: str
    available_tables: int
    busy_level: int
    next_available_time: datetime
    recommended_arrival_time: Optional[datetime] = None


class SegmentMismatchRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    segment: str
    issue: str
    severity: str
    recommendation: str


class TableConfigurationRead(BaseModel):
    """Party-size mix vs seat mix, as percentages per size segment."""

    model_config = ConfigDict(from_attributes=True)

    party_size_distribution: Dict[str, int]
    capacity_distribution: Dict[str, int]
    recommendations: List[SegmentMismatchRead]
    utilization_score: float


class AllocationStrategyName(str, Enum):
    FIRST_FIT = "first_fit"
    BEST_FIT = "best_fit"
    OPTIMIZE_TURNOVER = "optimize_turnover"


class AllocationStrategyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    description: str
    recommended_for: str
    strategy: AllocationStrategyName


class TableAvailabilityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    table_type_id: UUID
    table_name: str
    capacity: int
    count: int
    occupied: int
    available: int
    estimated_turnover_time: int
    predicted_turnover_time: Optional[int] = None


class TableAllocationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry_id: int
    table_type_id: UUID
    table_name: str
    efficiency: int
    seat_wastage: int


class TableAssignmentResponse(BaseModel):
    """Table chosen for one party; ``allocation`` is None when nothing free fits."""

    entry_id: int
    strategy: AllocationStrategyRead
    allocation: Optional[TableAllocationRead] = None
    message: Optional[str] = None


class TableEfficiencyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    table_type_id: UUID
    table_name: str
    utilization: int
    average_wasted_seats: float
    recommendation: str
    seatings: int


class WaitTimeReductionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_average_wait: int
    estimated_reduced_wait: int
    wait_time_reduction: int
    recommendations: List[str]


class TableCountRecommendationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    table_type_id: UUID
    table_name: str
    current_count: int
    recommended_count: int
    rationale: str


class HourlyDemandRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hour: int
    demand: float
    is_high_demand: bool
    suggested_discount: int


class DemandShiftRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_hour: int
    to_hour: int
    potential_reduction: int


class DailyDemandForecastRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day_of_week: int
    hourly_demand: List[HourlyDemandRead]
    peak_hours: List[int]
    low_demand_hours: List[int]
    demand_shifts: List[DemandShiftRead]


class DemandIncentiveRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hour: int
    incentive: str
    discount_percentage: int
    message: str


class DemandShiftingResponse(BaseModel):
    restaurant_id: UUID
    forecast: DailyDemandForecastRead
    incentives: List[DemandIncentiveRead]
