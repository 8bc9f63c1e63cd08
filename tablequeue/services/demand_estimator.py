"""Heuristic demand estimation for waitlist wait times and capacity planning.

Every function in this module is pure: callers load historical samples and
table inventory from their stores and pass them in.

Hourly predictions start from the historical average for the same weekday
(within one hour of the target slot) and then run through ``DEMAND_RULES``,
an ordered table of named adjustments. Each rule that fires multiplies the
wait and/or party size and contributes a factor label to the prediction.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from tablequeue.schemas.waitlist import WaitlistStatus

# Cold-start values when no historical bucket matches
DEFAULT_WAIT_TIME = 20.0
DEFAULT_PARTY_SIZE = 3.5

PREDICTION_HOURS = 4
HOUR_TOLERANCE = 1

BASE_CONFIDENCE = 60
MAX_CONFIDENCE = 95
CONFIDENCE_PER_FACTOR = 5
# (minimum sample count, bonus), checked in order
SAMPLE_VOLUME_BONUSES: Tuple[Tuple[int, int], ...] = ((50, 20), (20, 10), (10, 5))

# (label, first hour, last hour, wait multiplier); only the first match applies
RUSH_BANDS: Tuple[Tuple[str, int, int, float], ...] = (
    ("Lunch rush", 11, 13, 1.4),
    ("Dinner rush", 18, 20, 1.5),
    ("Happy hour", 17, 19, 1.2),
)

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}

# Base wait (minutes) implied by the host-posted wait status
WAIT_STATUS_MINUTES = {
    "available": 0,
    "short": 15,
    "long": 30,
    "very_long": 60,
    "closed": 0,
}
UNSEATABLE_WAIT_MINUTES = 120
DEFAULT_TURNOVER_MINUTES = 30
ARRIVAL_LEAD_MINUTES = 15

ACTIVE_QUEUE_STATUSES = {
    WaitlistStatus.WAITING.value,
    WaitlistStatus.NOTIFIED.value,
    WaitlistStatus.PROCESSING.value,
    WaitlistStatus.REMOTE_PENDING.value,
    WaitlistStatus.REMOTE_CONFIRMED.value,
}

PARTY_SIZE_SEGMENTS = ("1-2", "3-4", "5-6", "7-8", "9+")


@dataclass
class HistoricalSample:
    """Aggregated waitlist activity for one past restaurant hour."""

    sample_date: date
    hour: int  # 0-23
    average_wait_time: Optional[float] = None
    average_party_size: Optional[float] = None

    @property
    def day_of_week(self) -> int:
        """0=Monday, 6=Sunday."""
        return self.sample_date.weekday()


@dataclass
class DemandPrediction:
    """Predicted demand for one upcoming hour."""

    time_slot: str
    predicted_wait_time: int
    predicted_party_size: float
    confidence_level: int
    factors: List[str] = field(default_factory=list)


@dataclass
class CapacityRecommendation:
    """A staffing or floor-plan action suggested by upcoming demand."""

    recommended_action: str  # increase_staff, prepare_combinations, optimize_turnover, extend_hours
    reasoning: str
    impact: int  # expected improvement in minutes
    priority: str  # high, medium, low


@dataclass
class WaitEstimate:
    """Quoted wait for a party joining the queue now."""

    estimated_wait_time: int
    confidence: str  # high, medium, low
    available_tables: int
    busy_level: int  # 0-100
    next_available_time: datetime
    recommended_arrival_time: Optional[datetime] = None


@dataclass
class SegmentMismatch:
    segment: str
    issue: str  # undersupplied, oversupplied
    severity: str
    recommendation: str


@dataclass
class TableConfigurationAnalysis:
    """Party-size demand compared with seat supply per size segment."""

    party_size_distribution: Dict[str, int]
    capacity_distribution: Dict[str, int]
    recommendations: List[SegmentMismatch] = field(default_factory=list)
    utilization_score: float = 0.0


@dataclass
class SlotContext:
    """Inputs the demand rules see for a single hourly slot."""

    hour: int
    day_of_week: int
    weather_factor: float
    special_events: Sequence[str]


@dataclass
class Adjustment:
    label: str
    wait_multiplier: float = 1.0
    party_multiplier: float = 1.0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _is_weekend(day_of_week: int) -> bool:
    return day_of_week >= 5


def _weather_rule(ctx: SlotContext) -> Optional[Adjustment]:
    if ctx.weather_factor > 1.2:
        return Adjustment("Bad weather increases indoor dining demand", wait_multiplier=1.15)
    if ctx.weather_factor < 0.8:
        return Adjustment("Good weather may reduce demand", wait_multiplier=0.9)
    return None


def _rush_hour_rule(ctx: SlotContext) -> Optional[Adjustment]:
    band = rush_band_for_hour(ctx.hour)
    if band is None:
        return None
    label, multiplier = band
    return Adjustment(label, wait_multiplier=multiplier)


def _weekend_rule(ctx: SlotContext) -> Optional[Adjustment]:
    if not _is_weekend(ctx.day_of_week):
        return None
    return Adjustment(
        "Weekend dining typically busier", wait_multiplier=1.2, party_multiplier=1.1
    )


def _special_events_rule(ctx: SlotContext) -> Optional[Adjustment]:
    if not ctx.special_events:
        return None
    return Adjustment(
        f"Special events: {', '.join(ctx.special_events)}", wait_multiplier=1.3
    )


def _happy_hour_party_rule(ctx: SlotContext) -> Optional[Adjustment]:
    if 17 <= ctx.hour <= 19 and not _is_weekend(ctx.day_of_week):
        return Adjustment(
            "Happy hour typically attracts smaller groups", party_multiplier=0.85
        )
    return None


# Applied in this order; each rule fires at most once per slot
DEMAND_RULES: Tuple[Tuple[str, Callable[[SlotContext], Optional[Adjustment]]], ...] = (
    ("weather", _weather_rule),
    ("rush_hour", _rush_hour_rule),
    ("weekend", _weekend_rule),
    ("special_events", _special_events_rule),
    ("happy_hour_party_size", _happy_hour_party_rule),
)


def rush_band_for_hour(hour: int) -> Optional[Tuple[str, float]]:
    """Return (label, multiplier) of the first rush band covering ``hour``."""
    for label, start, end, multiplier in RUSH_BANDS:
        if start <= hour <= end:
            return label, multiplier
    return None


def historical_average(
    hour: int,
    day_of_week: int,
    historical_samples: Sequence[HistoricalSample],
) -> Tuple[float, float]:
    """
    Average wait and party size for samples near ``hour`` on ``day_of_week``.

    Returns the cold-start defaults when nothing matches.
    """
    relevant = [
        s for s in historical_samples
        if s.day_of_week == day_of_week and abs(s.hour - hour) <= HOUR_TOLERANCE
    ]
    if not relevant:
        return DEFAULT_WAIT_TIME, DEFAULT_PARTY_SIZE

    avg_wait = sum(
        s.average_wait_time if s.average_wait_time else DEFAULT_WAIT_TIME for s in relevant
    ) / len(relevant)
    avg_party = sum(
        s.average_party_size if s.average_party_size else DEFAULT_PARTY_SIZE for s in relevant
    ) / len(relevant)
    return avg_wait, avg_party


def calculate_confidence(sample_count: int, factor_count: int) -> int:
    confidence = BASE_CONFIDENCE
    for minimum, bonus in SAMPLE_VOLUME_BONUSES:
        if sample_count > minimum:
            confidence += bonus
            break
    confidence += factor_count * CONFIDENCE_PER_FACTOR
    return min(confidence, MAX_CONFIDENCE)


def predict_demand_for_hour(
    hour: int,
    day_of_week: int,
    historical_samples: Sequence[HistoricalSample],
    weather_factor: float = 1.0,
    special_events: Sequence[str] = (),
) -> DemandPrediction:
    """Predict wait time and party size for a single hourly slot."""
    wait_time, party_size = historical_average(hour, day_of_week, historical_samples)
    ctx = SlotContext(
        hour=hour,
        day_of_week=day_of_week,
        weather_factor=weather_factor,
        special_events=list(special_events),
    )

    factors: List[str] = []
    for _name, rule in DEMAND_RULES:
        adjustment = rule(ctx)
        if adjustment is None:
            continue
        wait_time *= adjustment.wait_multiplier
        party_size *= adjustment.party_multiplier
        factors.append(adjustment.label)

    return DemandPrediction(
        time_slot=f"{hour}:00 - {hour + 1}:00",
        predicted_wait_time=round_half_up(wait_time),
        predicted_party_size=math.floor(party_size * 10 + 0.5) / 10,
        confidence_level=calculate_confidence(len(historical_samples), len(factors)),
        factors=factors,
    )


def predict_upcoming_demand(
    historical_samples: Sequence[HistoricalSample],
    current_time: Optional[datetime] = None,
    weather_factor: float = 1.0,
    special_events: Sequence[str] = (),
) -> List[DemandPrediction]:
    """
    Predict demand for the next four hourly slots starting at ``current_time``.

    Slots wrap past midnight but keep the current day of week.
    """
    current_time = current_time or datetime.utcnow()
    day_of_week = current_time.weekday()

    return [
        predict_demand_for_hour(
            (current_time.hour + offset) % 24,
            day_of_week,
            historical_samples,
            weather_factor,
            special_events,
        )
        for offset in range(PREDICTION_HOURS)
    ]


def generate_capacity_recommendations(
    predictions: Sequence[DemandPrediction],
    table_types: Sequence,
) -> List[CapacityRecommendation]:
    """
    Turn demand predictions into prioritized capacity actions.

    Rules fire independently. Results are ordered high > medium > low and
    keep rule order within a priority.
    """
    recommendations: List[CapacityRecommendation] = []

    high_demand = [p for p in predictions if p.predicted_wait_time > 30]
    if high_demand:
        avg_wait = sum(p.predicted_wait_time for p in high_demand) / len(high_demand)
        recommendations.append(
            CapacityRecommendation(
                recommended_action="increase_staff",
                reasoning=f"Predicted high demand with {round_half_up(avg_wait)}min average wait times",
                impact=round_half_up(avg_wait * 0.4),
                priority="high" if avg_wait > 45 else "medium",
            )
        )

    large_party_slots = [p for p in predictions if p.predicted_party_size > 4.5]
    if large_party_slots:
        has_large_tables = any(t.capacity >= 8 and t.is_active for t in table_types)
        if not has_large_tables:
            recommendations.append(
                CapacityRecommendation(
                    recommended_action="prepare_combinations",
                    reasoning="Large party trend detected but limited large table capacity",
                    impact=25,
                    priority="high",
                )
            )

    peak_slots = [p for p in predictions if p.predicted_wait_time > 20]
    if len(peak_slots) >= 2:
        recommendations.append(
            CapacityRecommendation(
                recommended_action="optimize_turnover",
                reasoning="Extended peak period requires turnover optimization",
                impact=15,
                priority="medium",
            )
        )

    light_slots = [p for p in predictions if p.predicted_wait_time < 10]
    if len(light_slots) >= 3:
        recommendations.append(
            CapacityRecommendation(
                recommended_action="extend_hours",
                reasoning="Low demand periods could support extended hours",
                impact=30,
                priority="low",
            )
        )

    return sorted(recommendations, key=lambda r: -PRIORITY_ORDER[r.priority])


def estimate_wait_time(
    party_size: int,
    table_types: Sequence,
    current_waitlist: Sequence,
    wait_status: str = "available",
    custom_wait_time: int = 0,
    historical_samples: Optional[Sequence[HistoricalSample]] = None,
    now: Optional[datetime] = None,
) -> WaitEstimate:
    """
    Quote a wait for a party of ``party_size`` joining the queue now.

    Combines the host-posted wait status, parties of similar size already
    queued, overall seat pressure and, when available, the historical
    average for the current weekday and hour.
    """
    now = now or datetime.utcnow()

    base_wait = WAIT_STATUS_MINUTES.get(wait_status, 15)
    if custom_wait_time and custom_wait_time > 0:
        base_wait = custom_wait_time

    active = [e for e in current_waitlist if e.status in ACTIVE_QUEUE_STATUSES]
    suitable = [t for t in table_types if t.capacity >= party_size and t.is_active]
    available_tables = sum(t.count for t in suitable)

    if not suitable:
        return WaitEstimate(
            estimated_wait_time=UNSEATABLE_WAIT_MINUTES,
            confidence="high",
            available_tables=0,
            busy_level=100,
            next_available_time=now + timedelta(minutes=UNSEATABLE_WAIT_MINUTES),
        )

    estimated = float(base_wait)

    similar_ahead = [e for e in active if abs(e.party_size - party_size) <= 2]
    if similar_ahead:
        estimated += len(similar_ahead) * _average_turnover(suitable)

    estimated = float(round_half_up(estimated * _waitlist_pressure(active, suitable)))

    has_history = bool(historical_samples)
    if historical_samples and base_wait > 0:
        matching = [
            s.average_wait_time for s in historical_samples
            if s.day_of_week == now.weekday() and s.hour == now.hour and s.average_wait_time
        ]
        if matching:
            historical_wait = sum(matching) / len(matching)
            estimated = float(round_half_up(estimated * historical_wait / base_wait))

    wait_minutes = int(estimated)
    next_available = now + timedelta(minutes=wait_minutes)

    if has_history:
        confidence = "high"
    else:
        confidence = "medium" if len(active) > 10 else "high"

    return WaitEstimate(
        estimated_wait_time=wait_minutes,
        confidence=confidence,
        available_tables=available_tables,
        busy_level=min(100, round_half_up(len(active) / (available_tables or 1) * 100)),
        next_available_time=next_available,
        recommended_arrival_time=next_available - timedelta(minutes=ARRIVAL_LEAD_MINUTES),
    )


def _average_turnover(table_types: Sequence) -> int:
    if not table_types:
        return DEFAULT_TURNOVER_MINUTES
    total = sum(t.estimated_turnover_time for t in table_types)
    return round_half_up(total / len(table_types))


def _waitlist_pressure(active: Sequence, table_types: Sequence) -> float:
    """Multiplier between 1.0 (empty queue) and 2.0 (queue exceeds seats)."""
    if not active:
        return 1.0
    if not table_types:
        return 2.0
    total_seats = sum(t.count * t.capacity for t in table_types)
    people_waiting = sum(e.party_size for e in active)
    ratio = people_waiting / (total_seats or 1)
    return max(1.0, min(2.0, 1 + ratio))


def _segment_for(size: int) -> str:
    if size <= 2:
        return "1-2"
    if size <= 4:
        return "3-4"
    if size <= 6:
        return "5-6"
    if size <= 8:
        return "7-8"
    return "9+"


def analyze_table_configuration_needs(
    party_sizes: Sequence[int],
    table_types: Sequence,
) -> TableConfigurationAnalysis:
    """
    Compare the historical party-size mix with the seat mix of the floor plan.

    Both distributions are expressed as percentages per size segment so they
    can be compared directly.
    """
    demand_counts = {segment: 0 for segment in PARTY_SIZE_SEGMENTS}
    for size in party_sizes:
        demand_counts[_segment_for(size)] += 1

    supply_seats = {segment: 0 for segment in PARTY_SIZE_SEGMENTS}
    for table in table_types:
        if table.is_active:
            supply_seats[_segment_for(table.capacity)] += table.capacity * table.count

    demand = _as_percentages(demand_counts)
    supply = _as_percentages(supply_seats)

    mismatches: List[SegmentMismatch] = []
    for segment in PARTY_SIZE_SEGMENTS:
        if demand[segment] == 0 and supply[segment] == 0:
            continue
        ratio = supply[segment] / max(demand[segment], 1)
        if ratio < 0.8:
            mismatches.append(
                SegmentMismatch(
                    segment=segment,
                    issue="undersupplied",
                    severity="high" if ratio < 0.5 else "medium",
                    recommendation=(
                        f"Increase {segment}-person table capacity by "
                        f"{round_half_up((1 - ratio) * 100)}%"
                    ),
                )
            )
        elif ratio > 2.0:
            mismatches.append(
                SegmentMismatch(
                    segment=segment,
                    issue="oversupplied",
                    severity="low",
                    recommendation=f"Consider converting some {segment}-person tables to other sizes",
                )
            )

    scored = [
        min(supply[segment] / demand[segment], 2.0)
        for segment in PARTY_SIZE_SEGMENTS
        if demand[segment] > 0
    ]
    utilization = round(sum(scored) / len(scored), 2) if scored else 0.0

    return TableConfigurationAnalysis(
        party_size_distribution=demand,
        capacity_distribution=supply,
        recommendations=mismatches,
        utilization_score=utilization,
    )


def _as_percentages(counts: Dict[str, int]) -> Dict[str, int]:
    total = sum(counts.values())
    if total == 0:
        return {segment: 0 for segment in counts}
    return {segment: round_half_up(value / total * 100) for segment, value in counts.items()}


# ----------------------------------------------------------------------
# Daily demand profile and demand shifting
# ----------------------------------------------------------------------

OPENING_HOUR = 10
CLOSING_HOUR = 22
DEMAND_SCALE = 10
HIGH_DEMAND_LEVEL = 7
LOW_DEMAND_LEVEL = 4
BUSY_NIGHT_MULTIPLIER = 1.2
BUSY_NIGHTS = (4, 5)  # Friday, Saturday
DISCOUNT_PER_DEMAND_POINT = 5
SHIFT_WINDOW_HOURS = 2
SHIFT_POTENTIAL_REDUCTION = 15

INCENTIVE_MAX_DEMAND = 5
INCENTIVE_MIN_DISCOUNT = 10
SHIFT_DISCOUNT = 20

HIGH_USAGE_RATIO = 0.3
LOW_USAGE_RATIO = 0.1
MAX_RECOMMENDED_TABLES = 6
CLOSE_FIT_SEATS = 2


@dataclass
class DemandSlot:
    """Relative demand, 0-10, for one weekday and opening hour."""

    day_of_week: int
    hour: int
    demand: int


@dataclass
class HourlyDemand:
    hour: int
    demand: float  # 0-10
    is_high_demand: bool
    suggested_discount: int  # percent


@dataclass
class DemandShift:
    from_hour: int
    to_hour: int
    potential_reduction: int  # percent of peak demand


@dataclass
class DailyDemandForecast:
    day_of_week: int
    hourly_demand: List[HourlyDemand] = field(default_factory=list)
    peak_hours: List[int] = field(default_factory=list)
    low_demand_hours: List[int] = field(default_factory=list)
    demand_shifts: List[DemandShift] = field(default_factory=list)


@dataclass
class DemandIncentive:
    hour: int
    incentive: str  # discount, shift
    discount_percentage: int
    message: str


@dataclass
class TableCountRecommendation:
    table_type_id: object
    table_name: str
    current_count: int
    recommended_count: int
    rationale: str


def historical_demand_profile(arrival_times: Iterable[datetime]) -> List[DemandSlot]:
    """
    Count past arrivals per weekday and opening hour, scaled so the busiest
    slot scores 10. Arrivals outside opening hours are ignored.
    """
    counts = {
        (day, hour): 0
        for day in range(7)
        for hour in range(OPENING_HOUR, CLOSING_HOUR)
    }
    for arrived in arrival_times:
        key = (arrived.weekday(), arrived.hour)
        if key in counts:
            counts[key] += 1

    busiest = max(counts.values())
    return [
        DemandSlot(
            day_of_week=day,
            hour=hour,
            demand=round_half_up(count / busiest * DEMAND_SCALE) if busiest else 0,
        )
        for (day, hour), count in counts.items()
    ]


def forecast_daily_demand(
    profile: Sequence[DemandSlot],
    day_of_week: int,
) -> DailyDemandForecast:
    """Hour-by-hour demand for one weekday, with peaks, lulls and suggested shifts."""
    baseline = {s.hour: s.demand for s in profile if s.day_of_week == day_of_week}

    hourly = []
    for hour in range(OPENING_HOUR, CLOSING_HOUR):
        demand = float(baseline.get(hour, 0))
        if day_of_week in BUSY_NIGHTS:
            demand = min(float(DEMAND_SCALE), demand * BUSY_NIGHT_MULTIPLIER)
        demand = math.floor(demand * 10 + 0.5) / 10

        is_high = demand > HIGH_DEMAND_LEVEL
        hourly.append(
            HourlyDemand(
                hour=hour,
                demand=demand,
                is_high_demand=is_high,
                suggested_discount=0 if is_high else round_half_up(
                    (HIGH_DEMAND_LEVEL - demand) * DISCOUNT_PER_DEMAND_POINT
                ),
            )
        )

    peak_hours = [h.hour for h in hourly if h.demand > HIGH_DEMAND_LEVEL]
    low_hours = [h.hour for h in hourly if h.demand < LOW_DEMAND_LEVEL]
    shifts = [
        DemandShift(from_hour=peak, to_hour=low, potential_reduction=SHIFT_POTENTIAL_REDUCTION)
        for peak in peak_hours
        for low in low_hours
        if abs(peak - low) <= SHIFT_WINDOW_HOURS
    ]

    return DailyDemandForecast(
        day_of_week=day_of_week,
        hourly_demand=hourly,
        peak_hours=peak_hours,
        low_demand_hours=low_hours,
        demand_shifts=shifts,
    )


def generate_demand_shifting_incentives(forecast: DailyDemandForecast) -> List[DemandIncentive]:
    """Guest-facing offers: discounts for quiet hours, then peak-to-quiet shifts."""
    incentives = [
        DemandIncentive(
            hour=h.hour,
            incentive="discount",
            discount_percentage=h.suggested_discount,
            message=f"Enjoy {h.suggested_discount}% off your meal when you dine at {h.hour}:00 today!",
        )
        for h in forecast.hourly_demand
        if h.demand < INCENTIVE_MAX_DEMAND and h.suggested_discount >= INCENTIVE_MIN_DISCOUNT
    ]

    for shift in forecast.demand_shifts:
        incentives.append(
            DemandIncentive(
                hour=shift.to_hour,
                incentive="shift",
                discount_percentage=SHIFT_DISCOUNT,
                message=(
                    f"Beat the rush at {shift.from_hour:02d}:00! Come at {shift.to_hour:02d}:00 "
                    f"instead and enjoy {SHIFT_DISCOUNT}% off your entire meal."
                ),
            )
        )
    return incentives


def calculate_optimal_capacity(
    table_types: Sequence,
    party_sizes: Sequence[int],
) -> List[TableCountRecommendation]:
    """
    Suggest one more or one fewer table per type from the party-size mix.

    A party counts fully toward a table type it fills to within two seats and
    half toward one it fits with more room to spare.
    """
    total = len(party_sizes) or 1

    recommendations = []
    for table_type in table_types:
        capacity = table_type.capacity
        usage = 0.0
        for size in party_sizes:
            if capacity - CLOSE_FIT_SEATS < size <= capacity:
                usage += 1
            elif size <= capacity:
                usage += 0.5
        ratio = usage / total
        percent = round_half_up(ratio * 100)

        recommended = table_type.count
        rationale = "Current table count is optimal."
        if ratio > HIGH_USAGE_RATIO and table_type.count < MAX_RECOMMENDED_TABLES:
            recommended = table_type.count + 1
            rationale = f"High demand for this table size ({percent}% of parties)."
        elif ratio < LOW_USAGE_RATIO and table_type.count > 1:
            recommended = table_type.count - 1
            rationale = f"Low demand for this table size (only {percent}% of parties)."

        recommendations.append(
            TableCountRecommendation(
                table_type_id=table_type.id,
                table_name=table_type.name,
                current_count=table_type.count,
                recommended_count=recommended,
                rationale=rationale,
            )
        )
    return recommendations
