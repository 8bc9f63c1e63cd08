"""Seating suggestions that match waiting parties to the table inventory."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional, Sequence

from tablequeue.errors import ValidationError
from tablequeue.schemas.waitlist import WaitlistStatus
from tablequeue.services.demand_estimator import round_half_up

# Efficiency = party size / seats offered
EARLY_SEATING_MAX_OVERSIZE = 1.5
EARLY_SEATING_MIN_EFFICIENCY = 0.6

COMBINATION_MIN_PARTY_SIZE = 7
COMBINATION_MAX_TABLES = 3
COMBINATION_EFFICIENCY_WEIGHT = 0.7
COMBINATION_AVAILABILITY_WEIGHT = 0.3

SEQUENCE_TOP_N = 3
NOTIFY_EARLY_MIN_WAIT_MINUTES = 15
NOTIFY_EARLY_MIN_EFFICIENCY = 0.7
NOTIFY_EARLY_CONFIDENCE = 75

AVERAGE_WAIT_MINUTES = 25
COMBINATION_BASE_BENEFIT = 30
COMBINATION_EFFICIENCY_BONUS = 20
DEFAULT_TURNOVER_MINUTES = 45
OPTIMAL_MATCH_MAX_WASTED_SEATS = 2

OPTIMIZABLE_STATUSES = {WaitlistStatus.WAITING.value, WaitlistStatus.NOTIFIED.value}


@dataclass
class TableAssignment:
    """Tables of one type proposed for a party."""

    table_type_id: object
    table_count: int
    confidence: int
    reasoning: str


@dataclass
class OptimizationSuggestion:
    """A seating action for the host stand."""

    action: str  # seat_immediately, combine_tables, notify_early
    reasoning: str
    confidence: int
    party_id: Optional[int] = None
    table_assignment: Optional[TableAssignment] = None
    estimated_wait_reduction: Optional[int] = None


@dataclass
class TableMatch:
    """Best table type for a party joining the queue."""

    table_type_id: object
    table_name: str
    estimated_wait_time: int
    is_optimal_match: bool
    reason: Optional[str] = None


def analyze_waitlist_optimization(
    waitlist_entries: Sequence,
    table_types: Sequence,
    now: Optional[datetime] = None,
    available_counts: Optional[Mapping[object, int]] = None,
) -> List[OptimizationSuggestion]:
    """
    Suggest seating actions for every waiting or notified party.

    Runs the early-seating, combination and sequencing passes, merges their
    suggestions and orders them by confidence, highest first. Inputs are not
    modified. ``available_counts`` maps table type id to free tables; when
    given, parties are only seated immediately at a type with one free.
    """
    now = now or datetime.utcnow()
    active = [e for e in waitlist_entries if e.status in OPTIMIZABLE_STATUSES]

    suggestions: List[OptimizationSuggestion] = []
    suggestions.extend(find_early_seatings(active, table_types, now, available_counts))
    suggestions.extend(optimize_table_combinations(active, table_types, now))
    suggestions.extend(optimize_wait_sequence(active, table_types, now))

    return sorted(suggestions, key=lambda s: -s.confidence)


def find_early_seatings(
    entries: Sequence,
    table_types: Sequence,
    now: datetime,
    available_counts: Optional[Mapping[object, int]] = None,
) -> List[OptimizationSuggestion]:
    """Parties that fit a slightly larger table well enough to seat right away."""

    def has_free_table(table_type) -> bool:
        if available_counts is None:
            return table_type.count > 0
        return available_counts.get(table_type.id, 0) > 0

    suggestions = []
    for entry in entries:
        candidates = [
            t for t in table_types
            if t.is_active
            and has_free_table(t)
            and entry.party_size <= t.capacity <= entry.party_size * EARLY_SEATING_MAX_OVERSIZE
        ]
        if not candidates:
            continue

        best = min(candidates, key=lambda t: t.capacity)
        efficiency = entry.party_size / best.capacity
        if efficiency <= EARLY_SEATING_MIN_EFFICIENCY:
            continue

        confidence = round_half_up(efficiency * 100)
        suggestions.append(
            OptimizationSuggestion(
                action="seat_immediately",
                party_id=entry.id,
                table_assignment=TableAssignment(
                    table_type_id=best.id,
                    table_count=1,
                    confidence=confidence,
                    reasoning=(
                        f"Party of {entry.party_size} can efficiently use {best.name} "
                        f"({confidence}% capacity utilization)"
                    ),
                ),
                estimated_wait_reduction=round_half_up(
                    AVERAGE_WAIT_MINUTES * urgency_factor(entry, now)
                ),
                reasoning="Efficient table utilization during low-demand period",
                confidence=confidence,
            )
        )
    return suggestions


def optimize_table_combinations(
    entries: Sequence,
    table_types: Sequence,
    now: datetime,
) -> List[OptimizationSuggestion]:
    """Best pushed-together table arrangement for each large party."""
    suggestions = []
    for party in entries:
        if party.party_size < COMBINATION_MIN_PARTY_SIZE:
            continue

        combinations = find_optimal_combinations(party.party_size, table_types)
        if not combinations:
            continue

        best = combinations[0]
        suggestions.append(
            OptimizationSuggestion(
                action="combine_tables",
                party_id=party.id,
                table_assignment=best,
                estimated_wait_reduction=round_half_up(
                    COMBINATION_BASE_BENEFIT + best.confidence / 100 * COMBINATION_EFFICIENCY_BONUS
                ),
                reasoning="Optimal table combination reduces wait time significantly",
                confidence=best.confidence,
            )
        )
    return suggestions


def optimize_wait_sequence(
    entries: Sequence,
    table_types: Sequence,
    now: datetime,
) -> List[OptimizationSuggestion]:
    """Early notifications for the best-fitting parties that have waited a while."""

    def efficiency_key(entry) -> float:
        optimal = optimal_table_type(entry.party_size, table_types)
        if optimal is None:
            return 0.0
        return entry.party_size / optimal.capacity

    ranked = sorted(entries, key=efficiency_key, reverse=True)

    suggestions = []
    for party in ranked[:SEQUENCE_TOP_N]:
        optimal = optimal_table_type(party.party_size, table_types)
        if optimal is None or not should_notify_early(party, optimal, now):
            continue
        suggestions.append(
            OptimizationSuggestion(
                action="notify_early",
                party_id=party.id,
                reasoning="Early notification can reduce perceived wait time and improve table turnover",
                confidence=NOTIFY_EARLY_CONFIDENCE,
            )
        )
    return suggestions


def find_optimal_combinations(
    party_size: int,
    table_types: Sequence,
) -> List[TableAssignment]:
    """Every valid single-type combination for ``party_size``, best first."""
    combinations = []
    for table_type in table_types:
        if not table_type.is_active or table_type.count <= 0:
            continue

        tables_needed = math.ceil(party_size / table_type.capacity)
        if tables_needed > table_type.count or tables_needed > COMBINATION_MAX_TABLES:
            continue

        efficiency = party_size / (table_type.capacity * tables_needed)
        availability = (table_type.count - tables_needed + 1) / table_type.count
        confidence = round_half_up(
            (efficiency * COMBINATION_EFFICIENCY_WEIGHT + availability * COMBINATION_AVAILABILITY_WEIGHT) * 100
        )
        combinations.append(
            TableAssignment(
                table_type_id=table_type.id,
                table_count=tables_needed,
                confidence=confidence,
                reasoning=(
                    f"{tables_needed}x {table_type.name} provides "
                    f"{round_half_up(efficiency * 100)}% efficiency"
                ),
            )
        )
    return sorted(combinations, key=lambda c: -c.confidence)


def optimal_table_type(party_size: int, table_types: Sequence):
    """Smallest active table type that seats the whole party, or None."""
    fitting = [t for t in table_types if t.is_active and t.capacity >= party_size]
    if not fitting:
        return None
    return min(fitting, key=lambda t: t.capacity)


def minutes_waiting(entry, now: datetime) -> float:
    return (now - entry.created_at).total_seconds() / 60


def should_notify_early(party, optimal_table, now: datetime) -> bool:
    return (
        minutes_waiting(party, now) > NOTIFY_EARLY_MIN_WAIT_MINUTES
        and party.party_size / optimal_table.capacity > NOTIFY_EARLY_MIN_EFFICIENCY
    )


def urgency_factor(entry, now: datetime) -> float:
    """0.5 baseline, raised for long waits and large parties, capped at 1.0."""
    waited = minutes_waiting(entry, now)
    urgency = 0.5
    if waited > 30:
        urgency += 0.3
    if waited > 60:
        urgency += 0.2
    if entry.party_size >= 6:
        urgency += 0.2
    if entry.party_size >= 8:
        urgency += 0.1
    return min(urgency, 1.0)


def find_best_table_match(
    table_types: Sequence,
    party_size: int,
    current_waitlist: Optional[Sequence] = None,
    preferred_table_type: Optional[str] = None,
) -> Optional[TableMatch]:
    """
    Pick the table type a joining party will most likely be seated at.

    A preferred table type name wins when it is active and large enough.
    Otherwise the type wasting the fewest seats wins, with the shorter
    queue breaking ties. Parties larger than every table get the largest
    type, flagged as not optimal.
    """
    active = [t for t in table_types if t.is_active]
    if not active:
        return None

    if preferred_table_type:
        for table in active:
            if table.name.lower() == preferred_table_type.lower() and table.capacity >= party_size:
                return TableMatch(
                    table_type_id=table.id,
                    table_name=table.name,
                    estimated_wait_time=wait_for_table_type(table, current_waitlist),
                    is_optimal_match=True,
                    reason="Matching preferred table type",
                )

    suitable = [t for t in active if t.capacity >= party_size]
    if not suitable:
        largest = max(active, key=lambda t: t.capacity)
        return TableMatch(
            table_type_id=largest.id,
            table_name=largest.name,
            estimated_wait_time=wait_for_table_type(largest, current_waitlist),
            is_optimal_match=False,
            reason="Party size exceeds our largest table capacity, may require multiple tables",
        )

    best = min(
        suitable,
        key=lambda t: (t.capacity - party_size, wait_for_table_type(t, current_waitlist)),
    )
    if best.capacity == party_size:
        reason = "Perfect size match"
    else:
        reason = f"Best available table for your party size of {party_size}"
    return TableMatch(
        table_type_id=best.id,
        table_name=best.name,
        estimated_wait_time=wait_for_table_type(best, current_waitlist),
        is_optimal_match=best.capacity - party_size <= OPTIMAL_MATCH_MAX_WASTED_SEATS,
        reason=reason,
    )


def wait_for_table_type(table_type, current_waitlist: Optional[Sequence] = None) -> int:
    """Minutes until a table of this type frees up for the next joining party."""
    if not current_waitlist:
        return 0

    parties_waiting = len([
        e for e in current_waitlist
        if e.table_type_id == table_type.id
        or (e.table_type_id is None and e.party_size <= table_type.capacity)
    ])

    tables = table_type.count or 1
    if parties_waiting < tables:
        return 0

    turnover = table_type.estimated_turnover_time or DEFAULT_TURNOVER_MINUTES
    return math.ceil(parties_waiting / tables) * turnover


def predict_optimal_turnover(
    table_type,
    occupancy_rate: float,
    hour: float,
    day_of_week: int,
) -> int:
    """
    Expected turnover for a table type under current conditions.

    ``day_of_week`` is 0=Monday; ``hour`` may be fractional (18.5 = 6:30pm).
    """
    if 11.5 <= hour <= 13.5:
        rush = 1.25
    elif 18 <= hour <= 20.5:
        rush = 1.3
    elif hour < 11 or hour > 21:
        rush = 0.85
    else:
        rush = 1.0

    weekend = 1.15 if day_of_week >= 5 else 1.0

    if occupancy_rate > 0.9:
        occupancy = 1.2
    elif occupancy_rate > 0.7:
        occupancy = 1.1
    elif occupancy_rate < 0.3:
        occupancy = 0.9
    else:
        occupancy = 1.0

    return round_half_up(table_type.estimated_turnover_time * rush * weekend * occupancy)


# ----------------------------------------------------------------------
# Table allocation
# ----------------------------------------------------------------------

HIGH_TRAFFIC_MIN_PARTIES = 10
EFFICIENCY_PENALTY_PER_WASTED_SEAT = 20

UNDERUSED_UTILIZATION_PCT = 70
WASTED_SEATS_THRESHOLD = 2
WAIT_REDUCTION_PCT = 20
REVIEW_UTILIZATION_PCT = 80
REVIEW_WASTED_SEATS = 1.5

DEFAULT_ALLOCATION_ADVICE = (
    "Implement 'Best Fit' table allocation strategy during peak hours",
    "Consider dynamic party size combining during high-demand periods",
    "Use time-slotted remote check-ins to better distribute arrivals",
)


@dataclass
class AllocationStrategy:
    name: str
    description: str
    recommended_for: str  # high_traffic, low_traffic, all
    strategy: str  # first_fit, best_fit, optimize_turnover


ALLOCATION_STRATEGIES: Dict[str, AllocationStrategy] = {
    s.strategy: s
    for s in (
        AllocationStrategy(
            name="First Available",
            description="Assigns the first available table of appropriate size",
            recommended_for="low_traffic",
            strategy="first_fit",
        ),
        AllocationStrategy(
            name="Best Fit",
            description="Minimizes wasted seats by finding the closest table size match",
            recommended_for="high_traffic",
            strategy="best_fit",
        ),
        AllocationStrategy(
            name="Optimize for Turnover",
            description="Prioritizes tables with the fastest expected turnover",
            recommended_for="all",
            strategy="optimize_turnover",
        ),
    )
}


@dataclass
class TableAvailability:
    """Free and occupied tables of one type right now."""

    table_type_id: object
    table_name: str
    capacity: int
    count: int
    occupied: int
    available: int
    estimated_turnover_time: int
    predicted_turnover_time: Optional[int] = None


@dataclass
class TableAllocation:
    """A concrete table type chosen for one waiting party."""

    entry_id: int
    table_type_id: object
    table_name: str
    efficiency: int  # 0-100
    seat_wastage: int


@dataclass
class TableEfficiency:
    table_type_id: object
    table_name: str
    utilization: int  # percent of offered seats actually used
    average_wasted_seats: float
    recommendation: str
    seatings: int = 0


@dataclass
class WaitTimeReduction:
    current_average_wait: int
    estimated_reduced_wait: int
    wait_time_reduction: int  # percent
    recommendations: List[str] = field(default_factory=list)


def is_occupying_table(entry, table_type, now: datetime) -> bool:
    """Seated at ``table_type`` and still inside its turnover window."""
    if entry.status != WaitlistStatus.SEATED.value or entry.table_type_id != table_type.id:
        return False
    if entry.seated_at is None:
        return False
    turnover = table_type.estimated_turnover_time or DEFAULT_TURNOVER_MINUTES
    return entry.seated_at <= now < entry.seated_at + timedelta(minutes=turnover)


def table_availability(
    table_types: Sequence,
    entries: Sequence,
    now: Optional[datetime] = None,
) -> List[TableAvailability]:
    """Occupied and free table counts for every active table type."""
    now = now or datetime.utcnow()
    availability = []
    for table_type in table_types:
        if not table_type.is_active:
            continue
        occupied = len([e for e in entries if is_occupying_table(e, table_type, now)])
        occupied = min(occupied, table_type.count)
        availability.append(
            TableAvailability(
                table_type_id=table_type.id,
                table_name=table_type.name,
                capacity=table_type.capacity,
                count=table_type.count,
                occupied=occupied,
                available=table_type.count - occupied,
                estimated_turnover_time=table_type.estimated_turnover_time,
            )
        )
    return availability


def occupancy_rate(availability: Sequence[TableAvailability]) -> float:
    total = sum(a.count for a in availability)
    if total == 0:
        return 0.0
    return sum(a.occupied for a in availability) / total


def find_optimal_table_assignment(
    entry,
    availability: Sequence[TableAvailability],
    strategy: str = "best_fit",
) -> Optional[TableAllocation]:
    """
    Pick a free table type for ``entry`` using an allocation strategy.

    ``first_fit`` takes the first suitable type in the order given,
    ``best_fit`` the one wasting the fewest seats and ``optimize_turnover``
    the one expected to turn fastest. Returns None when no free table seats
    the whole party.
    """
    if strategy not in ALLOCATION_STRATEGIES:
        raise ValidationError(f"Unknown allocation strategy: {strategy}")

    suitable = [a for a in availability if a.capacity >= entry.party_size and a.available > 0]
    if not suitable:
        return None

    if strategy == "best_fit":
        selected = min(suitable, key=lambda a: a.capacity - entry.party_size)
    elif strategy == "optimize_turnover":
        selected = min(
            suitable,
            key=lambda a: a.predicted_turnover_time or a.estimated_turnover_time,
        )
    else:
        selected = suitable[0]

    wastage = selected.capacity - entry.party_size
    return TableAllocation(
        entry_id=entry.id,
        table_type_id=selected.table_type_id,
        table_name=selected.table_name,
        efficiency=max(0, 100 - wastage * EFFICIENCY_PENALTY_PER_WASTED_SEAT),
        seat_wastage=wastage,
    )


def recommend_allocation_strategy(entries: Sequence) -> AllocationStrategy:
    """Best fit once more than ten parties are waiting, first fit otherwise."""
    waiting = [e for e in entries if e.status in OPTIMIZABLE_STATUSES]
    if len(waiting) > HIGH_TRAFFIC_MIN_PARTIES:
        return ALLOCATION_STRATEGIES["best_fit"]
    return ALLOCATION_STRATEGIES["first_fit"]


def table_efficiency_metrics(
    table_types: Sequence,
    entries: Sequence,
) -> List[TableEfficiency]:
    """How well past seatings filled each table type."""
    seated = [
        e for e in entries
        if e.status == WaitlistStatus.SEATED.value and e.table_type_id is not None
    ]

    metrics = []
    for table_type in table_types:
        at_table = [e for e in seated if e.table_type_id == table_type.id]
        if not at_table:
            metrics.append(
                TableEfficiency(
                    table_type_id=table_type.id,
                    table_name=table_type.name,
                    utilization=0,
                    average_wasted_seats=float(table_type.capacity),
                    recommendation="Not enough data to make a recommendation",
                )
            )
            continue

        party_total = sum(e.party_size for e in at_table)
        utilization = round_half_up(party_total / (len(at_table) * table_type.capacity) * 100)
        wasted = sum(table_type.capacity - e.party_size for e in at_table)
        average_wasted = math.floor(wasted / len(at_table) * 10 + 0.5) / 10

        if utilization < UNDERUSED_UTILIZATION_PCT:
            recommendation = "Consider using smaller tables or combining parties"
        elif average_wasted > WASTED_SEATS_THRESHOLD and table_type.capacity > 2:
            recommendation = f"Add more tables with capacity for {table_type.capacity - 2} people"
        else:
            recommendation = "Current allocation is optimal"

        metrics.append(
            TableEfficiency(
                table_type_id=table_type.id,
                table_name=table_type.name,
                utilization=utilization,
                average_wasted_seats=average_wasted,
                recommendation=recommendation,
                seatings=len(at_table),
            )
        )
    return metrics


def estimate_wait_time_reduction(
    current_average_wait: Optional[float],
    efficiency: Sequence[TableEfficiency],
) -> WaitTimeReduction:
    """Wait saved by smarter allocation, from the latest average wait."""
    if not current_average_wait:
        return WaitTimeReduction(
            current_average_wait=0,
            estimated_reduced_wait=0,
            wait_time_reduction=0,
            recommendations=["Not enough data to make recommendations"],
        )

    current = round_half_up(current_average_wait)
    recommendations = [
        m.recommendation for m in efficiency
        if m.utilization < REVIEW_UTILIZATION_PCT or m.average_wasted_seats > REVIEW_WASTED_SEATS
    ]
    if not recommendations:
        recommendations = list(DEFAULT_ALLOCATION_ADVICE)

    return WaitTimeReduction(
        current_average_wait=current,
        estimated_reduced_wait=round_half_up(current * (100 - WAIT_REDUCTION_PCT) / 100),
        wait_time_reduction=WAIT_REDUCTION_PCT,
        recommendations=recommendations,
    )
