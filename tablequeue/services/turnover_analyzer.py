"""Compare configured table turnover times with what seating history shows.

Turnover for a table type is measured as the gap between consecutive
seatings of that type. Gaps outside (10, 300) minutes are ignored since they
usually span a closed period or a double-booked table.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from tablequeue.schemas.waitlist import WaitlistStatus
from tablequeue.services.demand_estimator import round_half_up

MIN_GAP_MINUTES = 10
MAX_GAP_MINUTES = 300

# Sample-size buckets
MEDIUM_CONFIDENCE_MIN_SAMPLES = 5
HIGH_CONFIDENCE_MIN_SAMPLES = 21

DEFAULT_DEVIATION_PCT = 15.0


@dataclass
class TurnoverRecommendation:
    suggested_time: int
    percent_difference: int


@dataclass
class TurnoverAnalysis:
    """Observed turnover for one table type."""

    table_type_id: object
    table_name: str
    actual_turnover_time: int
    sample_size: int
    confidence: str  # low, medium, high
    recommendation: Optional[TurnoverRecommendation] = None


@dataclass
class TurnoverSummary:
    total_tables_analyzed: int
    tables_needing_adjustment: int
    average_turnover_time: int
    confidence: str


def confidence_for_sample_size(sample_size: int) -> str:
    if sample_size >= HIGH_CONFIDENCE_MIN_SAMPLES:
        return "high"
    if sample_size >= MEDIUM_CONFIDENCE_MIN_SAMPLES:
        return "medium"
    return "low"


def analyze_turnover_times(
    table_types: Sequence,
    waitlist_history: Sequence,
    deviation_pct: float = DEFAULT_DEVIATION_PCT,
) -> List[TurnoverAnalysis]:
    """
    Measure actual turnover per table type from seated waitlist entries.

    A recommendation is attached when the measured average differs from the
    configured ``estimated_turnover_time`` by more than ``deviation_pct``
    percent and the sample is not low-confidence. Table types without
    usable samples are left out. Nothing is written back.
    """
    seatings: Dict[object, List] = defaultdict(list)
    for entry in waitlist_history:
        if entry.status != WaitlistStatus.SEATED.value or entry.seated_at is None:
            continue
        if entry.table_type_id is None:
            continue
        seatings[entry.table_type_id].append(entry.seated_at)

    results: List[TurnoverAnalysis] = []
    for table_type in table_types:
        seated_times = sorted(seatings.get(table_type.id, []))
        if not seated_times:
            continue

        gaps = []
        for current, following in zip(seated_times, seated_times[1:]):
            minutes = (following - current).total_seconds() / 60
            if MIN_GAP_MINUTES < minutes < MAX_GAP_MINUTES:
                gaps.append(minutes)

        if not gaps:
            continue

        average = sum(gaps) / len(gaps)
        confidence = confidence_for_sample_size(len(gaps))

        recommendation = None
        configured = table_type.estimated_turnover_time
        if configured:
            percent_difference = (average - configured) / configured * 100
            if abs(percent_difference) > deviation_pct and confidence != "low":
                recommendation = TurnoverRecommendation(
                    suggested_time=round_half_up(average),
                    percent_difference=round_half_up(percent_difference),
                )

        results.append(
            TurnoverAnalysis(
                table_type_id=table_type.id,
                table_name=table_type.name,
                actual_turnover_time=round_half_up(average),
                sample_size=len(gaps),
                confidence=confidence,
                recommendation=recommendation,
            )
        )

    return results


def describe_turnover_analysis(analysis: TurnoverAnalysis) -> str:
    """Plain-language explanation for the turnover dashboard."""
    description = (
        f"{analysis.table_name}: Based on {analysis.sample_size} table seatings, "
        f"the actual average turnover time is approximately "
        f"{analysis.actual_turnover_time} minutes"
    )

    recommendation = analysis.recommendation
    if recommendation:
        direction = "longer" if recommendation.percent_difference > 0 else "shorter"
        description += (
            f". This is {abs(recommendation.percent_difference)}% {direction} than your estimate."
            f" We recommend updating to {recommendation.suggested_time} minutes"
            " for more accurate wait times."
        )
    else:
        description += ". This appears to match your current estimate."

    if analysis.confidence == "low":
        description += (
            " (Note: This analysis is based on limited data and may not be fully representative.)"
        )
    return description


def summarize_turnover(analyses: Sequence[TurnoverAnalysis]) -> Optional[TurnoverSummary]:
    if not analyses:
        return None

    confidences = {a.confidence for a in analyses}
    if "high" in confidences:
        overall = "high"
    elif "medium" in confidences:
        overall = "medium"
    else:
        overall = "low"

    return TurnoverSummary(
        total_tables_analyzed=len(analyses),
        tables_needing_adjustment=len([a for a in analyses if a.recommendation]),
        average_turnover_time=round_half_up(
            sum(a.actual_turnover_time for a in analyses) / len(analyses)
        ),
        confidence=overall,
    )
