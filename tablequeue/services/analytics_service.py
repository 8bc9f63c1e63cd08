"""Historical analytics store and the estimator entry points that read it."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablequeue.config import get_settings
from tablequeue.errors import NotFoundError, ValidationError
from tablequeue.models.analytics import HourlyAnalytics
from tablequeue.models.restaurant import Restaurant
from tablequeue.models.waitlist import WaitlistEntry
from tablequeue.schemas.waitlist import WaitlistStatus
from tablequeue.services.demand_estimator import (
    CapacityRecommendation,
    DailyDemandForecast,
    DemandIncentive,
    DemandPrediction,
    HistoricalSample,
    TableConfigurationAnalysis,
    TableCountRecommendation,
    WaitEstimate,
    analyze_table_configuration_needs,
    calculate_optimal_capacity,
    estimate_wait_time,
    forecast_daily_demand,
    generate_capacity_recommendations,
    generate_demand_shifting_incentives,
    historical_demand_profile,
    predict_upcoming_demand,
)
from tablequeue.services.table_optimizer import (
    ALLOCATION_STRATEGIES,
    OPTIMIZABLE_STATUSES,
    AllocationStrategy,
    OptimizationSuggestion,
    TableAllocation,
    TableAvailability,
    TableEfficiency,
    WaitTimeReduction,
    analyze_waitlist_optimization,
    estimate_wait_time_reduction,
    find_optimal_table_assignment,
    occupancy_rate,
    predict_optimal_turnover,
    recommend_allocation_strategy,
    table_availability,
    table_efficiency_metrics,
)
from tablequeue.services.table_type_service import TableTypeService
from tablequeue.services.turnover_analyzer import (
    TurnoverAnalysis,
    TurnoverSummary,
    analyze_turnover_times,
    summarize_turnover,
)

logger = logging.getLogger(__name__)


@dataclass
class DemandForecast:
    predictions: List[DemandPrediction] = field(default_factory=list)
    recommendations: List[CapacityRecommendation] = field(default_factory=list)


class AnalyticsService:
    """
    Reads and maintains hourly waitlist aggregates.

    The estimator modules are pure; this service loads their inputs from the
    database and hands back their results.
    """

    def __init__(
        self,
        session: AsyncSession,
        table_type_service: Optional[TableTypeService] = None,
    ):
        self.session = session
        self.table_type_service = table_type_service or TableTypeService(session)
        self.settings = get_settings()

    async def get_historical_samples(
        self,
        restaurant_id: UUID,
        lookback_weeks: Optional[int] = None,
        reference: Optional[datetime] = None,
    ) -> List[HistoricalSample]:
        """Hourly samples from the last ``lookback_weeks`` weeks, oldest first."""
        lookback_weeks = lookback_weeks or self.settings.demand_lookback_weeks
        reference_date = (reference or datetime.utcnow()).date()
        start_date = reference_date - timedelta(weeks=lookback_weeks)

        result = await self.session.execute(
            select(HourlyAnalytics)
            .where(HourlyAnalytics.restaurant_id == restaurant_id)
            .where(HourlyAnalytics.sample_date >= start_date)
            .where(HourlyAnalytics.sample_date <= reference_date)
            .order_by(HourlyAnalytics.sample_date, HourlyAnalytics.hour)
        )
        return [
            HistoricalSample(
                sample_date=row.sample_date,
                hour=row.hour,
                average_wait_time=float(row.average_wait_time) if row.average_wait_time else None,
                average_party_size=float(row.average_party_size) if row.average_party_size else None,
            )
            for row in result.scalars().all()
        ]

    async def record_seating(self, entry: WaitlistEntry) -> HourlyAnalytics:
        """
        Fold a seated entry into its hour's running averages.

        Waits are measured from arrival for remote guests and from joining
        otherwise. Does not commit; callers own the transaction.
        """
        if entry.seated_at is None:
            raise ValueError(f"Waitlist entry {entry.id} has not been seated")

        seated_at = entry.seated_at
        started_at = entry.arrived_at or entry.created_at
        wait_minutes = max(0, int((seated_at - started_at).total_seconds() // 60))

        row = await self._get_or_create_hour(entry.restaurant_id, seated_at.date(), seated_at.hour)

        previous_parties = row.parties_seated or 0
        total_parties = previous_parties + 1
        previous_wait = row.average_wait_time or 0
        previous_size = float(row.average_party_size or 0)

        row.average_wait_time = round((previous_wait * previous_parties + wait_minutes) / total_parties)
        row.average_party_size = round(
            (previous_size * previous_parties + entry.party_size) / total_parties, 2
        )
        row.parties_seated = total_parties
        row.customers = (row.customers or 0) + entry.party_size

        await self.session.flush()
        return row

    async def _get_or_create_hour(
        self,
        restaurant_id: UUID,
        sample_date: date,
        hour: int,
    ) -> HourlyAnalytics:
        result = await self.session.execute(
            select(HourlyAnalytics)
            .where(HourlyAnalytics.restaurant_id == restaurant_id)
            .where(HourlyAnalytics.sample_date == sample_date)
            .where(HourlyAnalytics.hour == hour)
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = HourlyAnalytics(
                restaurant_id=restaurant_id,
                sample_date=sample_date,
                hour=hour,
                customers=0,
                parties_seated=0,
                average_wait_time=0,
                average_party_size=0,
            )
            self.session.add(row)
        return row

    async def predict_demand(
        self,
        restaurant_id: UUID,
        weather_factor: float = 1.0,
        special_events: Sequence[str] = (),
        now: Optional[datetime] = None,
    ) -> DemandForecast:
        """Next four hours of demand plus the capacity actions they call for."""
        await self._require_restaurant(restaurant_id)
        now = now or datetime.utcnow()

        samples = await self.get_historical_samples(restaurant_id, reference=now)
        table_types = await self.table_type_service.list_table_types(restaurant_id)

        predictions = predict_upcoming_demand(samples, now, weather_factor, special_events)
        recommendations = generate_capacity_recommendations(predictions, table_types)
        logger.info(
            "Demand forecast for %s: %d samples, %d recommendations",
            restaurant_id,
            len(samples),
            len(recommendations),
        )
        return DemandForecast(predictions=predictions, recommendations=recommendations)

    async def estimate_wait(
        self,
        restaurant_id: UUID,
        party_size: int,
        now: Optional[datetime] = None,
    ) -> WaitEstimate:
        """Quote a wait for a party that has not joined yet."""
        restaurant = await self._require_restaurant(restaurant_id)
        now = now or datetime.utcnow()

        table_types = await self.table_type_service.list_table_types(restaurant_id)
        queue = await self._entries(restaurant_id)
        samples = await self.get_historical_samples(restaurant_id, reference=now)

        return estimate_wait_time(
            party_size,
            table_types,
            queue,
            wait_status=restaurant.current_wait_status,
            custom_wait_time=restaurant.custom_wait_time,
            historical_samples=samples,
            now=now,
        )

    async def analyze_waitlist_optimization(
        self,
        restaurant_id: UUID,
        now: Optional[datetime] = None,
    ) -> List[OptimizationSuggestion]:
        await self._require_restaurant(restaurant_id)
        now = now or datetime.utcnow()
        entries = await self._entries(
            restaurant_id,
            [WaitlistStatus.WAITING.value, WaitlistStatus.NOTIFIED.value],
        )
        table_types = await self.table_type_service.list_table_types(restaurant_id)
        availability = await self._availability(restaurant_id, table_types, now)
        return analyze_waitlist_optimization(
            entries,
            table_types,
            now,
            available_counts={a.table_type_id: a.available for a in availability},
        )

    async def analyze_turnover(
        self,
        restaurant_id: UUID,
    ) -> Tuple[List[TurnoverAnalysis], Optional[TurnoverSummary]]:
        """Measured vs configured turnover for every table type, plus a summary."""
        await self._require_restaurant(restaurant_id)
        table_types = await self.table_type_service.list_table_types(restaurant_id)
        history = await self._entries(restaurant_id, [WaitlistStatus.SEATED.value])

        analyses = analyze_turnover_times(
            table_types,
            history,
            deviation_pct=self.settings.turnover_deviation_pct,
        )
        return analyses, summarize_turnover(analyses)

    async def table_configuration_needs(self, restaurant_id: UUID) -> TableConfigurationAnalysis:
        """Seated party sizes compared with the seat mix of the floor plan."""
        await self._require_restaurant(restaurant_id)
        table_types = await self.table_type_service.list_table_types(restaurant_id)
        history = await self._entries(restaurant_id, [WaitlistStatus.SEATED.value])
        return analyze_table_configuration_needs([e.party_size for e in history], table_types)

    async def table_availability(
        self,
        restaurant_id: UUID,
        now: Optional[datetime] = None,
    ) -> List[TableAvailability]:
        """Free tables per type, each with its turnover predicted for the current hour."""
        await self._require_restaurant(restaurant_id)
        now = now or datetime.utcnow()
        table_types = await self.table_type_service.list_table_types(restaurant_id, active_only=True)
        return await self._availability(restaurant_id, table_types, now)

    async def recommended_allocation_strategy(self, restaurant_id: UUID) -> AllocationStrategy:
        await self._require_restaurant(restaurant_id)
        queue = await self._entries(restaurant_id, list(OPTIMIZABLE_STATUSES))
        return recommend_allocation_strategy(queue)

    async def assign_table(
        self,
        restaurant_id: UUID,
        entry_id: int,
        strategy: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[AllocationStrategy, Optional[TableAllocation]]:
        """
        Choose a free table type for one queued party.

        Without an explicit ``strategy`` the one recommended for the current
        queue length is used. Nothing is written.
        """
        await self._require_restaurant(restaurant_id)
        entry = await self.session.get(WaitlistEntry, entry_id)
        if entry is None or entry.restaurant_id != restaurant_id:
            raise NotFoundError(f"Waitlist entry {entry_id} not found")

        if strategy is None:
            queue = await self._entries(restaurant_id, list(OPTIMIZABLE_STATUSES))
            chosen = recommend_allocation_strategy(queue)
        elif strategy in ALLOCATION_STRATEGIES:
            chosen = ALLOCATION_STRATEGIES[strategy]
        else:
            raise ValidationError(f"Unknown allocation strategy: {strategy}")

        now = now or datetime.utcnow()
        table_types = await self.table_type_service.list_table_types(restaurant_id, active_only=True)
        availability = await self._availability(restaurant_id, table_types, now)
        allocation = find_optimal_table_assignment(entry, availability, chosen.strategy)

        if allocation is None:
            logger.info(
                "No free table for entry %d (party of %d) using %s",
                entry.id,
                entry.party_size,
                chosen.strategy,
            )
        return chosen, allocation

    async def table_efficiency(self, restaurant_id: UUID) -> List[TableEfficiency]:
        await self._require_restaurant(restaurant_id)
        table_types = await self.table_type_service.list_table_types(restaurant_id)
        history = await self._entries(restaurant_id, [WaitlistStatus.SEATED.value])
        return table_efficiency_metrics(table_types, history)

    async def wait_time_reduction(
        self,
        restaurant_id: UUID,
        now: Optional[datetime] = None,
    ) -> WaitTimeReduction:
        """Wait saved by smarter allocation, measured against the latest day on record."""
        efficiency = await self.table_efficiency(restaurant_id)
        samples = await self.get_historical_samples(restaurant_id, reference=now)

        latest_wait = None
        if samples:
            latest_date = samples[-1].sample_date
            waits = [
                s.average_wait_time for s in samples
                if s.sample_date == latest_date and s.average_wait_time is not None
            ]
            if waits:
                latest_wait = sum(waits) / len(waits)
        return estimate_wait_time_reduction(latest_wait, efficiency)

    async def optimal_capacity(self, restaurant_id: UUID) -> List[TableCountRecommendation]:
        """One table more or less per type, from every party size on record."""
        await self._require_restaurant(restaurant_id)
        table_types = await self.table_type_service.list_table_types(restaurant_id, active_only=True)
        entries = await self._entries(restaurant_id)
        return calculate_optimal_capacity(table_types, [e.party_size for e in entries])

    async def demand_shifting(
        self,
        restaurant_id: UUID,
        day_of_week: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[DailyDemandForecast, List[DemandIncentive]]:
        """Forecast one weekday from past arrivals and the offers that smooth it out."""
        await self._require_restaurant(restaurant_id)
        if day_of_week is None:
            day_of_week = (now or datetime.utcnow()).weekday()

        entries = await self._entries(restaurant_id)
        profile = historical_demand_profile(e.created_at for e in entries if e.created_at)
        forecast = forecast_daily_demand(profile, day_of_week)
        incentives = generate_demand_shifting_incentives(forecast)
        logger.info(
            "Demand shifting for %s on day %d: %d peak hours, %d incentives",
            restaurant_id,
            day_of_week,
            len(forecast.peak_hours),
            len(incentives),
        )
        return forecast, incentives

    async def _availability(
        self,
        restaurant_id: UUID,
        table_types: Sequence,
        now: datetime,
    ) -> List[TableAvailability]:
        seated = await self._entries(restaurant_id, [WaitlistStatus.SEATED.value])
        availability = table_availability(table_types, seated, now)

        rate = occupancy_rate(availability)
        by_id = {t.id: t for t in table_types}
        for slot in availability:
            slot.predicted_turnover_time = predict_optimal_turnover(
                by_id[slot.table_type_id],
                rate,
                now.hour + now.minute / 60,
                now.weekday(),
            )
        return availability

    async def _require_restaurant(self, restaurant_id: UUID) -> Restaurant:
        restaurant = await self.session.get(Restaurant, restaurant_id)
        if restaurant is None:
            raise NotFoundError(f"Restaurant {restaurant_id} not found")
        return restaurant

    async def _entries(
        self,
        restaurant_id: UUID,
        statuses: Optional[Sequence[str]] = None,
    ) -> Sequence[WaitlistEntry]:
        stmt = (
            select(WaitlistEntry)
            .where(WaitlistEntry.restaurant_id == restaurant_id)
            .order_by(WaitlistEntry.queue_position)
        )
        if statuses:
            stmt = stmt.where(WaitlistEntry.status.in_(list(statuses)))
        result = await self.session.execute(stmt)
        return result.scalars().all()
