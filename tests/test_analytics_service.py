"""Tests for AnalyticsService and TableTypeService."""
from __future__ import annotations

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from tablequeue.errors import NotFoundError, ValidationError
from tablequeue.models.analytics import HourlyAnalytics
from tablequeue.models.waitlist import WaitlistEntry
from tablequeue.schemas.table_type import TableTypeCreate, TableTypeUpdate
from tablequeue.services.analytics_service import AnalyticsService
from tablequeue.services.table_type_service import TableTypeService

NOW = datetime(2026, 3, 14, 18, 0)


@pytest_asyncio.fixture
async def analytics_service(db_session: AsyncSession) -> AnalyticsService:
    """Create an AnalyticsService instance."""
    return AnalyticsService(db_session)


@pytest_asyncio.fixture
async def table_type_service(db_session: AsyncSession) -> TableTypeService:
    """Create a TableTypeService instance."""
    return TableTypeService(db_session)


async def add_seatings(
    db_session: AsyncSession,
    restaurant,
    table_type,
    gaps_minutes,
    party_size: int = 4,
) -> list[WaitlistEntry]:
    """Persist seated entries for one table type separated by the given gaps."""
    entries = []
    seated_at = NOW - timedelta(hours=10)
    for index, gap in enumerate([0] + list(gaps_minutes)):
        seated_at = seated_at + timedelta(minutes=gap)
        entry = WaitlistEntry(
            restaurant_id=restaurant.id,
            customer_name=f"Guest {index}",
            party_size=party_size,
            queue_position=index + 1,
            estimated_wait_time=0,
            status="seated",
            table_type_id=table_type.id,
            created_at=seated_at - timedelta(minutes=15),
            seated_at=seated_at,
        )
        db_session.add(entry)
        entries.append(entry)
    await db_session.commit()
    return entries


class TestHistoricalSamples:
    """Tests for reading the hourly analytics store."""

    async def test_reads_recent_samples_only(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
    ):
        recent = HourlyAnalytics(
            restaurant_id=sample_restaurant.id,
            sample_date=(NOW - timedelta(weeks=1)).date(),
            hour=18,
            customers=40,
            parties_seated=12,
            average_wait_time=22,
            average_party_size=3.25,
        )
        stale = HourlyAnalytics(
            restaurant_id=sample_restaurant.id,
            sample_date=(NOW - timedelta(weeks=12)).date(),
            hour=18,
            customers=10,
            parties_seated=4,
            average_wait_time=5,
            average_party_size=2.5,
        )
        db_session.add_all([recent, stale])
        await db_session.commit()

        samples = await analytics_service.get_historical_samples(sample_restaurant.id, reference=NOW)

        assert len(samples) == 1
        assert samples[0].hour == 18
        assert samples[0].average_wait_time == 22.0
        assert samples[0].average_party_size == pytest.approx(3.25)
        assert samples[0].day_of_week == 5

    async def test_custom_lookback(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
    ):
        db_session.add(
            HourlyAnalytics(
                restaurant_id=sample_restaurant.id,
                sample_date=(NOW - timedelta(weeks=12)).date(),
                hour=12,
                average_wait_time=15,
                average_party_size=2.0,
            )
        )
        await db_session.commit()

        samples = await analytics_service.get_historical_samples(
            sample_restaurant.id, lookback_weeks=16, reference=NOW
        )

        assert len(samples) == 1


class TestDemandForecast:
    """Tests for predict_demand."""

    async def test_forecast_from_last_saturday(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        db_session.add(
            HourlyAnalytics(
                restaurant_id=sample_restaurant.id,
                sample_date=(NOW - timedelta(weeks=1)).date(),
                hour=18,
                customers=60,
                parties_seated=20,
                average_wait_time=20,
                average_party_size=3.0,
            )
        )
        await db_session.commit()

        forecast = await analytics_service.predict_demand(sample_restaurant.id, now=NOW)

        assert [p.predicted_wait_time for p in forecast.predictions] == [36, 36, 36, 24]
        assert [r.recommended_action for r in forecast.recommendations] == [
            "increase_staff",
            "optimize_turnover",
        ]

    async def test_unknown_restaurant(self, analytics_service: AnalyticsService):
        with pytest.raises(NotFoundError):
            await analytics_service.predict_demand(uuid4(), now=NOW)


class TestWaitEstimate:
    async def test_empty_restaurant(
        self, analytics_service: AnalyticsService, sample_restaurant, sample_table_types
    ):
        estimate = await analytics_service.estimate_wait(sample_restaurant.id, 2, now=NOW)

        assert estimate.estimated_wait_time == 0
        assert estimate.available_tables == 9

    async def test_posted_wait_status(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        sample_restaurant.current_wait_status = "long"
        await db_session.commit()

        estimate = await analytics_service.estimate_wait(sample_restaurant.id, 2, now=NOW)

        assert estimate.estimated_wait_time == 30


class TestOptimizationAndTurnover:
    """Tests for the analyses that read waitlist history."""

    async def test_seating_suggestions(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        four_top = next(t for t in sample_table_types if t.name == "Four-top")
        db_session.add(
            WaitlistEntry(
                restaurant_id=sample_restaurant.id,
                customer_name="Avery",
                party_size=4,
                queue_position=1,
                estimated_wait_time=15,
                status="waiting",
                created_at=NOW - timedelta(minutes=5),
            )
        )
        await db_session.commit()

        suggestions = await analytics_service.analyze_waitlist_optimization(
            sample_restaurant.id, now=NOW
        )

        assert suggestions[0].action == "seat_immediately"
        assert suggestions[0].confidence == 100
        assert suggestions[0].table_assignment.table_type_id == four_top.id

    async def test_turnover_analysis_and_apply(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        table_type_service: TableTypeService,
        sample_restaurant,
        sample_table_types,
    ):
        """Four-tops configured at 60 min actually turn every 80."""
        four_top = next(t for t in sample_table_types if t.name == "Four-top")
        await add_seatings(db_session, sample_restaurant, four_top, [80] * 6)

        analyses, summary = await analytics_service.analyze_turnover(sample_restaurant.id)

        assert len(analyses) == 1
        assert analyses[0].table_type_id == four_top.id
        assert analyses[0].actual_turnover_time == 80
        assert analyses[0].recommendation.percent_difference == 33
        assert summary.tables_needing_adjustment == 1

        updated = await table_type_service.apply_turnover_recommendations(
            sample_restaurant.id, analyses
        )

        assert [t.id for t in updated] == [four_top.id]
        assert four_top.estimated_turnover_time == 80

    async def test_apply_only_selected_table_types(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        table_type_service: TableTypeService,
        sample_restaurant,
        sample_table_types,
    ):
        four_top = next(t for t in sample_table_types if t.name == "Four-top")
        chefs_table = next(t for t in sample_table_types if t.name == "Chef's table")
        await add_seatings(db_session, sample_restaurant, four_top, [80] * 6)

        analyses, _ = await analytics_service.analyze_turnover(sample_restaurant.id)
        updated = await table_type_service.apply_turnover_recommendations(
            sample_restaurant.id, analyses, [chefs_table.id]
        )

        assert updated == []
        assert four_top.estimated_turnover_time == 60

    async def test_table_configuration_needs(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        four_top = next(t for t in sample_table_types if t.name == "Four-top")
        await add_seatings(db_session, sample_restaurant, four_top, [60, 60, 60], party_size=6)

        analysis = await analytics_service.table_configuration_needs(sample_restaurant.id)

        assert analysis.party_size_distribution["5-6"] == 100
        assert any(
            m.segment == "5-6" and m.issue == "undersupplied" for m in analysis.recommendations
        )


class TestTableTypeService:
    """Tests for table inventory reads and writes."""

    async def test_list_smallest_first(
        self, table_type_service: TableTypeService, sample_restaurant, sample_table_types
    ):
        table_types = await table_type_service.list_table_types(sample_restaurant.id)

        assert [t.capacity for t in table_types] == [2, 4, 8]

    async def test_active_only(
        self,
        db_session: AsyncSession,
        table_type_service: TableTypeService,
        sample_restaurant,
        sample_table_types,
    ):
        sample_table_types[2].is_active = False
        await db_session.commit()

        table_types = await table_type_service.list_table_types(sample_restaurant.id, active_only=True)

        assert [t.name for t in table_types] == ["Two-top", "Four-top"]

    async def test_create_and_update(
        self, table_type_service: TableTypeService, sample_restaurant
    ):
        booth = await table_type_service.create_table_type(
            sample_restaurant.id,
            TableTypeCreate(name="Booth", capacity=6, count=3, estimated_turnover_time=75),
        )

        assert booth.is_active is True

        updated = await table_type_service.update_table_type(
            booth.id, TableTypeUpdate(count=4)
        )

        assert updated.count == 4
        assert updated.capacity == 6

    async def test_create_for_unknown_restaurant(self, table_type_service: TableTypeService):
        with pytest.raises(NotFoundError):
            await table_type_service.create_table_type(
                uuid4(),
                TableTypeCreate(name="Booth", capacity=6, count=3, estimated_turnover_time=75),
            )

    async def test_get_unknown(self, table_type_service: TableTypeService):
        with pytest.raises(NotFoundError):
            await table_type_service.get_table_type(uuid4())


def seat_now(restaurant, table_type, position: int, minutes_ago: int, party_size: int = 4) -> WaitlistEntry:
    """An entry seated ``minutes_ago`` before NOW."""
    return WaitlistEntry(
        restaurant_id=restaurant.id,
        customer_name=f"Guest {position}",
        party_size=party_size,
        queue_position=position,
        estimated_wait_time=0,
        status="seated",
        table_type_id=table_type.id,
        created_at=NOW - timedelta(minutes=minutes_ago + 20),
        seated_at=NOW - timedelta(minutes=minutes_ago),
    )


def waiting(restaurant, position: int, party_size: int = 4, minutes_ago: int = 5) -> WaitlistEntry:
    return WaitlistEntry(
        restaurant_id=restaurant.id,
        customer_name=f"Guest {position}",
        party_size=party_size,
        queue_position=position,
        estimated_wait_time=15,
        status="waiting",
        created_at=NOW - timedelta(minutes=minutes_ago),
    )


class TestTableAllocation:
    """Tests for availability and table assignment."""

    async def test_seat_now_skips_occupied_tables(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        """Both four-tops are taken, so nobody is told to sit down at one."""
        four_top = next(t for t in sample_table_types if t.name == "Four-top")
        db_session.add_all([
            seat_now(sample_restaurant, four_top, 1, minutes_ago=10),
            seat_now(sample_restaurant, four_top, 2, minutes_ago=25),
            waiting(sample_restaurant, 3),
        ])
        await db_session.commit()

        suggestions = await analytics_service.analyze_waitlist_optimization(
            sample_restaurant.id, now=NOW
        )

        assert not [s for s in suggestions if s.action == "seat_immediately"]

    async def test_availability_with_predicted_turnover(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        """Saturday 18:00 with one of nine tables taken: dinner rush, weekend, quiet floor."""
        four_top = next(t for t in sample_table_types if t.name == "Four-top")
        db_session.add(seat_now(sample_restaurant, four_top, 1, minutes_ago=10))
        await db_session.commit()

        availability = await analytics_service.table_availability(sample_restaurant.id, now=NOW)

        by_name = {a.table_name: a for a in availability}
        assert by_name["Four-top"].occupied == 1
        assert by_name["Four-top"].available == 1
        assert by_name["Two-top"].available == 6
        assert by_name["Four-top"].predicted_turnover_time == 81
        assert by_name["Two-top"].predicted_turnover_time == 61
        assert by_name["Chef's table"].predicted_turnover_time == 121

    async def test_assign_with_recommended_strategy(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        four_top = next(t for t in sample_table_types if t.name == "Four-top")
        party = waiting(sample_restaurant, 1, party_size=3)
        db_session.add(party)
        await db_session.commit()

        strategy, allocation = await analytics_service.assign_table(
            sample_restaurant.id, party.id, now=NOW
        )

        assert strategy.strategy == "first_fit"
        assert allocation.table_type_id == four_top.id
        assert allocation.efficiency == 80

    async def test_assign_when_four_tops_are_full(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        four_top = next(t for t in sample_table_types if t.name == "Four-top")
        chefs_table = next(t for t in sample_table_types if t.name == "Chef's table")
        party = waiting(sample_restaurant, 3, party_size=3)
        db_session.add_all([
            seat_now(sample_restaurant, four_top, 1, minutes_ago=10),
            seat_now(sample_restaurant, four_top, 2, minutes_ago=10),
            party,
        ])
        await db_session.commit()

        _, allocation = await analytics_service.assign_table(
            sample_restaurant.id, party.id, strategy="best_fit", now=NOW
        )

        assert allocation.table_type_id == chefs_table.id
        assert allocation.seat_wastage == 5
        assert allocation.efficiency == 0

    async def test_assign_unknown_entry(
        self, analytics_service: AnalyticsService, sample_restaurant, sample_table_types
    ):
        with pytest.raises(NotFoundError):
            await analytics_service.assign_table(sample_restaurant.id, 9999, now=NOW)

    async def test_assign_unknown_strategy(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        party = waiting(sample_restaurant, 1)
        db_session.add(party)
        await db_session.commit()

        with pytest.raises(ValidationError):
            await analytics_service.assign_table(
                sample_restaurant.id, party.id, strategy="worst_fit", now=NOW
            )

    async def test_busy_queue_recommends_best_fit(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        db_session.add_all([waiting(sample_restaurant, i, party_size=2) for i in range(1, 12)])
        await db_session.commit()

        strategy = await analytics_service.recommended_allocation_strategy(sample_restaurant.id)

        assert strategy.strategy == "best_fit"


class TestCapacityPlanning:
    """Tests for efficiency, capacity and demand shifting reports."""

    async def test_table_efficiency(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        four_top = next(t for t in sample_table_types if t.name == "Four-top")
        await add_seatings(db_session, sample_restaurant, four_top, [60, 60], party_size=3)

        metrics = await analytics_service.table_efficiency(sample_restaurant.id)

        by_name = {m.table_name: m for m in metrics}
        assert by_name["Four-top"].utilization == 75
        assert by_name["Four-top"].seatings == 3
        assert by_name["Two-top"].recommendation == "Not enough data to make a recommendation"

    async def test_wait_time_reduction_uses_latest_day(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        yesterday = (NOW - timedelta(days=1)).date()
        last_week = (NOW - timedelta(weeks=1)).date()
        db_session.add_all([
            HourlyAnalytics(restaurant_id=sample_restaurant.id, sample_date=yesterday, hour=18, average_wait_time=30),
            HourlyAnalytics(restaurant_id=sample_restaurant.id, sample_date=yesterday, hour=19, average_wait_time=50),
            HourlyAnalytics(restaurant_id=sample_restaurant.id, sample_date=last_week, hour=18, average_wait_time=5),
        ])
        await db_session.commit()

        reduction = await analytics_service.wait_time_reduction(sample_restaurant.id, now=NOW)

        assert reduction.current_average_wait == 40
        assert reduction.estimated_reduced_wait == 32

    async def test_optimal_capacity(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        four_top = next(t for t in sample_table_types if t.name == "Four-top")
        await add_seatings(db_session, sample_restaurant, four_top, [60, 60, 60], party_size=4)

        recommendations = await analytics_service.optimal_capacity(sample_restaurant.id)

        by_name = {r.table_name: r for r in recommendations}
        assert by_name["Four-top"].recommended_count == 3
        assert by_name["Two-top"].recommended_count == 5

    async def test_demand_shifting(
        self,
        db_session: AsyncSession,
        analytics_service: AnalyticsService,
        sample_restaurant,
        sample_table_types,
    ):
        """Past Saturdays were packed at 18:00 and empty around it."""
        last_saturday = NOW - timedelta(weeks=1)
        for position in range(1, 5):
            entry = waiting(sample_restaurant, position)
            entry.status = "cancelled"
            entry.created_at = last_saturday + timedelta(minutes=position)
            db_session.add(entry)
        await db_session.commit()

        forecast, incentives = await analytics_service.demand_shifting(
            sample_restaurant.id, day_of_week=5
        )

        assert forecast.peak_hours == [18]
        assert [i.hour for i in incentives if i.incentive == "shift"] == [16, 17, 19, 20]

    async def test_unknown_restaurant(self, analytics_service: AnalyticsService):
        with pytest.raises(NotFoundError):
            await analytics_service.demand_shifting(uuid4(), day_of_week=5)
