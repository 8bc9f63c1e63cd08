from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
import random

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tablequeue.config import get_settings
from tablequeue.database import Base
from tablequeue.models import HourlyAnalytics, Restaurant, TableType, WaitlistEntry
from tablequeue.services.waitlist_service import WaitlistService

# Open hours that get hourly history
SERVICE_HOURS = range(11, 23)


async def seed_data():
    settings = get_settings()
    engine = create_async_engine(settings.async_database_url, echo=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with SessionLocal() as session:
        print("Seeding waitlist data...")

        restaurant = Restaurant(name="The Golden Fork", timezone="America/New_York", config={})
        session.add(restaurant)
        await session.flush()

        table_types = [
            TableType(restaurant_id=restaurant.id, name="Two-top", capacity=2, count=6, estimated_turnover_time=45),
            TableType(restaurant_id=restaurant.id, name="Four-top", capacity=4, count=8, estimated_turnover_time=60),
            TableType(restaurant_id=restaurant.id, name="Booth", capacity=6, count=3, estimated_turnover_time=75),
            TableType(restaurant_id=restaurant.id, name="Chef's table", capacity=8, count=1, estimated_turnover_time=90),
        ]
        session.add_all(table_types)
        await session.flush()

        now = datetime.utcnow()

        # Eight weeks of hourly aggregates, busier at dinner and on weekends
        samples = []
        for day_offset in range(1, 57):
            sample_date = (now - timedelta(days=day_offset)).date()
            weekend = sample_date.weekday() >= 5
            for hour in SERVICE_HOURS:
                base_wait = 25 if 18 <= hour <= 20 else 10
                parties = random.randint(4, 12)
                samples.append(HourlyAnalytics(
                    restaurant_id=restaurant.id,
                    sample_date=sample_date,
                    hour=hour,
                    parties_seated=parties,
                    customers=parties * random.randint(2, 4),
                    average_wait_time=base_wait + (10 if weekend else 0) + random.randint(-5, 5),
                    average_party_size=round(random.uniform(2.0, 4.5), 2),
                ))
        session.add_all(samples)

        # Yesterday's seatings per table type for the turnover report
        position = 0
        seated = []
        for table_type in table_types:
            seated_at = now - timedelta(days=1, hours=10)
            for _ in range(random.randint(6, 25)):
                position += 1
                seated_at += timedelta(minutes=random.randint(
                    table_type.estimated_turnover_time - 10,
                    table_type.estimated_turnover_time + 25,
                ))
                seated.append(WaitlistEntry(
                    restaurant_id=restaurant.id,
                    customer_name=f"Guest {position}",
                    party_size=random.randint(max(1, table_type.capacity - 2), table_type.capacity),
                    queue_position=position,
                    estimated_wait_time=random.randint(0, 30),
                    status="seated",
                    table_type_id=table_type.id,
                    created_at=seated_at - timedelta(minutes=random.randint(5, 40)),
                    seated_at=seated_at,
                ))
        session.add_all(seated)
        await session.commit()

        # Tonight's queue goes through the service so positions and codes are real
        service = WaitlistService(session)
        for name, size in [("Jordan", 2), ("Riley", 4), ("Sam", 6), ("Morgan", 3)]:
            await service.enqueue(restaurant.id, name, size)
        remote = await service.enqueue(
            restaurant.id,
            "Avery",
            4,
            is_remote=True,
            expected_arrival_time=now + timedelta(minutes=20),
        )

        print(f"Restaurant {restaurant.id}, {len(table_types)} table types")
        print(f"{len(samples)} hourly samples, {len(seated)} past seatings")
        print(f"Remote party check-in code: {remote.confirmation_code}")
        print("Database seeded!")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_data())
