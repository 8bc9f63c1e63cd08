"""
Pytest configuration and fixtures.

The fixtures model a mid-sized restaurant:
- Two-tops, four-tops and one large table for eight
- An empty waitlist that tests fill as needed
"""
from __future__ import annotations

from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from tablequeue.config import Settings
from tablequeue.database import Base
from tablequeue.models import HourlyAnalytics, Restaurant, TableType, WaitlistEntry  # noqa: F401
from tablequeue.services.waitlist_service import RestaurantLocks, WaitlistService


# Use SQLite for testing (in-memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings() -> Settings:
    """Settings with the production defaults for the remote queue."""
    return Settings(
        remote_grace_minutes=15,
        confirmation_code_length=6,
        confirmation_code_attempts=10,
    )


@pytest_asyncio.fixture
async def sample_restaurant(db_session: AsyncSession) -> Restaurant:
    """
    Create "The Golden Fork" with no posted wait.
    """
    restaurant = Restaurant(
        id=uuid4(),
        name="The Golden Fork",
        timezone="America/New_York",
        current_wait_status="available",
        custom_wait_time=0,
        config={},
    )
    db_session.add(restaurant)
    await db_session.commit()
    await db_session.refresh(restaurant)
    return restaurant


@pytest_asyncio.fixture
async def sample_table_types(
    db_session: AsyncSession, sample_restaurant: Restaurant
) -> list[TableType]:
    """
    Create a realistic floor plan:
    - Two-top: 6 tables for 2, quick turnover
    - Four-top: 2 tables for 4
    - Chef's table: 1 table for 8, long turnover
    """
    table_types = [
        TableType(
            id=uuid4(),
            restaurant_id=sample_restaurant.id,
            name="Two-top",
            capacity=2,
            count=6,
            estimated_turnover_time=45,
            is_active=True,
        ),
        TableType(
            id=uuid4(),
            restaurant_id=sample_restaurant.id,
            name="Four-top",
            capacity=4,
            count=2,
            estimated_turnover_time=60,
            is_active=True,
        ),
        TableType(
            id=uuid4(),
            restaurant_id=sample_restaurant.id,
            name="Chef's table",
            capacity=8,
            count=1,
            estimated_turnover_time=90,
            is_active=True,
        ),
    ]
    for table_type in table_types:
        db_session.add(table_type)
    await db_session.commit()
    for table_type in table_types:
        await db_session.refresh(table_type)
    return table_types


@pytest.fixture
def waitlist_service(db_session: AsyncSession, settings: Settings) -> WaitlistService:
    """Waitlist service with its own lock registry so tests never share locks."""
    return WaitlistService(db_session, settings=settings, locks=RestaurantLocks())
