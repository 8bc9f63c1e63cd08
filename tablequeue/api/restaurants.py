"""
REST API endpoints for restaurant management.
"""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablequeue.database import commit_session, get_session
from tablequeue.models.restaurant import Restaurant
from tablequeue.schemas.restaurant import RestaurantCreate, RestaurantRead, RestaurantUpdate

router = APIRouter(prefix="/api/v1", tags=["restaurants"])


@router.get("/restaurants/{restaurant_id}", response_model=RestaurantRead)
async def get_restaurant(
    restaurant_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> RestaurantRead:
    """Get a restaurant by ID."""
    result = await session.execute(
        select(Restaurant).where(Restaurant.id == restaurant_id)
    )
    restaurant = result.scalar_one_or_none()

    if restaurant is None:
        raise HTTPException(status_code=404, detail="Restaurant not found")

    return RestaurantRead.model_validate(restaurant)


@router.post("/restaurants", response_model=RestaurantRead, status_code=201)
async def create_restaurant(
    data: RestaurantCreate,
    session: AsyncSession = Depends(get_session),
) -> RestaurantRead:
    """Create a new restaurant."""
    restaurant = Restaurant(
        name=data.name,
        timezone=data.timezone,
        current_wait_status=data.current_wait_status.value,
        custom_wait_time=data.custom_wait_time,
        config=data.config,
    )
    session.add(restaurant)
    await commit_session(session)
    await session.refresh(restaurant)

    return RestaurantRead.model_validate(restaurant)


@router.patch("/restaurants/{restaurant_id}", response_model=RestaurantRead)
async def update_restaurant(
    restaurant_id: UUID,
    data: RestaurantUpdate,
    session: AsyncSession = Depends(get_session),
) -> RestaurantRead:
    """
    Update a restaurant.

    Hosts use this to post the current wait status or a custom wait, both
    of which feed the wait quoted to new parties.
    """
    result = await session.execute(
        select(Restaurant).where(Restaurant.id == restaurant_id)
    )
    restaurant = result.scalar_one_or_none()

    if restaurant is None:
        raise HTTPException(status_code=404, detail="Restaurant not found")

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("current_wait_status") is not None:
        update_data["current_wait_status"] = update_data["current_wait_status"].value
    for field, value in update_data.items():
        setattr(restaurant, field, value)

    await commit_session(session)
    await session.refresh(restaurant)

    return RestaurantRead.model_validate(restaurant)
