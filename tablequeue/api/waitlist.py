"""
REST API endpoints for waitlist management.
"""
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tablequeue.database import get_session
from tablequeue.schemas.waitlist import (
    CheckInRequest,
    ExpireRemoteRequest,
    ExpireRemoteResponse,
    RemoteWaitlistCreate,
    SelectNextRequest,
    SelectNextResponse,
    WaitlistCreate,
    WaitlistRead,
    WaitlistStatusUpdate,
)
from tablequeue.services.waitlist_service import WaitlistService

router = APIRouter(prefix="/api/v1", tags=["waitlist"])


@router.get("/restaurants/{restaurant_id}/waitlist", response_model=List[WaitlistRead])
async def list_waitlist(
    restaurant_id: UUID,
    status: Optional[List[str]] = Query(None, description="Filter by status, repeatable"),
    session: AsyncSession = Depends(get_session),
) -> List[WaitlistRead]:
    """Get waitlist entries for a restaurant in queue order."""
    service = WaitlistService(session)
    entries = await service.list_entries(restaurant_id, status)
    return [WaitlistRead.model_validate(e) for e in entries]


@router.get("/restaurants/{restaurant_id}/waitlist/queue")
async def get_queue(
    restaurant_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> dict:
    """
    Get the active queue with wait so far for each party.
    """
    service = WaitlistService(session)
    queue = await service.get_queue(restaurant_id)
    return {
        "restaurant_id": str(restaurant_id),
        "total_waiting": len(queue),
        "queue": queue,
    }


@router.get("/waitlist/{entry_id}", response_model=WaitlistRead)
async def get_waitlist_entry(
    entry_id: int,
    session: AsyncSession = Depends(get_session),
) -> WaitlistRead:
    """Get a waitlist entry by ID."""
    service = WaitlistService(session)
    entry = await service.get_entry(entry_id)
    return WaitlistRead.model_validate(entry)


@router.post(
    "/restaurants/{restaurant_id}/waitlist",
    response_model=WaitlistRead,
    status_code=201,
)
async def join_waitlist(
    restaurant_id: UUID,
    data: WaitlistCreate,
    session: AsyncSession = Depends(get_session),
) -> WaitlistRead:
    """Add a party who is at the restaurant to the waitlist."""
    service = WaitlistService(session)
    entry = await service.enqueue(restaurant_id, **data.model_dump())
    return WaitlistRead.model_validate(entry)


@router.post(
    "/restaurants/{restaurant_id}/waitlist/remote",
    response_model=WaitlistRead,
    status_code=201,
)
async def join_waitlist_remotely(
    restaurant_id: UUID,
    data: RemoteWaitlistCreate,
    session: AsyncSession = Depends(get_session),
) -> WaitlistRead:
    """
    Add a party who is not here yet.

    The response carries the confirmation code the party uses to check in.
    """
    service = WaitlistService(session)
    entry = await service.enqueue(restaurant_id, is_remote=True, **data.model_dump())
    return WaitlistRead.model_validate(entry)


@router.patch("/waitlist/{entry_id}/status", response_model=WaitlistRead)
async def update_waitlist_status(
    entry_id: int,
    data: WaitlistStatusUpdate,
    session: AsyncSession = Depends(get_session),
) -> WaitlistRead:
    """Notify, seat or cancel a party."""
    service = WaitlistService(session)
    entry = await service.update_status(entry_id, data.status.value)
    return WaitlistRead.model_validate(entry)


@router.post("/restaurants/{restaurant_id}/waitlist/check-in", response_model=WaitlistRead)
async def check_in(
    restaurant_id: UUID,
    data: CheckInRequest,
    session: AsyncSession = Depends(get_session),
) -> WaitlistRead:
    """Confirm a remote party's arrival; their place in line is kept."""
    service = WaitlistService(session)
    entry = await service.check_in(restaurant_id, data.confirmation_code)
    return WaitlistRead.model_validate(entry)


@router.post(
    "/restaurants/{restaurant_id}/waitlist/expire-remote",
    response_model=ExpireRemoteResponse,
)
async def expire_remote_entries(
    restaurant_id: UUID,
    data: Optional[ExpireRemoteRequest] = None,
    session: AsyncSession = Depends(get_session),
) -> ExpireRemoteResponse:
    """Cancel remote parties that missed their arrival window."""
    grace_minutes = data.grace_minutes if data else None
    service = WaitlistService(session)
    expired = await service.expire_stale_remote_entries(restaurant_id, grace_minutes)
    return ExpireRemoteResponse(
        cancelled_count=len(expired),
        cancelled=[WaitlistRead.model_validate(e) for e in expired],
    )


@router.post("/restaurants/{restaurant_id}/waitlist/next", response_model=SelectNextResponse)
async def select_next_customer(
    restaurant_id: UUID,
    data: Optional[SelectNextRequest] = None,
    session: AsyncSession = Depends(get_session),
) -> SelectNextResponse:
    """Reserve the next party to seat."""
    prioritize_physical = data.prioritize_physical if data else True
    service = WaitlistService(session)
    entry = await service.select_next_customer(restaurant_id, prioritize_physical)

    if entry is None:
        return SelectNextResponse(entry=None, message="No customer available")
    return SelectNextResponse(entry=WaitlistRead.model_validate(entry))


@router.post("/waitlist/{entry_id}/release", response_model=WaitlistRead)
async def release_selection(
    entry_id: int,
    session: AsyncSession = Depends(get_session),
) -> WaitlistRead:
    """Put a reserved party back in line."""
    service = WaitlistService(session)
    entry = await service.release_selection(entry_id)
    return WaitlistRead.model_validate(entry)
