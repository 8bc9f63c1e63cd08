from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class WaitlistStatus(str, Enum):
    WAITING = "waiting"
    NOTIFIED = "notified"
    SEATED = "seated"
    CANCELLED = "cancelled"
    REMOTE_PENDING = "remote_pending"
    REMOTE_CONFIRMED = "remote_confirmed"
    # Reserved by select-next, not yet seated
    PROCESSING = "processing"


class WaitlistBase(BaseModel):
    """Base schema for waitlist entry."""

    customer_name: str = Field(..., min_length=1, max_length=100)
    party_size: int = Field(..., ge=1, le=50)
    phone_number: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=255)
    dietary_requirements: Optional[str] = None
    notes: Optional[str] = None
    table_type_id: Optional[UUID] = None


class WaitlistCreate(WaitlistBase):
    """Schema for joining the waitlist in person."""


class RemoteWaitlistCreate(WaitlistBase):
    """Schema for joining the waitlist remotely."""

    expected_arrival_time: datetime


class WaitlistStatusUpdate(BaseModel):
    """Schema for a staff-driven status change."""

    status: WaitlistStatus


class CheckInRequest(BaseModel):
    """Schema for a remote guest confirming arrival."""

    confirmation_code: str = Field(..., min_length=1, max_length=12)


class SelectNextRequest(BaseModel):
    """Schema for picking the next party to seat."""

    prioritize_physical: bool = True


class ExpireRemoteRequest(BaseModel):
    """Schema for sweeping no-show remote entries."""

    grace_minutes: Optional[int] = Field(None, ge=0)


class WaitlistRead(BaseModel):
    """Schema for reading a waitlist entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: UUID
    customer_name: str
    party_size: int
    phone_number: Optional[str]
    email: Optional[str]
    dietary_requirements: Optional[str]
    notes: Optional[str]
    queue_position: int
    estimated_wait_time: int
    status: str
    table_type_id: Optional[UUID]
    is_remote: bool
    expected_arrival_time: Optional[datetime]
    confirmation_code: Optional[str]
    created_at: datetime
    notified_at: Optional[datetime]
    seated_at: Optional[datetime]
    arrived_at: Optional[datetime]


class SelectNextResponse(BaseModel):
    """Result of a select-next call; entry is None when nobody is eligible."""

    entry: Optional[WaitlistRead] = None
    message: Optional[str] = None


class ExpireRemoteResponse(BaseModel):
    """Entries cancelled by an expiry sweep."""

    cancelled_count: int
    cancelled: List[WaitlistRead] = Field(default_factory=list)
