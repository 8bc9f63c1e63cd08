from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class WaitStatus(str, Enum):
    AVAILABLE = "available"
    SHORT = "short"
    LONG = "long"
    VERY_LONG = "very_long"
    CLOSED = "closed"


class RestaurantCreate(BaseModel):
    """Schema for creating a restaurant."""

    name: str = Field(..., min_length=1, max_length=255)
    timezone: str = "America/New_York"
    current_wait_status: WaitStatus = WaitStatus.AVAILABLE
    custom_wait_time: int = Field(0, ge=0)
    config: Dict[str, Any] = Field(default_factory=dict)


class RestaurantUpdate(BaseModel):
    """Schema for updating a restaurant."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    timezone: Optional[str] = None
    current_wait_status: Optional[WaitStatus] = None
    custom_wait_time: Optional[int] = Field(None, ge=0)
    config: Optional[Dict[str, Any]] = None


class RestaurantRead(BaseModel):
    """Schema for reading a restaurant."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    timezone: str
    current_wait_status: str
    custom_wait_time: int
    config: Dict[str, Any]
    created_at: datetime
    updated_at: datetime
