from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class TableTypeBase(BaseModel):
    """Base schema for table type data."""

    name: str = Field(..., min_length=1, max_length=100)
    capacity: int = Field(..., ge=1, le=50)
    count: int = Field(..., ge=0)
    estimated_turnover_time: int = Field(..., ge=1)


class TableTypeCreate(TableTypeBase):
    """Schema for creating a table type."""

    is_active: bool = True


class TableTypeUpdate(BaseModel):
    """Schema for updating a table type."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    capacity: Optional[int] = Field(None, ge=1, le=50)
    count: Optional[int] = Field(None, ge=0)
    estimated_turnover_time: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class TableTypeRead(BaseModel):
    """Schema for reading a table type."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    restaurant_id: UUID
    name: str
    capacity: int
    count: int
    estimated_turnover_time: int
    is_active: bool
    created_at: datetime
