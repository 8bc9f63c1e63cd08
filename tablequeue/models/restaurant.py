from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List
import uuid

from sqlalchemy import JSON, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tablequeue.database import Base

if TYPE_CHECKING:
    from tablequeue.models.table_type import TableType
    from tablequeue.models.waitlist import WaitlistEntry
    from tablequeue.models.analytics import HourlyAnalytics


class Restaurant(Base):
    """Restaurant location owning a waitlist and a table inventory."""

    __tablename__ = "restaurants"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    timezone: Mapped[str] = mapped_column(String(50), default="America/New_York")

    # Host-posted wait status: available, short, long, very_long, closed
    current_wait_status: Mapped[str] = mapped_column(String(20), default="available")
    custom_wait_time: Mapped[int] = mapped_column(Integer, default=0)

    config: Mapped[Dict[str, Any]] = mapped_column(JSON, default=lambda: {})
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    table_types: Mapped[List["TableType"]] = relationship(
        "TableType", back_populates="restaurant", cascade="all, delete-orphan"
    )
    waitlist_entries: Mapped[List["WaitlistEntry"]] = relationship(
        "WaitlistEntry", back_populates="restaurant", cascade="all, delete-orphan"
    )
    hourly_analytics: Mapped[List["HourlyAnalytics"]] = relationship(
        "HourlyAnalytics", back_populates="restaurant", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Restaurant(id={self.id}, name={self.name})>"
