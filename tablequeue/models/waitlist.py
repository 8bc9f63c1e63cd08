from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional
import uuid

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tablequeue.database import Base

if TYPE_CHECKING:
    from tablequeue.models.restaurant import Restaurant


class WaitlistEntry(Base):
    """Waitlist queue entries, in-person and remote."""

    __tablename__ = "waitlist_entries"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "queue_position", name="uq_restaurant_queue_position"),
    )

    # Integer key doubles as insertion order for tie-breaks
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    restaurant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("restaurants.id"), nullable=False, index=True
    )

    customer_name: Mapped[str] = mapped_column(String(100), nullable=False)
    party_size: Mapped[int] = mapped_column(Integer, nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    dietary_requirements: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    queue_position: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_wait_time: Mapped[int] = mapped_column(Integer, nullable=False)  # minutes
    # waiting, notified, processing, seated, cancelled, remote_pending, remote_confirmed
    status: Mapped[str] = mapped_column(String(20), default="waiting", index=True)
    table_type_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("table_types.id"), nullable=True
    )

    # Remote queue
    is_remote: Mapped[bool] = mapped_column(Boolean, default=False)
    expected_arrival_time: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    confirmation_code: Mapped[Optional[str]] = mapped_column(String(12), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    notified_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    seated_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    arrived_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    # Relationships
    restaurant: Mapped["Restaurant"] = relationship(
        "Restaurant", back_populates="waitlist_entries"
    )

    def __repr__(self) -> str:
        return (
            f"<WaitlistEntry(id={self.id}, customer_name={self.customer_name}, "
            f"size={self.party_size}, position={self.queue_position}, status={self.status})>"
        )
