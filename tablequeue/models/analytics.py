from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING
import uuid

from sqlalchemy import Date, ForeignKey, Integer, Numeric, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tablequeue.database import Base

if TYPE_CHECKING:
    from tablequeue.models.restaurant import Restaurant


class HourlyAnalytics(Base):
    """Aggregated waitlist activity for one restaurant hour.

    Rows are updated incrementally as parties are seated and feed the demand
    estimator's historical lookups.
    """

    __tablename__ = "hourly_analytics"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "date", "hour", name="uq_restaurant_date_hour"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    restaurant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("restaurants.id"), nullable=False, index=True
    )
    sample_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    hour: Mapped[int] = mapped_column(Integer, nullable=False)  # 0-23

    customers: Mapped[int] = mapped_column(Integer, default=0)
    parties_seated: Mapped[int] = mapped_column(Integer, default=0)
    average_wait_time: Mapped[int] = mapped_column(Integer, default=0)  # minutes
    average_party_size: Mapped[float] = mapped_column(Numeric(4, 2), default=0)

    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    # Relationships
    restaurant: Mapped["Restaurant"] = relationship(
        "Restaurant", back_populates="hourly_analytics"
    )

    def __repr__(self) -> str:
        return f"<HourlyAnalytics(restaurant_id={self.restaurant_id}, date={self.sample_date}, hour={self.hour})>"
