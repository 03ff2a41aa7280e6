"""SQLAlchemy ORM model for the trips table."""

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from core.db.schemas.base import Base, JSONType, new_id, utcnow
from core.models.status import BookingStatus, TripStatus, sql_in


class Trip(Base):
    __tablename__ = "trips"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    traveler_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("travelers.id", ondelete="CASCADE"), nullable=False
    )
    guide_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("guides.id", ondelete="SET NULL"))
    from_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    to_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    number_of_people: Mapped[int] = mapped_column(Integer, nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    total_distance: Mapped[float | None] = mapped_column(Float)
    needs_guide: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Produced by the itinerary generator, stored as-is
    daily_itinerary: Mapped[Any | None] = mapped_column(JSONType)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TripStatus.PLANNING.value)
    booking_status: Mapped[str] = mapped_column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint(f"status IN {sql_in(TripStatus)}", name="chk_trips_status"),
        CheckConstraint(f"booking_status IN {sql_in(BookingStatus)}", name="chk_trips_booking_status"),
        CheckConstraint("number_of_people > 0", name="chk_trips_number_of_people"),
        Index("idx_trips_traveler_id", "traveler_id"),
        Index("idx_trips_guide_id", "guide_id"),
        # At most one trip in progress per traveler
        Index(
            "uq_trips_traveler_in_progress",
            "traveler_id",
            unique=True,
            postgresql_where=text("status = 'IN_PROGRESS'"),
            sqlite_where=text("status = 'IN_PROGRESS'"),
        ),
    )
