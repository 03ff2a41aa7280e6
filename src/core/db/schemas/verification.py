"""SQLAlchemy ORM model for the trip_verifications table."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from core.db.schemas.base import Base, utcnow


class TripVerification(Base):
    __tablename__ = "trip_verifications"

    # One row per trip; re-issuing overwrites it
    trip_id: Mapped[str] = mapped_column(String(36), ForeignKey("trips.id", ondelete="CASCADE"), primary_key=True)
    otp: Mapped[str] = mapped_column(String(12), nullable=False)
    traveler_geohash: Mapped[str] = mapped_column(String(12), nullable=False)
    guide_geohash: Mapped[str | None] = mapped_column(String(12))
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
