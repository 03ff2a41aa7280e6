"""SQLAlchemy ORM models for the events and event_tickets tables."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from core.db.schemas.base import Base, new_id, utcnow


class Event(Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Free text as entered by admins, e.g. "Free", "LKR 1,500", "$10"
    price: Mapped[str] = mapped_column(String(64), nullable=False)
    ticket_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    initial_ticket_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        CheckConstraint("ticket_count >= 0", name="chk_events_ticket_count"),
        CheckConstraint("ticket_count <= initial_ticket_count", name="chk_events_ticket_count_ceiling"),
    )


class EventTicket(Base):
    __tablename__ = "event_tickets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    event_id: Mapped[str] = mapped_column(String(36), ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    traveler_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("travelers.id", ondelete="CASCADE"), nullable=False
    )
    # One receipt per payment
    payment_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_event_tickets_quantity"),
        Index("idx_event_tickets_event_id", "event_id"),
        Index("idx_event_tickets_traveler_id", "traveler_id"),
    )
