"""SQLAlchemy ORM model for the payments table."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from core.db.schemas.base import Base, new_id, utcnow
from core.models.status import PaymentStatus, sql_in


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    trip_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("trips.id", ondelete="CASCADE"))
    event_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("events.id", ondelete="CASCADE"))
    traveler_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("travelers.id", ondelete="CASCADE"), nullable=False
    )
    ticket_quantity: Mapped[int | None] = mapped_column(Integer)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="lkr")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    gateway_session_id: Mapped[str | None] = mapped_column(String(255), unique=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def is_event_payment(self) -> bool:
        return self.event_id is not None

    __table_args__ = (
        CheckConstraint(f"status IN {sql_in(PaymentStatus)}", name="chk_payments_status"),
        CheckConstraint("(trip_id IS NULL) <> (event_id IS NULL)", name="chk_payments_single_target"),
        CheckConstraint("amount >= 0", name="chk_payments_amount"),
        CheckConstraint(
            "event_id IS NULL OR ticket_quantity > 0", name="chk_payments_event_quantity"
        ),
        Index("idx_payments_trip_id", "trip_id"),
        Index("idx_payments_event_id", "event_id"),
        Index("idx_payments_traveler_id", "traveler_id"),
    )
