"""Payment records: creation, idempotent status transitions and amount computation."""

import logging
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from pydantic import BaseModel, model_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

from core.db.schemas.base import utcnow
from core.db.schemas.payment import Payment
from core.errors import InvalidStateError, NotFoundError, PriceTooLowError, ValidationError
from core.models.status import PaymentStatus

logger = logging.getLogger(__name__)

_FREE_TOKEN = re.compile(r"\bfree\b", re.IGNORECASE)
_NUMBER = re.compile(r"\d+(?:\.\d+)?")
_CENT = Decimal("0.01")

# Fixed trip tariff: per km, per person, flat guide fee
TRIP_RATE_PER_KM = Decimal("10")
TRIP_RATE_PER_PERSON = Decimal("500")
TRIP_GUIDE_FEE = Decimal("5000")


class PaymentTransition(str, Enum):
    APPLIED = "APPLIED"
    ALREADY_PAID = "ALREADY_PAID"


class PaymentTarget(BaseModel):
    """What a payment is for: exactly one of a trip or an event."""

    trip_id: str | None = None
    event_id: str | None = None

    @model_validator(mode="after")
    def exactly_one_target(self) -> "PaymentTarget":
        if (self.trip_id is None) == (self.event_id is None):
            raise ValueError("exactly one of trip_id and event_id must be set")
        return self


# --- Amounts ---


def ticket_unit_price(price: str) -> Decimal:
    """Unit price of a ticket from its free-text price, rounded to the cent.

    "Free" (any case) is zero; otherwise the first number in the string is the
    unit price, e.g. "LKR 1,500" -> 1500, "$10.50" -> 10.50.
    """
    if _FREE_TOKEN.search(price):
        return Decimal("0.00")

    match = _NUMBER.search(price.replace(",", ""))
    if match is None:
        raise ValidationError(f"Invalid price format: {price!r}")
    try:
        unit_price = Decimal(match.group())
    except InvalidOperation as e:
        raise ValidationError(f"Invalid price format: {price!r}") from e
    return unit_price.quantize(_CENT, rounding=ROUND_HALF_UP)


def calculate_ticket_amount(price: str, quantity: int) -> Decimal:
    """Total for ``quantity`` tickets, built from the rounded unit price so it matches the charge."""
    return ticket_unit_price(price) * quantity


def calculate_trip_amount(total_distance: float | None, number_of_people: int, needs_guide: bool) -> Decimal:
    distance = Decimal(str(total_distance or 0))
    amount = distance * TRIP_RATE_PER_KM + number_of_people * TRIP_RATE_PER_PERSON
    if needs_guide:
        amount += TRIP_GUIDE_FEE
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def ensure_chargeable(amount: Decimal, minimum: Decimal) -> None:
    """Reject non-zero amounts the gateway would refuse to charge."""
    if amount < 0:
        raise ValidationError(f"Amount cannot be negative: {amount}")
    if 0 < amount < minimum:
        raise PriceTooLowError(
            f"Amount {amount} is below the minimum chargeable amount {minimum}",
            details={"minimumAmount": str(minimum)},
        )


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# --- Records ---


def create_payment(
    session: Session,
    target: PaymentTarget,
    traveler_id: str,
    amount: Decimal,
    currency: str,
    quantity: int | None = None,
    status: PaymentStatus = PaymentStatus.PENDING,
) -> Payment:
    if target.event_id is not None and (quantity is None or quantity <= 0):
        raise ValidationError("Event payments need a positive ticket quantity")
    if amount < 0:
        raise ValidationError(f"Amount cannot be negative: {amount}")

    payment = Payment(
        trip_id=target.trip_id,
        event_id=target.event_id,
        traveler_id=traveler_id,
        ticket_quantity=quantity,
        amount=amount,
        currency=currency,
        status=status.value,
        paid_at=utcnow() if status == PaymentStatus.PAID else None,
    )
    session.add(payment)
    session.flush()
    logger.info("Created %s payment %s for traveler %s", status.value, payment.id, traveler_id)
    return payment


def get_payment(session: Session, payment_id: str, lock: bool = False) -> Payment:
    stmt = select(Payment).where(Payment.id == payment_id)
    if lock:
        stmt = stmt.with_for_update()
    payment = session.scalars(stmt).one_or_none()
    if payment is None:
        raise NotFoundError(f"Payment {payment_id} not found")
    return payment


def get_by_gateway_session(session: Session, session_id: str, lock: bool = True) -> Payment | None:
    stmt = select(Payment).where(Payment.gateway_session_id == session_id)
    if lock:
        stmt = stmt.with_for_update()
    return session.scalars(stmt).one_or_none()


def find_trip_payment(session: Session, trip_id: str, status: PaymentStatus | None = None) -> Payment | None:
    """Most recent payment for a trip, optionally restricted to one status."""
    stmt = select(Payment).where(Payment.trip_id == trip_id)
    if status is not None:
        stmt = stmt.where(Payment.status == status.value)
    stmt = stmt.order_by(Payment.created_at.desc()).limit(1).with_for_update()
    return session.scalars(stmt).first()


def attach_gateway_session(session: Session, payment_id: str, gateway_session_id: str) -> Payment:
    """Record the checkout session for a payment.

    Attaching the same session twice is a no-op: the webhook may already have
    attached it from the session metadata before the purchase request got here.
    """
    payment = get_payment(session, payment_id, lock=True)
    if payment.gateway_session_id == gateway_session_id:
        return payment
    if payment.status != PaymentStatus.PENDING:
        raise InvalidStateError(f"Cannot attach a checkout session to a {payment.status} payment")
    payment.gateway_session_id = gateway_session_id
    session.flush()
    return payment


def mark_paid(session: Session, payment_id: str) -> PaymentTransition:
    """PENDING -> PAID, at most once.

    A second call finds the row already PAID and reports ALREADY_PAID so the
    caller can skip its side effects.
    """
    payment = get_payment(session, payment_id, lock=True)
    if payment.status == PaymentStatus.PAID:
        return PaymentTransition.ALREADY_PAID
    if payment.status != PaymentStatus.PENDING:
        raise InvalidStateError(f"Payment {payment_id} is {payment.status} and cannot be paid")

    payment.status = PaymentStatus.PAID.value
    payment.paid_at = utcnow()
    session.flush()
    logger.info("Payment %s marked PAID", payment_id)
    return PaymentTransition.APPLIED


def mark_cancelled(session: Session, payment_id: str, allow_paid: bool = False) -> Payment:
    """PENDING -> CANCELLED, or PAID -> CANCELLED for an explicit user cancellation."""
    payment = get_payment(session, payment_id, lock=True)
    allowed = {PaymentStatus.PENDING.value}
    if allow_paid:
        allowed.add(PaymentStatus.PAID.value)
    if payment.status not in allowed:
        raise InvalidStateError(f"Payment {payment_id} is {payment.status} and cannot be cancelled")

    payment.status = PaymentStatus.CANCELLED.value
    payment.cancelled_at = utcnow()
    session.flush()
    logger.info("Payment %s marked CANCELLED", payment_id)
    return payment


def mark_released(session: Session, payment: Payment) -> None:
    """PAID -> RELEASED once the trip is completed and funds go to the guide."""
    if payment.status != PaymentStatus.PAID:
        raise InvalidStateError(f"Payment {payment.id} is {payment.status} and cannot be released")
    payment.status = PaymentStatus.RELEASED.value
    payment.released_at = utcnow()
    session.flush()
    logger.info("Payment %s released", payment.id)
