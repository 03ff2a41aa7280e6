from decimal import Decimal

import pytest

from core.db import Payment
from core.errors import InvalidStateError, NotFoundError, PriceTooLowError, ValidationError
from core.models import PaymentStatus
from core.services import payments
from core.services.payments import PaymentTarget, PaymentTransition

# --- Amounts ---


@pytest.mark.parametrize("price", ["Free", "FREE", "free entry", "Entry is free!"])
def test_free_price_is_zero(price):
    assert payments.calculate_ticket_amount(price, 3) == Decimal("0.00")


@pytest.mark.parametrize(
    "price, quantity, expected",
    [
        ("LKR 1,500", 2, Decimal("3000.00")),
        ("$10.50", 3, Decimal("31.50")),
        ("2500", 1, Decimal("2500.00")),
        ("Rs. 750 per person", 4, Decimal("3000.00")),
        ("0.10", 3, Decimal("0.30")),
        ("1.005", 3, Decimal("3.03")),
    ],
)
def test_ticket_amount_uses_first_number(price, quantity, expected):
    assert payments.calculate_ticket_amount(price, quantity) == expected


def test_ticket_unit_price_rounds_to_cent():
    assert payments.ticket_unit_price("1.005") == Decimal("1.01")
    assert payments.ticket_unit_price("FREE") == Decimal("0.00")


def test_freedom_is_not_free():
    assert payments.calculate_ticket_amount("Freedom Fest 200", 1) == Decimal("200.00")


def test_unparseable_price():
    with pytest.raises(ValidationError):
        payments.calculate_ticket_amount("TBA", 1)


def test_ensure_chargeable():
    minimum = Decimal("0.50")
    payments.ensure_chargeable(Decimal("0"), minimum)
    payments.ensure_chargeable(Decimal("0.50"), minimum)
    with pytest.raises(PriceTooLowError) as exc:
        payments.ensure_chargeable(Decimal("0.30"), minimum)
    assert exc.value.details == {"minimumAmount": "0.50"}
    with pytest.raises(ValidationError):
        payments.ensure_chargeable(Decimal("-1"), minimum)


def test_to_minor_units():
    assert payments.to_minor_units(Decimal("1500.00")) == 150000
    assert payments.to_minor_units(Decimal("10.505")) == 1051


def test_trip_amount():
    assert payments.calculate_trip_amount(120.0, 2, needs_guide=False) == Decimal("2200.00")
    assert payments.calculate_trip_amount(120.0, 2, needs_guide=True) == Decimal("7200.00")
    assert payments.calculate_trip_amount(None, 1, needs_guide=False) == Decimal("500.00")


# --- Records ---


def _create_event_payment(db, seed, status=PaymentStatus.PENDING):
    traveler = seed.traveler()
    event = seed.event()
    with db.transaction() as session:
        payment = payments.create_payment(
            session,
            PaymentTarget(event_id=event.id),
            traveler_id=traveler.id,
            amount=Decimal("3000.00"),
            currency="lkr",
            quantity=2,
            status=status,
        )
    return payment


def _status(db, payment_id):
    with db.transaction() as session:
        return session.get(Payment, payment_id).status


def test_create_payment_defaults_pending(db, seed):
    payment = _create_event_payment(db, seed)
    assert payment.status == "PENDING"
    assert payment.paid_at is None
    assert payment.is_event_payment


def test_create_paid_payment_sets_paid_at(db, seed):
    payment = _create_event_payment(db, seed, status=PaymentStatus.PAID)
    assert payment.paid_at is not None


def test_event_payment_requires_quantity(db, seed):
    traveler = seed.traveler()
    event = seed.event()
    with pytest.raises(ValidationError):
        with db.transaction() as session:
            payments.create_payment(
                session, PaymentTarget(event_id=event.id), traveler.id, Decimal("10"), "lkr"
            )


def test_mark_paid_is_idempotent(db, seed):
    payment = _create_event_payment(db, seed)
    with db.transaction() as session:
        assert payments.mark_paid(session, payment.id) == PaymentTransition.APPLIED
    with db.transaction() as session:
        assert payments.mark_paid(session, payment.id) == PaymentTransition.ALREADY_PAID
    assert _status(db, payment.id) == "PAID"


def test_mark_paid_unknown(db):
    with pytest.raises(NotFoundError):
        with db.transaction() as session:
            payments.mark_paid(session, "missing")


def test_mark_paid_refuses_cancelled(db, seed):
    payment = _create_event_payment(db, seed)
    with db.transaction() as session:
        payments.mark_cancelled(session, payment.id)
    with pytest.raises(InvalidStateError):
        with db.transaction() as session:
            payments.mark_paid(session, payment.id)
    assert _status(db, payment.id) == "CANCELLED"


def test_mark_cancelled_requires_allow_paid(db, seed):
    payment = _create_event_payment(db, seed, status=PaymentStatus.PAID)
    with pytest.raises(InvalidStateError):
        with db.transaction() as session:
            payments.mark_cancelled(session, payment.id)
    with db.transaction() as session:
        cancelled = payments.mark_cancelled(session, payment.id, allow_paid=True)
    assert cancelled.status == "CANCELLED"
    assert cancelled.cancelled_at is not None


def test_cancelled_is_terminal(db, seed):
    payment = _create_event_payment(db, seed)
    with db.transaction() as session:
        payments.mark_cancelled(session, payment.id)
    with pytest.raises(InvalidStateError):
        with db.transaction() as session:
            payments.mark_cancelled(session, payment.id, allow_paid=True)


def test_mark_released_only_from_paid(db, seed):
    payment = _create_event_payment(db, seed)
    with pytest.raises(InvalidStateError):
        with db.transaction() as session:
            payments.mark_released(session, session.get(Payment, payment.id))
    with db.transaction() as session:
        payments.mark_paid(session, payment.id)
    with db.transaction() as session:
        payments.mark_released(session, session.get(Payment, payment.id))
    assert _status(db, payment.id) == "RELEASED"


def test_attach_and_find_by_gateway_session(db, seed):
    payment = _create_event_payment(db, seed)
    with db.transaction() as session:
        payments.attach_gateway_session(session, payment.id, "cs_test_abc")
    with db.transaction() as session:
        found = payments.get_by_gateway_session(session, "cs_test_abc")
        assert found.id == payment.id
        assert payments.get_by_gateway_session(session, "cs_other") is None


def test_attach_same_session_twice_is_noop(db, seed):
    payment = _create_event_payment(db, seed)
    with db.transaction() as session:
        payments.attach_gateway_session(session, payment.id, "cs_test_abc")
        payments.mark_paid(session, payment.id)
    with db.transaction() as session:
        payments.attach_gateway_session(session, payment.id, "cs_test_abc")


def test_attach_to_paid_payment_refused(db, seed):
    payment = _create_event_payment(db, seed, status=PaymentStatus.PAID)
    with pytest.raises(InvalidStateError):
        with db.transaction() as session:
            payments.attach_gateway_session(session, payment.id, "cs_test_new")
