from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from core.db import Event, EventTicket, Payment
from core.errors import (
    AuthorizationError,
    GatewayUnavailableError,
    InsufficientInventoryError,
    InvalidStateError,
    NotFoundError,
    PriceTooLowError,
)
from core.models import PaymentStatus, Principal, Role
from core.services.payments import to_minor_units
from core.services.reconciler import WebhookReconciler
from core.services.tickets import EventTicketing


@pytest.fixture
def ticketing(db, gateway, config):
    return EventTicketing(db, gateway, config=config)


def _event(db, event_id):
    with db.transaction() as session:
        return session.get(Event, event_id)


def _tickets(db, event_id):
    with db.transaction() as session:
        return session.scalars(select(EventTicket).where(EventTicket.event_id == event_id)).all()


def _reserved_or_paid(db, event_id):
    with db.transaction() as session:
        return session.scalar(
            select(func.coalesce(func.sum(Payment.ticket_quantity), 0)).where(
                Payment.event_id == event_id,
                Payment.status.in_(["PENDING", "PAID"]),
            )
        )


# --- Purchase ---


def test_paid_purchase_opens_checkout(db, seed, ticketing, gateway, traveler_principal):
    traveler = seed.traveler()
    event = seed.event(price="LKR 1,500", tickets=10)

    result = ticketing.purchase_tickets(traveler_principal, event.id, 2)

    assert result.status == PaymentStatus.PENDING
    assert result.amount == Decimal("3000.00")
    assert result.session_url == f"https://checkout.stripe.test/{result.session_id}"

    checkout = gateway.sessions[result.session_id]
    assert checkout["line_item"].unit_amount == 150000
    assert checkout["line_item"].quantity == 2
    assert checkout["line_item"].currency == "lkr"
    assert checkout["metadata"] == {
        "paymentId": result.payment_id,
        "travelerId": traveler.id,
        "requesterId": "user_traveler",
        "quantity": "2",
        "eventId": event.id,
    }
    assert checkout["success_url"].startswith("https://tripdesk.test/")

    # Reserved at purchase time, no ticket until paid
    assert _event(db, event.id).ticket_count == 8
    assert _tickets(db, event.id) == []
    with db.transaction() as session:
        payment = session.get(Payment, result.payment_id)
        assert payment.status == "PENDING"
        assert payment.gateway_session_id == result.session_id


def test_checkout_charge_matches_recorded_amount(db, seed, ticketing, gateway, traveler_principal):
    seed.traveler()
    event = seed.event(price="USD 1.005", tickets=10)

    result = ticketing.purchase_tickets(traveler_principal, event.id, 3)

    line_item = gateway.sessions[result.session_id]["line_item"]
    with db.transaction() as session:
        payment = session.get(Payment, result.payment_id)
        assert payment.amount == Decimal("3.03")
        assert line_item.unit_amount * line_item.quantity == to_minor_units(payment.amount)


def test_last_ticket_goes_to_one_buyer(db, seed, ticketing, gateway, traveler_principal):
    seed.traveler()
    seed.traveler(user_id="user_other")
    event = seed.event(tickets=1)

    first = ticketing.purchase_tickets(traveler_principal, event.id, 1)
    with pytest.raises(InsufficientInventoryError) as exc:
        ticketing.purchase_tickets(Principal(user_id="user_other", role=Role.TRAVELER), event.id, 1)

    assert first.session_id is not None
    assert exc.value.retryable
    assert gateway.checkout_count == 1
    assert _event(db, event.id).ticket_count == 0


def test_free_purchase_skips_gateway(db, seed, ticketing, gateway, traveler_principal):
    traveler = seed.traveler()
    event = seed.event(price="Free", tickets=10)

    result = ticketing.purchase_tickets(traveler_principal, event.id, 2)

    assert result.status == PaymentStatus.PAID
    assert result.amount == Decimal("0.00")
    assert result.session_id is None
    assert gateway.checkout_count == 0
    assert _event(db, event.id).ticket_count == 8

    tickets = _tickets(db, event.id)
    assert len(tickets) == 1
    assert tickets[0].quantity == 2
    assert tickets[0].payment_id == result.payment_id
    assert tickets[0].traveler_id == traveler.id


def test_price_below_minimum_rejected_before_gateway(db, seed, ticketing, gateway, traveler_principal):
    seed.traveler()
    event = seed.event(price="0.10", tickets=10)

    with pytest.raises(PriceTooLowError):
        ticketing.purchase_tickets(traveler_principal, event.id, 3)

    assert gateway.checkout_count == 0
    assert _event(db, event.id).ticket_count == 10
    with db.transaction() as session:
        assert session.scalar(select(func.count()).select_from(Payment)) == 0


def test_gateway_failure_releases_reservation(db, seed, ticketing, gateway, traveler_principal):
    seed.traveler()
    event = seed.event(tickets=3)
    gateway.fail_checkout = True

    with pytest.raises(GatewayUnavailableError):
        ticketing.purchase_tickets(traveler_principal, event.id, 2)

    assert _event(db, event.id).ticket_count == 3
    with db.transaction() as session:
        assert session.scalars(select(Payment.status)).all() == ["CANCELLED"]


def test_purchase_unknown_event(seed, ticketing, traveler_principal):
    seed.traveler()
    with pytest.raises(NotFoundError):
        ticketing.purchase_tickets(traveler_principal, "missing", 1)


def test_purchase_requires_traveler_profile(seed, ticketing):
    event = seed.event()
    with pytest.raises(NotFoundError):
        ticketing.purchase_tickets(Principal(user_id="nobody", role=Role.TRAVELER), event.id, 1)


def test_purchase_for_past_event(seed, ticketing, traveler_principal):
    seed.traveler()
    event = seed.event(date=datetime.now(timezone.utc) - timedelta(days=1))
    with pytest.raises(InvalidStateError):
        ticketing.purchase_tickets(traveler_principal, event.id, 1)


# --- Cancellation ---


def _paid_purchase(db, seed, ticketing, gateway, traveler_principal, quantity=2, tickets=10):
    seed.traveler()
    event = seed.event(tickets=tickets)
    result = ticketing.purchase_tickets(traveler_principal, event.id, quantity)
    gateway.paid_sessions.add(result.session_id)
    WebhookReconciler(db, gateway).confirm_checkout(result.session_id)
    return event, result


def test_cancel_restores_exact_quantity_and_refunds(db, seed, ticketing, gateway, traveler_principal):
    event, purchase = _paid_purchase(db, seed, ticketing, gateway, traveler_principal, quantity=3)
    assert _event(db, event.id).ticket_count == 7

    result = ticketing.cancel_ticket_purchase(traveler_principal, event.id, purchase.payment_id)

    assert result.restored_tickets == 3
    assert result.refunded is True
    assert gateway.refunds == [purchase.session_id]
    assert _event(db, event.id).ticket_count == 10
    assert _reserved_or_paid(db, event.id) + _event(db, event.id).ticket_count == 10


def test_second_cancellation_is_invalid_state(db, seed, ticketing, gateway, traveler_principal):
    event, purchase = _paid_purchase(db, seed, ticketing, gateway, traveler_principal)
    ticketing.cancel_ticket_purchase(traveler_principal, event.id, purchase.payment_id)

    with pytest.raises(InvalidStateError):
        ticketing.cancel_ticket_purchase(traveler_principal, event.id, purchase.payment_id)
    assert _event(db, event.id).ticket_count == 10
    assert len(gateway.refunds) == 1


def test_refund_failure_keeps_cancellation(db, seed, ticketing, gateway, traveler_principal):
    event, purchase = _paid_purchase(db, seed, ticketing, gateway, traveler_principal)
    gateway.fail_refunds = True

    result = ticketing.cancel_ticket_purchase(traveler_principal, event.id, purchase.payment_id)

    assert result.refunded is False
    with db.transaction() as session:
        assert session.get(Payment, purchase.payment_id).status == "CANCELLED"
    assert _event(db, event.id).ticket_count == 10


def test_cancel_pending_purchase_is_invalid_state(db, seed, ticketing, traveler_principal):
    seed.traveler()
    event = seed.event()
    purchase = ticketing.purchase_tickets(traveler_principal, event.id, 1)

    with pytest.raises(InvalidStateError):
        ticketing.cancel_ticket_purchase(traveler_principal, event.id, purchase.payment_id)


def test_cancel_after_event_started(db, seed, ticketing, gateway, traveler_principal, config):
    event, purchase = _paid_purchase(db, seed, ticketing, gateway, traveler_principal)
    later = EventTicketing(db, gateway, config=config, clock=lambda: datetime.now(timezone.utc) + timedelta(days=30))

    with pytest.raises(InvalidStateError):
        later.cancel_ticket_purchase(traveler_principal, event.id, purchase.payment_id)
    assert _event(db, event.id).ticket_count == 8


def test_cancel_someone_elses_purchase(db, seed, ticketing, gateway, traveler_principal):
    event, purchase = _paid_purchase(db, seed, ticketing, gateway, traveler_principal)
    seed.traveler(user_id="user_other")

    with pytest.raises(AuthorizationError):
        ticketing.cancel_ticket_purchase(Principal(user_id="user_other", role=Role.TRAVELER), event.id, purchase.payment_id)


def test_cancel_with_wrong_event(db, seed, ticketing, gateway, traveler_principal):
    _, purchase = _paid_purchase(db, seed, ticketing, gateway, traveler_principal)
    other = seed.event(title="Galle Literary Festival")

    with pytest.raises(NotFoundError):
        ticketing.cancel_ticket_purchase(traveler_principal, other.id, purchase.payment_id)


def test_cancel_free_purchase_has_no_refund(db, seed, ticketing, gateway, traveler_principal):
    seed.traveler()
    event = seed.event(price="Free", tickets=5)
    purchase = ticketing.purchase_tickets(traveler_principal, event.id, 2)

    result = ticketing.cancel_ticket_purchase(traveler_principal, event.id, purchase.payment_id)

    assert result.refunded is None
    assert gateway.refunds == []
    assert _event(db, event.id).ticket_count == 5
