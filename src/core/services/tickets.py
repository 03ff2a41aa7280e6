"""Event ticket purchase and cancellation flows."""

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.orm import Session

from core.config import Config, get_config
from core.db.database import Database
from core.db.schemas.base import ensure_utc, utcnow
from core.db.schemas.event import Event, EventTicket
from core.errors import (
    AuthorizationError,
    GatewayUnavailableError,
    InsufficientInventoryError,
    InvalidStateError,
    NotFoundError,
)
from core.gateway.interface import LineItem, PaymentGateway
from core.models.booking import CancellationResult, CheckoutMetadata, PurchaseResult
from core.models.principal import Principal
from core.models.status import PaymentStatus
from core.services import inventory, payments
from core.services.parties import get_traveler

logger = logging.getLogger(__name__)


def _get_event(session: Session, event_id: str) -> Event:
    event = session.get(Event, event_id)
    if event is None:
        raise NotFoundError(f"Event {event_id} not found")
    return event


def issue_ticket(session: Session, payment_id: str, event_id: str, traveler_id: str, quantity: int) -> EventTicket:
    """Create the receipt for a paid event payment. Called once per payment."""
    ticket = EventTicket(event_id=event_id, traveler_id=traveler_id, payment_id=payment_id, quantity=quantity)
    session.add(ticket)
    session.flush()
    logger.info("Issued %d ticket(s) for event %s on payment %s", quantity, event_id, payment_id)
    return ticket


class EventTicketing:
    def __init__(
        self,
        db: Database,
        gateway: PaymentGateway,
        config: Config | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.gateway = gateway
        self.config = config or get_config()
        self._clock = clock

    def purchase_tickets(self, principal: Principal, event_id: str, quantity: int) -> PurchaseResult:
        """Reserve tickets and either settle a free purchase or open a checkout session.

        The reservation and the PENDING payment are committed together. Free
        purchases become PAID with their ticket in that same transaction and
        never reach the gateway.
        """
        with self.db.transaction() as session:
            traveler = get_traveler(session, principal)
            event = _get_event(session, event_id)
            if ensure_utc(event.date) < self._clock():
                raise InvalidStateError(f"Event {event_id} has already taken place")

            unit_price = payments.ticket_unit_price(event.price)
            amount = unit_price * quantity
            payments.ensure_chargeable(amount, self.config.stripe_minimum_charge)

            if inventory.reserve_or_decrement(session, event_id, quantity) is None:
                raise InsufficientInventoryError(
                    f"Event {event_id} has fewer than {quantity} ticket(s) left",
                    details={"requested": quantity},
                )

            is_free = amount == 0
            payment = payments.create_payment(
                session,
                payments.PaymentTarget(event_id=event_id),
                traveler_id=traveler.id,
                amount=amount,
                currency=self.config.stripe_currency,
                quantity=quantity,
                status=PaymentStatus.PAID if is_free else PaymentStatus.PENDING,
            )
            if is_free:
                issue_ticket(session, payment.id, event_id, traveler.id, quantity)
                return PurchaseResult(payment_id=payment.id, status=PaymentStatus.PAID, amount=amount)

            line_item = LineItem(
                name=event.title,
                description=f"{quantity} ticket(s) for {event.title}",
                unit_amount=payments.to_minor_units(unit_price),
                quantity=quantity,
                currency=self.config.stripe_currency,
            )
            metadata = CheckoutMetadata(
                payment_id=payment.id,
                traveler_id=traveler.id,
                requester_id=principal.user_id,
                event_id=event_id,
                quantity=quantity,
            )
            payment_id = payment.id

        try:
            checkout = self.gateway.create_checkout_session(
                line_item,
                success_url=f"{self.config.app_url}/traveler/events/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self.config.app_url}/traveler/events?payment=cancelled",
                metadata=metadata.to_gateway(),
            )
        except GatewayUnavailableError:
            self._release_reservation(payment_id, event_id, quantity)
            raise

        with self.db.transaction() as session:
            payments.attach_gateway_session(session, payment_id, checkout.id)

        logger.info("Checkout session %s opened for payment %s", checkout.id, payment_id)
        return PurchaseResult(
            payment_id=payment_id,
            status=PaymentStatus.PENDING,
            amount=amount,
            session_id=checkout.id,
            session_url=checkout.url,
        )

    def _release_reservation(self, payment_id: str, event_id: str, quantity: int) -> None:
        with self.db.transaction() as session:
            payments.mark_cancelled(session, payment_id)
            inventory.restore(session, event_id, quantity)
        logger.warning("Released reservation of payment %s after gateway failure", payment_id)

    def cancel_ticket_purchase(self, principal: Principal, event_id: str, payment_id: str) -> CancellationResult:
        """Cancel a PAID ticket purchase before the event, then refund it.

        State change and inventory restore commit first; the refund runs after
        and its failure does not undo them.
        """
        with self.db.transaction() as session:
            traveler = get_traveler(session, principal)
            payment = payments.get_payment(session, payment_id, lock=True)
            if payment.event_id is None or payment.event_id != event_id:
                raise NotFoundError(f"Payment {payment_id} is not a ticket purchase for event {event_id}")
            if payment.traveler_id != traveler.id:
                raise AuthorizationError(f"Payment {payment_id} does not belong to traveler {traveler.id}")
            if payment.status != PaymentStatus.PAID:
                raise InvalidStateError(f"Payment {payment_id} is {payment.status}, only PAID purchases can be cancelled")

            event = _get_event(session, event_id)
            if ensure_utc(event.date) < self._clock():
                raise InvalidStateError(f"Event {event_id} has already taken place")

            quantity = payment.ticket_quantity or 0
            payments.mark_cancelled(session, payment_id, allow_paid=True)
            inventory.restore(session, event_id, quantity)
            refund_session_id = payment.gateway_session_id

        if refund_session_id is None:
            # Free purchase, nothing was charged
            return CancellationResult(payment_id=payment_id, restored_tickets=quantity)

        refund = self.gateway.refund(refund_session_id)
        if not refund.ok:
            logger.error("Refund for payment %s failed: %s", payment_id, refund.error)
        return CancellationResult(payment_id=payment_id, restored_tickets=quantity, refunded=refund.ok)
