"""
Webhook reconciliation.

Applies checkout notifications from the payment gateway to payment and
inventory state. Webhook deliveries and the user's success-page poll both end
in ``settle_checkout``, which locks the payment row before deciding, so
duplicates and races between the two collapse into a single settlement.
"""

import logging
from enum import Enum

from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.db.database import Database
from core.db.schemas.payment import Payment
from core.errors import AuthorizationError, NotFoundError
from core.gateway.interface import (
    CheckoutSessionCompleted,
    CheckoutSessionExpired,
    PaymentGateway,
    UnhandledGatewayEvent,
)
from core.models.principal import Principal
from core.models.status import PaymentStatus
from core.services import inventory, payments
from core.services.parties import get_traveler
from core.services.tickets import issue_ticket

logger = logging.getLogger(__name__)


class ReconcileAction(str, Enum):
    SETTLED = "SETTLED"
    ALREADY_PAID = "ALREADY_PAID"
    REFUNDED = "REFUNDED"
    EXPIRED = "EXPIRED"
    NOT_PAID = "NOT_PAID"
    IGNORED = "IGNORED"


class ReconcileOutcome(BaseModel):
    action: ReconcileAction
    payment_id: str | None = None
    payment_status: PaymentStatus | None = None


def _resolve_payment(session: Session, session_id: str, metadata: dict[str, str] | None) -> Payment | None:
    """Find the payment for a checkout session, falling back to its metadata.

    The webhook can arrive before the purchase request has stored the session
    id; the paymentId in the metadata still identifies the row in that case.
    """
    payment = payments.get_by_gateway_session(session, session_id)
    if payment is not None or not metadata or "paymentId" not in metadata:
        return payment

    try:
        candidate = payments.get_payment(session, metadata["paymentId"], lock=True)
    except NotFoundError:
        return None
    if candidate.gateway_session_id is not None:
        # Bound to a different session: not ours to settle
        return None
    candidate.gateway_session_id = session_id
    session.flush()
    return candidate


class WebhookReconciler:
    def __init__(self, db: Database, gateway: PaymentGateway):
        self.db = db
        self.gateway = gateway

    def handle(self, raw_body: bytes | str, signature: str | None) -> ReconcileOutcome:
        """Verify and dispatch one webhook delivery.

        Raises InvalidSignatureError before touching any state. Errors while
        settling propagate so the gateway redelivers.
        """
        event = self.gateway.construct_event(raw_body, signature)

        if isinstance(event, CheckoutSessionCompleted):
            return self.settle_checkout(event.session_id, event.metadata)
        if isinstance(event, CheckoutSessionExpired):
            return self.expire_checkout(event.session_id)
        if isinstance(event, UnhandledGatewayEvent):
            logger.info("Ignoring gateway event %s of type %s", event.event_id, event.type)
            return ReconcileOutcome(action=ReconcileAction.IGNORED)
        raise TypeError(f"Unexpected gateway event variant: {type(event).__name__}")

    def settle_checkout(self, session_id: str, metadata: dict[str, str] | None = None) -> ReconcileOutcome:
        """Mark the session's payment PAID and issue its ticket, exactly once."""
        refund_needed = False
        with self.db.transaction() as session:
            payment = _resolve_payment(session, session_id, metadata)
            if payment is None:
                logger.warning("No payment for completed checkout session %s, ignoring", session_id)
                return ReconcileOutcome(action=ReconcileAction.IGNORED)

            if payment.status in (PaymentStatus.PAID, PaymentStatus.RELEASED):
                logger.info("Payment %s already settled, skipping session %s", payment.id, session_id)
                return ReconcileOutcome(
                    action=ReconcileAction.ALREADY_PAID,
                    payment_id=payment.id,
                    payment_status=PaymentStatus(payment.status),
                )

            if payment.status == PaymentStatus.CANCELLED:
                # Terminal: money arrived for a payment we no longer honour
                logger.warning("Checkout session %s completed for cancelled payment %s", session_id, payment.id)
                refund_needed = True
                outcome = ReconcileOutcome(
                    action=ReconcileAction.REFUNDED,
                    payment_id=payment.id,
                    payment_status=PaymentStatus.CANCELLED,
                )
            else:
                payments.mark_paid(session, payment.id)
                if payment.is_event_payment:
                    issue_ticket(
                        session,
                        payment.id,
                        payment.event_id,
                        payment.traveler_id,
                        payment.ticket_quantity,
                    )
                logger.info("Settled payment %s from checkout session %s", payment.id, session_id)
                outcome = ReconcileOutcome(
                    action=ReconcileAction.SETTLED,
                    payment_id=payment.id,
                    payment_status=PaymentStatus.PAID,
                )

        if refund_needed:
            refund = self.gateway.refund(session_id)
            if not refund.ok:
                logger.error("Refund of session %s for cancelled payment failed: %s", session_id, refund.error)
        return outcome

    def expire_checkout(self, session_id: str) -> ReconcileOutcome:
        """Cancel a PENDING payment whose session expired and return its reserved tickets."""
        with self.db.transaction() as session:
            payment = payments.get_by_gateway_session(session, session_id)
            if payment is None:
                logger.warning("No payment for expired checkout session %s, ignoring", session_id)
                return ReconcileOutcome(action=ReconcileAction.IGNORED)

            if payment.status != PaymentStatus.PENDING:
                logger.info("Session %s expired but payment %s is %s, leaving it", session_id, payment.id, payment.status)
                return ReconcileOutcome(
                    action=ReconcileAction.IGNORED,
                    payment_id=payment.id,
                    payment_status=PaymentStatus(payment.status),
                )

            payments.mark_cancelled(session, payment.id)
            if payment.is_event_payment:
                inventory.restore(session, payment.event_id, payment.ticket_quantity)
            return ReconcileOutcome(
                action=ReconcileAction.EXPIRED,
                payment_id=payment.id,
                payment_status=PaymentStatus.CANCELLED,
            )

    def confirm_checkout_for(self, principal: Principal, session_id: str) -> ReconcileOutcome:
        """Polling path on behalf of a traveler; only the payment's owner may poll its session."""
        with self.db.transaction() as session:
            traveler = get_traveler(session, principal)
            payment = payments.get_by_gateway_session(session, session_id, lock=False)
            if payment is None:
                raise NotFoundError(f"No payment for checkout session {session_id}")
            if payment.traveler_id != traveler.id:
                raise AuthorizationError(f"Checkout session {session_id} does not belong to traveler {traveler.id}")
        return self.confirm_checkout(session_id)

    def confirm_checkout(self, session_id: str) -> ReconcileOutcome:
        """Polling path for the success redirect: settle if the gateway reports the session paid."""
        status = self.gateway.retrieve_checkout_session(session_id)
        if not status.paid:
            with self.db.transaction() as session:
                payment = payments.get_by_gateway_session(session, session_id, lock=False)
                return ReconcileOutcome(
                    action=ReconcileAction.NOT_PAID,
                    payment_id=payment.id if payment else None,
                    payment_status=PaymentStatus(payment.status) if payment else None,
                )
        return self.settle_checkout(session_id, status.metadata)
