import logging
from typing import Any

import stripe

from core.errors import GatewayUnavailableError, InvalidSignatureError

from .interface import (
    CheckoutSession,
    CheckoutSessionStatus,
    GatewayEvent,
    LineItem,
    PaymentGateway,
    RefundResult,
    parse_gateway_event,
)

logger = logging.getLogger(__name__)


class StripeGateway(PaymentGateway):
    """Stripe Checkout behind the PaymentGateway interface.

    The API key is passed on every call instead of being set on the
    module-level ``stripe.api_key``.
    """

    def __init__(self, secret_key: str, webhook_secret: str):
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret

    def create_checkout_session(
        self,
        line_item: LineItem,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> CheckoutSession:
        try:
            session = stripe.checkout.Session.create(
                api_key=self._secret_key,
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": line_item.currency,
                            "product_data": {"name": line_item.name, "description": line_item.description},
                            "unit_amount": line_item.unit_amount,
                        },
                        "quantity": line_item.quantity,
                    }
                ],
                mode="payment",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            raise GatewayUnavailableError(f"Checkout session creation failed: {e}") from e
        return CheckoutSession(id=session.id, url=session.url)

    def construct_event(self, raw_body: bytes | str, signature_header: str | None) -> GatewayEvent:
        if not signature_header:
            raise InvalidSignatureError("Missing Stripe-Signature header")
        if not self._webhook_secret:
            raise InvalidSignatureError("Webhook secret not configured")
        try:
            event = stripe.Webhook.construct_event(raw_body, signature_header, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise InvalidSignatureError(f"Webhook signature verification failed: {e}") from e
        except ValueError as e:
            raise InvalidSignatureError(f"Malformed webhook payload: {e}") from e

        obj: dict[str, Any] = event["data"]["object"]
        return parse_gateway_event(event["id"], event["type"], obj)

    def retrieve_checkout_session(self, session_id: str) -> CheckoutSessionStatus:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self._secret_key)
        except stripe.StripeError as e:
            raise GatewayUnavailableError(f"Checkout session lookup failed: {e}") from e
        payment_intent = session.payment_intent
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = payment_intent.id
        return CheckoutSessionStatus(
            id=session.id,
            paid=session.payment_status == "paid",
            payment_intent=payment_intent,
            metadata={str(k): str(v) for k, v in (session.metadata or {}).items()},
        )

    def refund(self, session_id: str, reason: str = "requested_by_customer") -> RefundResult:
        try:
            session = self.retrieve_checkout_session(session_id)
            if not session.payment_intent:
                return RefundResult(ok=False, error="Checkout session has no payment intent")
            refund = stripe.Refund.create(
                api_key=self._secret_key,
                payment_intent=session.payment_intent,
                reason=reason,
            )
        except (stripe.StripeError, GatewayUnavailableError) as e:
            logger.exception("Refund failed for session %s", session_id)
            return RefundResult(ok=False, error=str(e))
        logger.info("Refund %s created for session %s", refund.id, session_id)
        return RefundResult(ok=True, refund_id=refund.id)
