"""Stripe webhook endpoint: POST /webhooks/stripe.

Answers 200 for every verified delivery, including event types we ignore,
400 when the signature does not verify, and 500 when reconciliation fails so
that Stripe redelivers.
"""

import logging
from typing import Any

from core.api import error_response, header, json_response, raw_body
from core.clients import get_database, get_gateway
from core.errors import InvalidSignatureError
from core.services.reconciler import WebhookReconciler

logger = logging.getLogger(__name__)


def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    reconciler = WebhookReconciler(get_database(), get_gateway())
    try:
        outcome = reconciler.handle(raw_body(event), header(event, "Stripe-Signature"))
    except InvalidSignatureError as e:
        logger.warning("Rejected webhook: %s", e.message)
        return error_response(e)
    except Exception:
        logger.exception("Webhook reconciliation failed")
        return json_response(500, {"received": False})

    logger.info("Webhook reconciled: %s (payment %s)", outcome.action.value, outcome.payment_id)
    return json_response(200, {"received": True})
