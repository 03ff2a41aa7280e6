"""Checkout success redirect: GET /payments/success?session_id=...

Settles the payment directly when Stripe already reports the session paid,
so the traveler does not depend on webhook timing. Only the traveler who
owns the payment may poll its session.
"""

from typing import Any

from core.api import api_handler, json_response, query_param, require_role
from core.clients import get_database, get_gateway
from core.models import Role
from core.services.reconciler import WebhookReconciler


@api_handler
def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    principal = require_role(event, Role.TRAVELER)
    session_id = query_param(event, "session_id")

    outcome = WebhookReconciler(get_database(), get_gateway()).confirm_checkout_for(principal, session_id)
    return json_response(
        200,
        {
            "success": True,
            "paymentId": outcome.payment_id,
            "status": outcome.payment_status.value if outcome.payment_status else None,
        },
    )
