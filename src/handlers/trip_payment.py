"""POST /trips/{id}/payment: opens a Stripe checkout session for a confirmed trip."""

from typing import Any

from core.api import api_handler, json_response, path_param, require_role
from core.clients import get_database, get_gateway
from core.models import Role
from core.services.trips import TripLifecycle


@api_handler
def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    principal = require_role(event, Role.TRAVELER)
    lifecycle = TripLifecycle(get_database(), gateway=get_gateway())
    result = lifecycle.initiate_trip_payment(principal, path_param(event, "id"))
    return json_response(
        200,
        {
            "success": True,
            "paymentId": result.payment_id,
            "sessionId": result.session_id,
            "sessionUrl": result.session_url,
            "amount": result.amount,
        },
    )
