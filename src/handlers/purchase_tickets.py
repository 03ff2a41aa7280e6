"""POST /events/{id}/purchase {quantity}"""

from typing import Any

from core.api import api_handler, json_response, parse_body, path_param, require_role
from core.clients import get_database, get_gateway
from core.models import PaymentStatus, PurchaseRequest, Role
from core.services.tickets import EventTicketing


@api_handler
def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    principal = require_role(event, Role.TRAVELER)
    event_id = path_param(event, "id")
    request = parse_body(event, PurchaseRequest)

    result = EventTicketing(get_database(), get_gateway()).purchase_tickets(principal, event_id, request.quantity)

    if result.status == PaymentStatus.PAID:
        return json_response(
            200,
            {"success": True, "paymentId": result.payment_id, "status": result.status.value, "amount": result.amount},
        )
    return json_response(
        200,
        {
            "success": True,
            "paymentId": result.payment_id,
            "sessionId": result.session_id,
            "sessionUrl": result.session_url,
        },
    )
