"""POST /events/{id}/cancel {paymentId}"""

from typing import Any

from core.api import api_handler, json_response, parse_body, path_param, require_role
from core.clients import get_database, get_gateway
from core.models import CancelTicketRequest, Role
from core.services.tickets import EventTicketing


@api_handler
def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    principal = require_role(event, Role.TRAVELER)
    event_id = path_param(event, "id")
    request = parse_body(event, CancelTicketRequest)

    result = EventTicketing(get_database(), get_gateway()).cancel_ticket_purchase(
        principal, event_id, request.payment_id
    )
    return json_response(
        200,
        {
            "success": True,
            "paymentId": result.payment_id,
            "restoredTickets": result.restored_tickets,
            "refunded": result.refunded,
        },
    )
