"""POST /trips/{id}/accept, called by a guide."""

from typing import Any

from core.api import api_handler, json_response, path_param, require_role
from core.clients import get_database
from core.models import Role
from core.services.trips import TripLifecycle


@api_handler
def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    principal = require_role(event, Role.GUIDE)
    trip = TripLifecycle(get_database()).assign_guide(principal, path_param(event, "id"))
    return json_response(200, {"success": True, "tripId": trip.id, "bookingStatus": trip.booking_status})
