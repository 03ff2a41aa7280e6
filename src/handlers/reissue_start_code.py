"""POST /trips/{id}/start-code {latitude, longitude}: new start code for a running trip whose code expired."""

from typing import Any

from core.api import api_handler, json_response, parse_body, path_param, require_role
from core.clients import get_database
from core.models import Location, Role
from core.services.trips import TripLifecycle


@api_handler
def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    principal = require_role(event, Role.TRAVELER)
    trip_id = path_param(event, "id")
    location = parse_body(event, Location)

    result = TripLifecycle(get_database()).reissue_start_code(principal, trip_id, location)
    return json_response(
        200,
        {
            "success": True,
            "tripId": result.trip_id,
            "otp": result.otp,
            "guidePhone": result.guide_phone,
            "expiresAt": result.expires_at.isoformat(),
        },
    )
