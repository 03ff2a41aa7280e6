"""POST /trips/{id}/verify-otp {otp, latitude, longitude}, called by the guide on meeting the traveler."""

from typing import Any

from core.api import api_handler, json_response, parse_body, path_param, require_role
from core.clients import get_database
from core.models import Location, Role, VerifyOtpRequest
from core.services.trips import TripLifecycle


@api_handler
def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    principal = require_role(event, Role.GUIDE)
    trip_id = path_param(event, "id")
    request = parse_body(event, VerifyOtpRequest)

    location = Location(latitude=request.latitude, longitude=request.longitude)
    trip = TripLifecycle(get_database()).verify_trip_start(principal, trip_id, request.otp, location)
    return json_response(200, {"success": True, "tripId": trip.id, "bookingStatus": trip.booking_status})
