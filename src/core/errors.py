"""
Custom exceptions and error handling for Trip Desk.

Defines application-specific exceptions with error codes for consistent
error handling across Lambda functions and client communication. Every
domain rule violation is raised as one of these and converted by the
handlers into a structured response with a stable HTTP status.

Usage:
    from core.errors import InsufficientInventoryError, ErrorCode

    raise InsufficientInventoryError("2 tickets requested, 1 left")
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for client-facing error messages."""

    # Principal errors
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Domain errors
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    CONCURRENT_TRIP_CONFLICT = "CONCURRENT_TRIP_CONFLICT"
    PRICE_TOO_LOW = "PRICE_TOO_LOW"

    # Trip start verification errors
    OTP_EXPIRED = "OTP_EXPIRED"
    OTP_INVALID = "OTP_INVALID"
    ALREADY_VERIFIED = "ALREADY_VERIFIED"
    LOCATION_MISMATCH = "LOCATION_MISMATCH"

    # Gateway errors
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    GATEWAY_UNAVAILABLE = "GATEWAY_UNAVAILABLE"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # System errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


USER_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.UNAUTHORIZED: "Authentication failed. Please sign in again.",
    ErrorCode.FORBIDDEN: "You are not allowed to perform this action.",
    ErrorCode.NOT_FOUND: "The requested item could not be found.",
    ErrorCode.INVALID_STATE: "This action is not available in the current state.",
    ErrorCode.INSUFFICIENT_INVENTORY: "Not enough tickets are left for this event. Try a smaller quantity.",
    ErrorCode.PAYMENT_REQUIRED: "Please complete payment before starting the trip.",
    ErrorCode.CONCURRENT_TRIP_CONFLICT: "You already have a trip in progress. Complete or cancel it first.",
    ErrorCode.PRICE_TOO_LOW: "This amount is too low for online payment.",
    ErrorCode.OTP_EXPIRED: "The code has expired. Ask the traveler to send a new code.",
    ErrorCode.OTP_INVALID: "Invalid code. Please check and try again.",
    ErrorCode.ALREADY_VERIFIED: "This trip has already been verified.",
    ErrorCode.LOCATION_MISMATCH: "Location verification failed. You must be near the traveler.",
    ErrorCode.INVALID_SIGNATURE: "Invalid webhook signature.",
    ErrorCode.GATEWAY_UNAVAILABLE: "The payment provider is temporarily unavailable. Please try again.",
    ErrorCode.VALIDATION_ERROR: "Your request contains invalid information. Please check and try again.",
    ErrorCode.INVALID_REQUEST: "Invalid request format. Please try again.",
    ErrorCode.INTERNAL_ERROR: "An unexpected error occurred. Please try again.",
}

HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INVALID_STATE: 400,
    ErrorCode.INSUFFICIENT_INVENTORY: 409,
    ErrorCode.PAYMENT_REQUIRED: 402,
    ErrorCode.CONCURRENT_TRIP_CONFLICT: 409,
    ErrorCode.PRICE_TOO_LOW: 400,
    ErrorCode.OTP_EXPIRED: 400,
    ErrorCode.OTP_INVALID: 400,
    ErrorCode.ALREADY_VERIFIED: 400,
    ErrorCode.LOCATION_MISMATCH: 400,
    ErrorCode.INVALID_SIGNATURE: 400,
    ErrorCode.GATEWAY_UNAVAILABLE: 503,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INTERNAL_ERROR: 500,
}

# States the user can clear by retrying later or changing the request.
RETRYABLE_CODES: frozenset[ErrorCode] = frozenset(
    {
        ErrorCode.INSUFFICIENT_INVENTORY,
        ErrorCode.CONCURRENT_TRIP_CONFLICT,
        ErrorCode.GATEWAY_UNAVAILABLE,
    }
)


class TripDeskError(Exception):
    """Base exception for all Trip Desk errors."""

    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return USER_MESSAGES.get(self.code, USER_MESSAGES[ErrorCode.INTERNAL_ERROR])

    @property
    def http_status(self) -> int:
        return HTTP_STATUS.get(self.code, 500)

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_CODES


class AuthenticationError(TripDeskError):
    """No valid principal on the request."""

    default_code = ErrorCode.UNAUTHORIZED


class AuthorizationError(TripDeskError):
    """Principal is known but lacks the role or ownership required."""

    default_code = ErrorCode.FORBIDDEN


class NotFoundError(TripDeskError):
    default_code = ErrorCode.NOT_FOUND


class InvalidStateError(TripDeskError):
    """Operation attempted from a state that does not permit it."""

    default_code = ErrorCode.INVALID_STATE


class InsufficientInventoryError(TripDeskError):
    default_code = ErrorCode.INSUFFICIENT_INVENTORY


class PaymentRequiredError(TripDeskError):
    default_code = ErrorCode.PAYMENT_REQUIRED


class ConcurrentTripConflictError(TripDeskError):
    """The traveler (or guide) already has a trip in progress."""

    default_code = ErrorCode.CONCURRENT_TRIP_CONFLICT

    def __init__(self, message: str, conflicting_trip_id: str | None = None):
        details = {"conflictingTripId": conflicting_trip_id} if conflicting_trip_id else None
        super().__init__(message, details=details)
        self.conflicting_trip_id = conflicting_trip_id


class PriceTooLowError(TripDeskError):
    default_code = ErrorCode.PRICE_TOO_LOW


class InvalidSignatureError(TripDeskError):
    default_code = ErrorCode.INVALID_SIGNATURE


class GatewayUnavailableError(TripDeskError):
    default_code = ErrorCode.GATEWAY_UNAVAILABLE


class ValidationError(TripDeskError):
    """Input validation failed."""

    default_code = ErrorCode.VALIDATION_ERROR


class VerificationError(TripDeskError):
    """Trip start OTP or location check failed."""

    pass
