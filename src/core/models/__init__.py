"""
Pydantic models for Trip Desk.
"""

from core.models.booking import (
    CancellationResult,
    CancelTicketRequest,
    CheckoutMetadata,
    Location,
    PurchaseRequest,
    PurchaseResult,
    StartTripResult,
    VerificationTicket,
    VerifyOtpRequest,
)
from core.models.principal import Principal
from core.models.status import BookingStatus, PaymentStatus, Role, TripStatus

__all__ = [
    "BookingStatus",
    "CancellationResult",
    "CancelTicketRequest",
    "CheckoutMetadata",
    "Location",
    "PaymentStatus",
    "Principal",
    "PurchaseRequest",
    "PurchaseResult",
    "Role",
    "StartTripResult",
    "TripStatus",
    "VerificationTicket",
    "VerifyOtpRequest",
]
