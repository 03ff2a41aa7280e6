from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from core.models.status import PaymentStatus


class Location(BaseModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)


class PurchaseRequest(BaseModel):
    quantity: int = Field(..., ge=1, le=100)


class CancelTicketRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_id: str = Field(..., min_length=1, alias="paymentId")


class VerifyOtpRequest(Location):
    otp: str = Field(..., pattern=r"^[0-9]{4,8}$")


class CheckoutMetadata(BaseModel):
    """Identifiers attached to every checkout session.

    Carries enough to resolve the purchase from a webhook alone, since the
    webhook may arrive before the purchase request has finished.
    """

    payment_id: str
    traveler_id: str
    requester_id: str
    event_id: str | None = None
    trip_id: str | None = None
    quantity: int = 1

    def to_gateway(self) -> dict[str, str]:
        metadata = {
            "paymentId": self.payment_id,
            "travelerId": self.traveler_id,
            "requesterId": self.requester_id,
            "quantity": str(self.quantity),
        }
        if self.event_id:
            metadata["eventId"] = self.event_id
        if self.trip_id:
            metadata["tripId"] = self.trip_id
        return metadata


class PurchaseResult(BaseModel):
    payment_id: str
    status: PaymentStatus
    amount: Decimal
    session_id: str | None = None
    session_url: str | None = None


class VerificationTicket(BaseModel):
    otp: str
    expires_at: datetime


class StartTripResult(BaseModel):
    trip_id: str
    otp: str
    expires_at: datetime
    guide_phone: str | None = None


class CancellationResult(BaseModel):
    """Outcome of a cancellation; ``refunded`` is None when no money had been taken."""

    payment_id: str | None = None
    restored_tickets: int = 0
    refunded: bool | None = None
