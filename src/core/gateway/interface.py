from abc import ABC, abstractmethod
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

SESSION_COMPLETED = "checkout.session.completed"
SESSION_EXPIRED = "checkout.session.expired"


class LineItem(BaseModel):
    name: str
    description: str
    unit_amount: int = Field(..., ge=0, description="Minor currency units")
    quantity: int = Field(default=1, ge=1)
    currency: str


class CheckoutSession(BaseModel):
    id: str
    url: str | None = None


class CheckoutSessionStatus(BaseModel):
    id: str
    paid: bool
    payment_intent: str | None = None
    metadata: dict[str, str] = {}


class RefundResult(BaseModel):
    ok: bool
    refund_id: str | None = None
    error: str | None = None


class CheckoutSessionCompleted(BaseModel):
    kind: Literal["session-completed"] = "session-completed"
    event_id: str
    session_id: str
    metadata: dict[str, str] = {}


class CheckoutSessionExpired(BaseModel):
    kind: Literal["session-expired"] = "session-expired"
    event_id: str
    session_id: str


class UnhandledGatewayEvent(BaseModel):
    kind: Literal["unhandled"] = "unhandled"
    event_id: str
    type: str


GatewayEvent = Annotated[
    Union[CheckoutSessionCompleted, CheckoutSessionExpired, UnhandledGatewayEvent],
    Field(discriminator="kind"),
]


def parse_gateway_event(event_id: str, event_type: str, obj: dict[str, Any]) -> GatewayEvent:
    """Map a raw gateway event onto the closed set of variants the reconciler handles."""
    if event_type == SESSION_COMPLETED:
        metadata = {str(k): str(v) for k, v in (obj.get("metadata") or {}).items()}
        return CheckoutSessionCompleted(event_id=event_id, session_id=obj["id"], metadata=metadata)
    if event_type == SESSION_EXPIRED:
        return CheckoutSessionExpired(event_id=event_id, session_id=obj["id"])
    return UnhandledGatewayEvent(event_id=event_id, type=event_type)


class PaymentGateway(ABC):
    @abstractmethod
    def create_checkout_session(
        self,
        line_item: LineItem,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> CheckoutSession: ...

    @abstractmethod
    def construct_event(self, raw_body: bytes | str, signature_header: str | None) -> GatewayEvent: ...

    @abstractmethod
    def retrieve_checkout_session(self, session_id: str) -> CheckoutSessionStatus: ...

    @abstractmethod
    def refund(self, session_id: str, reason: str = "requested_by_customer") -> RefundResult:
        """Best effort: report failures in the result, never raise."""
        ...


def get_payment_gateway() -> PaymentGateway:
    from core.config import get_config

    config = get_config()
    if not config.stripe_secret_key:
        raise ValueError("STRIPE_SECRET_KEY not configured")

    from core.gateway.stripe_gateway import StripeGateway

    return StripeGateway(secret_key=config.stripe_secret_key, webhook_secret=config.stripe_webhook_secret)
