"""Payment gateway abstraction layer."""

from core.gateway.interface import (
    CheckoutSession,
    CheckoutSessionCompleted,
    CheckoutSessionExpired,
    CheckoutSessionStatus,
    GatewayEvent,
    LineItem,
    PaymentGateway,
    RefundResult,
    UnhandledGatewayEvent,
    get_payment_gateway,
    parse_gateway_event,
)
from core.gateway.stripe_gateway import StripeGateway

__all__ = [
    "CheckoutSession",
    "CheckoutSessionCompleted",
    "CheckoutSessionExpired",
    "CheckoutSessionStatus",
    "GatewayEvent",
    "LineItem",
    "PaymentGateway",
    "RefundResult",
    "StripeGateway",
    "UnhandledGatewayEvent",
    "get_payment_gateway",
    "parse_gateway_event",
]
