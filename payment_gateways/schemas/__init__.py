"""
Schemas Pydantic de payloads externos.
"""

from payment_gateways.schemas.webhook import (
    MercadoPagoWebhookData,
    MercadoPagoWebhookEvent,
    MockWebhookEvent,
    StripeWebhookEvent,
)

__all__ = [
    "MercadoPagoWebhookData",
    "MercadoPagoWebhookEvent",
    "MockWebhookEvent",
    "StripeWebhookEvent",
]
