"""
Eventos normalizados y tablas de estados canónicos.
"""

from payment_gateways.events.normalized import EventType, NormalizedEvent, ResourceType
from payment_gateways.events.status_maps import (
    PAYMENT_STATUS_MAP,
    SUBSCRIPTION_STATUS_MAP,
    PaymentStatus,
    SubscriptionStatus,
    get_internal_status,
    get_provider_subscription_status,
    get_payment_status,
    get_subscription_status,
)

__all__ = [
    "EventType",
    "NormalizedEvent",
    "ResourceType",
    "PAYMENT_STATUS_MAP",
    "SUBSCRIPTION_STATUS_MAP",
    "PaymentStatus",
    "SubscriptionStatus",
    "get_internal_status",
    "get_provider_subscription_status",
    "get_payment_status",
    "get_subscription_status",
]
