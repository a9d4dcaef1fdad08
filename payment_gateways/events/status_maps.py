"""
Tablas de mapeo de estados del proveedor a estados internos.

Estas tablas son la única fuente de verdad sobre el significado de un
estado del proveedor. Ningún otro módulo compara strings de estado
crudos.
"""

from enum import Enum
from types import MappingProxyType
from typing import Mapping

import structlog

from payment_gateways.events.normalized import EventType


logger = structlog.get_logger(__name__)


class SubscriptionStatus(str, Enum):
    """Vocabulario canónico de suscripciones."""

    PENDING = "pending"
    AUTHORIZED = "authorized"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Vocabulario canónico de pagos."""

    PENDING = "pending"
    APPROVED = "approved"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


# El primer estado crudo de cada valor canónico es el que se envía al proveedor
SUBSCRIPTION_STATUS_MAP: Mapping[str, Mapping[str, SubscriptionStatus]] = MappingProxyType({
    "mercadopago": MappingProxyType({
        "pending": SubscriptionStatus.PENDING,
        "authorized": SubscriptionStatus.AUTHORIZED,
        "paused": SubscriptionStatus.PAUSED,
        "cancelled": SubscriptionStatus.CANCELLED,
    }),
    "stripe": MappingProxyType({
        "incomplete": SubscriptionStatus.PENDING,
        "active": SubscriptionStatus.AUTHORIZED,
        "trialing": SubscriptionStatus.AUTHORIZED,
        # Sigue vigente mientras Stripe reintenta el cobro
        "past_due": SubscriptionStatus.AUTHORIZED,
        "paused": SubscriptionStatus.PAUSED,
        "unpaid": SubscriptionStatus.PAUSED,
        "canceled": SubscriptionStatus.CANCELLED,
        "incomplete_expired": SubscriptionStatus.CANCELLED,
    }),
    "mock": MappingProxyType({
        "pending": SubscriptionStatus.PENDING,
        "authorized": SubscriptionStatus.AUTHORIZED,
        "paused": SubscriptionStatus.PAUSED,
        "cancelled": SubscriptionStatus.CANCELLED,
    }),
})


PAYMENT_STATUS_MAP: Mapping[str, Mapping[str, PaymentStatus]] = MappingProxyType({
    "mercadopago": MappingProxyType({
        "pending": PaymentStatus.PENDING,
        "approved": PaymentStatus.APPROVED,
        "authorized": PaymentStatus.PENDING,
        "in_process": PaymentStatus.PENDING,
        "in_mediation": PaymentStatus.PENDING,
        "rejected": PaymentStatus.FAILED,
        "cancelled": PaymentStatus.CANCELLED,
        "refunded": PaymentStatus.REFUNDED,
        "charged_back": PaymentStatus.REFUNDED,
        # Estados propios de authorized_payments (cobros de suscripción)
        "scheduled": PaymentStatus.PENDING,
        "processed": PaymentStatus.APPROVED,
        "recycling": PaymentStatus.FAILED,
    }),
    "stripe": MappingProxyType({
        "requires_payment_method": PaymentStatus.PENDING,
        "requires_confirmation": PaymentStatus.PENDING,
        "requires_action": PaymentStatus.PENDING,
        "processing": PaymentStatus.PENDING,
        "requires_capture": PaymentStatus.PENDING,
        "succeeded": PaymentStatus.APPROVED,
        "canceled": PaymentStatus.CANCELLED,
        "failed": PaymentStatus.FAILED,
        "paid": PaymentStatus.APPROVED,
        "open": PaymentStatus.PENDING,
        "uncollectible": PaymentStatus.FAILED,
        "void": PaymentStatus.CANCELLED,
    }),
    "mock": MappingProxyType({
        "pending": PaymentStatus.PENDING,
        "approved": PaymentStatus.APPROVED,
        "failed": PaymentStatus.FAILED,
        "refunded": PaymentStatus.REFUNDED,
        "cancelled": PaymentStatus.CANCELLED,
    }),
})


SUBSCRIPTION_STATUS_EVENTS: Mapping[SubscriptionStatus, EventType] = MappingProxyType({
    SubscriptionStatus.PENDING: EventType.SUBSCRIPTION_PENDING,
    SubscriptionStatus.AUTHORIZED: EventType.SUBSCRIPTION_AUTHORIZED,
    SubscriptionStatus.PAUSED: EventType.SUBSCRIPTION_PAUSED,
    SubscriptionStatus.CANCELLED: EventType.SUBSCRIPTION_CANCELLED,
})


PAYMENT_STATUS_EVENTS: Mapping[PaymentStatus, EventType] = MappingProxyType({
    PaymentStatus.PENDING: EventType.PAYMENT_PENDING,
    PaymentStatus.APPROVED: EventType.PAYMENT_APPROVED,
    PaymentStatus.FAILED: EventType.PAYMENT_FAILED,
    PaymentStatus.REFUNDED: EventType.PAYMENT_REFUNDED,
    PaymentStatus.CANCELLED: EventType.PAYMENT_CANCELLED,
})


def _reverse(table: Mapping[str, SubscriptionStatus]) -> Mapping[SubscriptionStatus, str]:
    reverse: dict[SubscriptionStatus, str] = {}
    for raw_status, status in table.items():
        reverse.setdefault(status, raw_status)
    return MappingProxyType(reverse)


PROVIDER_SUBSCRIPTION_STATUS: Mapping[str, Mapping[SubscriptionStatus, str]] = MappingProxyType({
    gateway: _reverse(table) for gateway, table in SUBSCRIPTION_STATUS_MAP.items()
})


def is_known_subscription_status(gateway: str, raw_status: object) -> bool:
    """Indica si el estado crudo aparece en la tabla de la pasarela."""
    table = SUBSCRIPTION_STATUS_MAP.get(gateway, {})
    return isinstance(raw_status, str) and raw_status.lower() in table


def is_known_payment_status(gateway: str, raw_status: object) -> bool:
    table = PAYMENT_STATUS_MAP.get(gateway, {})
    return isinstance(raw_status, str) and raw_status.lower() in table


def get_subscription_status(
    gateway: str,
    raw_status: object,
    default: SubscriptionStatus = SubscriptionStatus.PENDING,
) -> SubscriptionStatus:
    """
    Traduce un estado de suscripción del proveedor al vocabulario canónico.

    Un estado no registrado nunca se devuelve crudo: se usa `default`.
    """
    table = SUBSCRIPTION_STATUS_MAP.get(gateway, {})
    if isinstance(raw_status, str) and raw_status.lower() in table:
        return table[raw_status.lower()]

    logger.warning(
        "Unmapped subscription status",
        gateway=gateway,
        raw_status=raw_status,
        fallback=default.value,
    )
    return default


def get_payment_status(
    gateway: str,
    raw_status: object,
    default: PaymentStatus = PaymentStatus.PENDING,
) -> PaymentStatus:
    """Traduce un estado de pago del proveedor al vocabulario canónico."""
    table = PAYMENT_STATUS_MAP.get(gateway, {})
    if isinstance(raw_status, str) and raw_status.lower() in table:
        return table[raw_status.lower()]

    logger.warning(
        "Unmapped payment status",
        gateway=gateway,
        raw_status=raw_status,
        fallback=default.value,
    )
    return default


def get_internal_status(gateway: str, raw_status: object, kind: str = "subscription") -> str:
    """
    Estado interno (string) para un estado crudo.

    Args:
        gateway: Nombre de la pasarela
        raw_status: Estado tal como lo reporta el proveedor
        kind: "subscription" o "payment"
    """
    if kind == "payment":
        return get_payment_status(gateway, raw_status).value
    return get_subscription_status(gateway, raw_status).value


def event_type_for_subscription_status(status: SubscriptionStatus) -> EventType:
    return SUBSCRIPTION_STATUS_EVENTS[status]


def event_type_for_payment_status(status: PaymentStatus) -> EventType:
    return PAYMENT_STATUS_EVENTS[status]


def get_provider_subscription_status(gateway: str, status: SubscriptionStatus) -> str:
    """
    Estado crudo que el proveedor espera para un estado canónico.

    Raises:
        KeyError: Si la pasarela no tiene un estado para `status`
    """
    return PROVIDER_SUBSCRIPTION_STATUS[gateway][status]
