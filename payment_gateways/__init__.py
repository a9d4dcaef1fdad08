"""
Capa multi-pasarela de pagos: contrato común, adapters por proveedor,
normalización de webhooks y resolución de pasarelas por tenant.
"""

from payment_gateways.adapters import (
    GatewayFactory,
    PaymentGateway,
    get_gateway,
    get_gateway_factory,
)
from payment_gateways.events import EventType, NormalizedEvent, ResourceType
from payment_gateways.logging_config import configure_logging

__version__ = "1.0.0"

__all__ = [
    "EventType",
    "GatewayFactory",
    "NormalizedEvent",
    "PaymentGateway",
    "ResourceType",
    "configure_logging",
    "get_gateway",
    "get_gateway_factory",
]
