"""
Servicios sobre la capa de pasarelas.
"""

from payment_gateways.services.event_resolver import EventStatusResolver
from payment_gateways.services.webhook_service import WebhookOutcome, WebhookService

__all__ = [
    "EventStatusResolver",
    "WebhookOutcome",
    "WebhookService",
]
