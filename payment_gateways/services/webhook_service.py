"""
Servicio de ingesta de webhooks de pasarelas.

Resuelve la pasarela del tenant, valida la firma y normaliza el
evento. La transición de estado interna la decide el llamador.
"""

import json
from dataclasses import dataclass
from typing import Any

import structlog

from payment_gateways.adapters.factory import GatewayFactory, get_gateway_factory
from payment_gateways.events.normalized import NormalizedEvent
from payment_gateways.services.event_resolver import EventStatusResolver


logger = structlog.get_logger(__name__)


@dataclass
class WebhookOutcome:
    """Resultado de procesar un webhook entrante."""

    accepted: bool
    event: NormalizedEvent | None = None
    reason: str | None = None


def extract_data_id(raw_event: Any) -> str | None:
    """ID del recurso notificado, según la forma del payload."""
    if not isinstance(raw_event, dict):
        return None

    data = raw_event.get("data")
    if isinstance(data, dict):
        if data.get("id") is not None:
            return str(data["id"])
        obj = data.get("object")
        if isinstance(obj, dict) and obj.get("id") is not None:
            return str(obj["id"])

    # IPN heredado: {topic, resource} o {topic, id}
    resource = raw_event.get("resource")
    if isinstance(resource, str) and resource:
        return resource.rstrip("/").rsplit("/", 1)[-1]
    if raw_event.get("topic") and raw_event.get("id") is not None:
        return str(raw_event["id"])

    return None


class WebhookService:
    """Orquesta validación y normalización de webhooks entrantes."""

    def __init__(
        self,
        factory: GatewayFactory | None = None,
        resolver: EventStatusResolver | None = None,
    ):
        self._factory = factory or get_gateway_factory()
        self._resolver = resolver or EventStatusResolver()

    async def process(
        self,
        tenant_id: str | int,
        gateway_name: str | None,
        body: bytes,
        signature: str | None,
        request_id: str | None = None,
        data_id: str | None = None,
        resolve_status: bool = False,
    ) -> WebhookOutcome:
        """
        Procesa un webhook.

        Args:
            tenant_id: Organización dueña del conector
            gateway_name: Pasarela que envía la notificación
            body: Cuerpo crudo del request
            signature: Header de firma ya extraído
            request_id: Header de id de request (MercadoPago)
            data_id: ID notificado, si llegó fuera del body (query string)
            resolve_status: Consultar el estado real si el evento lo pide

        Returns:
            WebhookOutcome; una firma inválida no es una excepción.

        Raises:
            ConfigurationError: Si el tenant o la pasarela son inválidos
            ProviderError: Si falla la consulta de estado
        """
        gateway = await self._factory.resolve(tenant_id, gateway_name)

        try:
            raw_event = json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(
                "Webhook body is not valid JSON",
                tenant_id=str(tenant_id),
                gateway=gateway.name,
                error=str(e),
            )
            return WebhookOutcome(accepted=False, reason="invalid_payload")

        resource_id = data_id or extract_data_id(raw_event)

        if not gateway.validate_webhook(signature, request_id, resource_id, payload=body):
            logger.warning(
                "Webhook rejected: invalid signature",
                tenant_id=str(tenant_id),
                gateway=gateway.name,
                request_id=request_id,
                data_id=resource_id,
            )
            return WebhookOutcome(accepted=False, reason="invalid_signature")

        event = gateway.normalize_event(raw_event)

        if resolve_status and event.requires_status_check:
            event = await self._resolver.resolve(gateway, event)

        logger.info(
            "Webhook accepted",
            tenant_id=str(tenant_id),
            gateway=gateway.name,
            event_type=event.type.value,
            resource_id=event.resource_id,
            requires_status_check=event.requires_status_check,
        )

        return WebhookOutcome(accepted=True, event=event)
