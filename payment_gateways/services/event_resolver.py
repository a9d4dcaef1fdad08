"""
Resolución del estado real de eventos que sólo anuncian un cambio.
"""

from dataclasses import replace
from typing import Any

import structlog

from payment_gateways.adapters.base import PaymentGateway
from payment_gateways.events.normalized import EventType, NormalizedEvent, ResourceType
from payment_gateways.events.status_maps import (
    event_type_for_payment_status,
    event_type_for_subscription_status,
)


logger = structlog.get_logger(__name__)


class EventStatusResolver:
    """
    Hace una lectura autoritativa para eventos con
    `requires_status_check` y devuelve el evento refinado.

    Un solo intento: los errores del proveedor se propagan y la política
    de reintentos queda en manos del llamador. Se puede sustituir por
    otra implementación con la misma firma.
    """

    async def resolve(self, gateway: PaymentGateway, event: NormalizedEvent) -> NormalizedEvent:
        if event.is_unknown or not event.requires_status_check or not event.resource_id:
            return event

        if event.resource_type == ResourceType.SUBSCRIPTION:
            return await self._resolve_subscription(gateway, event)
        if event.resource_type == ResourceType.PAYMENT:
            return await self._resolve_payment(gateway, event)
        if event.resource_type == ResourceType.AUTHORIZED_PAYMENT:
            return await self._resolve_authorized_payment(gateway, event)

        return event

    def _refined(
        self,
        event: NormalizedEvent,
        event_type: EventType,
        data: dict[str, Any],
    ) -> NormalizedEvent:
        refined = replace(
            event,
            type=event_type,
            data={**event.data, **data},
            metadata={
                **event.metadata,
                "requires_status_check": False,
                "status_checked": True,
            },
        )

        logger.info(
            "Event status resolved",
            gateway=event.gateway,
            resource_id=event.resource_id,
            announced_type=event.type.value,
            resolved_type=refined.type.value,
        )
        return refined

    async def _resolve_subscription(
        self,
        gateway: PaymentGateway,
        event: NormalizedEvent,
    ) -> NormalizedEvent:
        details = await gateway.get_subscription(event.resource_id)
        return self._refined(
            event,
            event_type_for_subscription_status(details.status),
            {
                "subscription_id": details.subscription_id,
                "status": details.status.value,
                "amount": details.amount,
                "currency": details.currency,
                "payer_email": details.payer_email,
                "next_billing_date": details.next_billing_date,
            },
        )

    async def _resolve_payment(
        self,
        gateway: PaymentGateway,
        event: NormalizedEvent,
    ) -> NormalizedEvent:
        details = await gateway.get_payment(event.resource_id)
        return self._refined(
            event,
            event_type_for_payment_status(details.status),
            {
                "payment_id": details.payment_id,
                "status": details.status.value,
                "status_detail": details.status_detail,
                "amount": details.amount,
                "currency": details.currency,
                "external_reference": details.external_reference,
            },
        )

    async def _resolve_authorized_payment(
        self,
        gateway: PaymentGateway,
        event: NormalizedEvent,
    ) -> NormalizedEvent:
        details = await gateway.get_authorized_payment(event.resource_id)
        if details is None:
            logger.info(
                "Authorized payment unavailable, event left unresolved",
                gateway=event.gateway,
                resource_id=event.resource_id,
            )
            return event

        return self._refined(
            event,
            event_type_for_payment_status(details.status),
            {
                "subscription_id": details.subscription_id,
                "payment_id": details.payment_id,
                "status": details.status.value,
                "amount": details.amount,
                "currency": details.currency,
                "rejection_code": details.rejection_code,
            },
        )
