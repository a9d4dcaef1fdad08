"""
Schemas de los payloads de webhooks entrantes.

Cada adapter valida aquí la forma que espera; un payload que no
cumple se degrada a evento `unknown`.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ============================================
# MercadoPago
# ============================================

class MercadoPagoWebhookData(BaseModel):
    """Bloque `data` de una notificación de MercadoPago."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str | None = None
    status: str | None = None


class MercadoPagoWebhookEvent(BaseModel):
    """
    Notificación de MercadoPago.

    Acepta tanto el formato webhook ({type, action, data: {id}}) como
    el IPN heredado ({topic, resource} o {topic, id}).
    """

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str | None = None
    type: str | None = None
    action: str | None = None
    data: MercadoPagoWebhookData | None = None

    # IPN heredado
    topic: str | None = None
    resource: str | None = None

    @property
    def data_id(self) -> str | None:
        if self.data is not None and self.data.id:
            return self.data.id
        if self.resource:
            return self.resource.rstrip("/").rsplit("/", 1)[-1] or None
        if self.topic:
            return self.id
        return None


# ============================================
# Stripe
# ============================================

class StripeEventData(BaseModel):
    """Bloque `data` de un evento de Stripe."""

    model_config = ConfigDict(extra="allow")

    object: dict[str, Any] = Field(default_factory=dict)
    previous_attributes: dict[str, Any] | None = None


class StripeWebhookEvent(BaseModel):
    """Evento de webhook de Stripe (estructura simplificada)."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    type: str
    data: StripeEventData
    created: int | None = None
    livemode: bool = False


# ============================================
# Mock
# ============================================

class MockWebhookData(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str


class MockWebhookEvent(BaseModel):
    """Evento de la pasarela mock: `type` ya viene en la taxonomía canónica."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    type: str
    data: MockWebhookData
