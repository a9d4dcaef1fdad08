"""
Evento de webhook normalizado.

Representación independiente del proveedor de una notificación
recibida de cualquier pasarela.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Taxonomía canónica de eventos."""

    SUBSCRIPTION_AUTHORIZED = "subscription.authorized"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled"
    SUBSCRIPTION_PAUSED = "subscription.paused"
    SUBSCRIPTION_RESUMED = "subscription.resumed"
    SUBSCRIPTION_UPDATED = "subscription.updated"
    SUBSCRIPTION_PENDING = "subscription.pending"

    PAYMENT_APPROVED = "payment.approved"
    PAYMENT_FAILED = "payment.failed"
    PAYMENT_PENDING = "payment.pending"
    PAYMENT_REFUNDED = "payment.refunded"
    PAYMENT_CANCELLED = "payment.cancelled"

    UNKNOWN = "unknown"

    @property
    def is_subscription_event(self) -> bool:
        return self.value.startswith("subscription.")

    @property
    def is_payment_event(self) -> bool:
        return self.value.startswith("payment.")


class ResourceType(str, Enum):
    """Tipo de recurso al que apunta el evento."""

    SUBSCRIPTION = "subscription"
    PAYMENT = "payment"
    AUTHORIZED_PAYMENT = "authorized_payment"
    UNKNOWN = "unknown"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class NormalizedEvent:
    """
    Resultado canónico de un webhook.

    `timestamp` es el momento de captura, no necesariamente el del
    proveedor. `raw` sólo se conserva para diagnóstico.

    Un evento `unknown` es informativo: el llamador no debe derivar
    ninguna transición de estado de él.
    """

    type: EventType
    gateway: str
    resource_id: str | None = None
    resource_type: ResourceType = ResourceType.UNKNOWN

    data: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    raw: Any = None

    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def unknown(
        cls,
        gateway: str,
        raw_type: Any = None,
        raw: Any = None,
    ) -> "NormalizedEvent":
        """Evento no reconocido; nunca dispara transiciones."""
        return cls(
            type=EventType.UNKNOWN,
            gateway=gateway,
            resource_type=ResourceType.UNKNOWN,
            metadata={
                "raw_type": raw_type if isinstance(raw_type, str) else None,
                "requires_status_check": False,
            },
            raw=raw,
        )

    @property
    def is_unknown(self) -> bool:
        return self.type == EventType.UNKNOWN

    @property
    def requires_status_check(self) -> bool:
        """El webhook sólo anuncia un cambio; el estado real se consulta aparte."""
        return bool(self.metadata.get("requires_status_check", False))

    @property
    def is_subscription_payment(self) -> bool:
        return bool(self.metadata.get("is_subscription_payment", False))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "gateway": self.gateway,
            "resource_id": self.resource_id,
            "resource_type": self.resource_type.value,
            "data": dict(self.data),
            "metadata": dict(self.metadata),
            "timestamp": self.timestamp.isoformat(),
        }
