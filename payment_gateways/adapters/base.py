"""
Interfaz base abstracta para pasarelas de pago.
Define el contrato que todos los adapters deben implementar.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, NamedTuple

from payment_gateways.events.normalized import NormalizedEvent
from payment_gateways.events.status_maps import PaymentStatus, SubscriptionStatus

if TYPE_CHECKING:
    from payment_gateways.adapters.credentials import CredentialsProvider


class GatewayIdentity(NamedTuple):
    """Identidad de una pasarela: nombre, sandbox y etiqueta de entorno."""

    name: str
    is_sandbox: bool
    environment: str


@dataclass
class SubscriptionResult:
    """Resultado de crear una suscripción recurrente."""

    subscription_id: str
    status: SubscriptionStatus
    checkout_url: str | None = None  # Página de aprobación del proveedor
    payer_email: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    external_reference: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class SubscriptionDetails:
    """
    Vista neutral de un acuerdo de cobro recurrente.

    `status` siempre pertenece al vocabulario canónico; `raw` sólo
    sirve para diagnóstico.
    """

    subscription_id: str
    status: SubscriptionStatus
    payer_email: str | None = None
    amount: Decimal = Decimal(0)
    currency: str = "MXN"
    next_billing_date: datetime | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentDetails:
    """Vista neutral de un intento de pago."""

    payment_id: str
    status: PaymentStatus
    status_detail: str | None = None
    amount: Decimal = Decimal(0)
    currency: str | None = None
    payer_email: str | None = None
    external_reference: str | None = None
    created_at: datetime | None = None
    approved_at: datetime | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class AuthorizedPaymentDetails:
    """Pago preautorizado bajo una suscripción (no todos los proveedores lo tienen)."""

    authorized_payment_id: str
    subscription_id: str | None
    status: PaymentStatus
    amount: Decimal = Decimal(0)
    currency: str = "MXN"
    rejection_code: str | None = None
    payment_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class ConnectivityResult:
    """Resultado del chequeo de conectividad."""

    success: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)


class PaymentGateway(ABC):
    """
    Interfaz abstracta para pasarelas de pago.

    Los llamadores sólo conocen este tipo, nunca el adapter concreto.
    Las operaciones de red son async; `validate_webhook` y
    `normalize_event` son puramente de CPU y nunca lanzan.
    """

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id

    @classmethod
    @abstractmethod
    async def create(
        cls,
        tenant_id: str,
        credentials_provider: "CredentialsProvider",
    ) -> "PaymentGateway":
        """Construye una instancia lista para usar (credenciales resueltas una vez)."""

    # ====================================================================
    # IDENTIFICACIÓN
    # ====================================================================

    @property
    @abstractmethod
    def name(self) -> str:
        """Nombre de la pasarela (ej: 'mercadopago', 'stripe')."""

    @abstractmethod
    def is_sandbox(self) -> bool:
        """True si opera contra el entorno de pruebas del proveedor."""

    @property
    def environment(self) -> str:
        return "sandbox" if self.is_sandbox() else "production"

    def identify(self) -> GatewayIdentity:
        return GatewayIdentity(self.name, self.is_sandbox(), self.environment)

    def get_test_payer_email(self) -> str | None:
        """Email de comprador de prueba para sandbox, si el proveedor lo requiere."""
        return None

    # ====================================================================
    # SUSCRIPCIONES
    # ====================================================================

    @abstractmethod
    async def create_subscription(
        self,
        name: str,
        amount: Decimal,
        currency: str,
        payer_email: str,
        return_url: str | None = None,
        external_reference: str | None = None,
    ) -> SubscriptionResult:
        """
        Inicia un nuevo acuerdo recurrente.

        NO es idempotente: dos llamadas crean dos suscripciones en el
        proveedor.

        Args:
            name: Nombre/razón de la suscripción
            amount: Monto por periodo
            currency: Código ISO 4217
            payer_email: Email del pagador
            return_url: URL de retorno tras la aprobación
            external_reference: Referencia propia (ej: org_<id>_<ts>)

        Raises:
            ProviderError: Si el proveedor rechaza la creación
        """

    @abstractmethod
    async def get_subscription(self, subscription_id: str) -> SubscriptionDetails:
        """
        Raises:
            NotFoundError: Si la suscripción no existe
        """

    @abstractmethod
    async def update_subscription_amount(
        self,
        subscription_id: str,
        amount: Decimal,
        currency: str,
    ) -> SubscriptionDetails:
        """Cambia el monto recurrente (cobro por uso o por asientos)."""

    @abstractmethod
    async def cancel_subscription(self, subscription_id: str) -> SubscriptionDetails:
        """Transición terminal. El conflicto del proveedor se propaga."""

    @abstractmethod
    async def pause_subscription(self, subscription_id: str) -> SubscriptionDetails:
        pass

    @abstractmethod
    async def resume_subscription(self, subscription_id: str) -> SubscriptionDetails:
        pass

    # ====================================================================
    # PAGOS
    # ====================================================================

    @abstractmethod
    async def get_payment(self, payment_id: str) -> PaymentDetails:
        pass

    async def get_authorized_payment(
        self,
        authorized_payment_id: str,
    ) -> AuthorizedPaymentDetails | None:
        """
        Pago preautorizado de suscripción.

        Por defecto retorna None: sólo los proveedores con este concepto
        lo sobreescriben.
        """
        return None

    # ====================================================================
    # WEBHOOKS
    # ====================================================================

    @abstractmethod
    def validate_webhook(
        self,
        signature: str | None,
        request_id: str | None,
        data_id: str | None,
        payload: bytes | None = None,
    ) -> bool:
        """
        Valida la firma de un webhook.

        Args:
            signature: Header de firma ya extraído
            request_id: Identificador del request
            data_id: ID del recurso notificado
            payload: Cuerpo crudo (proveedores con HMAC sobre el body)

        Returns:
            False ante cualquier entrada inválida; nunca lanza.
        """

    @abstractmethod
    def normalize_event(self, raw_event: Any) -> NormalizedEvent:
        """
        Traduce un payload crudo a NormalizedEvent.

        Función pura. Tipos desconocidos o payloads mal formados
        producen un evento `unknown`.
        """

    # ====================================================================
    # VERIFICACIÓN
    # ====================================================================

    @abstractmethod
    async def verify_connectivity(self) -> ConnectivityResult:
        """Chequeo de salud; nunca lanza."""
