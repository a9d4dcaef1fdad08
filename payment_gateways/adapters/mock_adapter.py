"""
Mock Adapter para desarrollo y testing.
Simula el comportamiento de una pasarela de suscripciones.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import uuid4

import structlog
from pydantic import ValidationError

from payment_gateways.adapters.base import (
    AuthorizedPaymentDetails,
    ConnectivityResult,
    PaymentDetails,
    PaymentGateway,
    SubscriptionDetails,
    SubscriptionResult,
)
from payment_gateways.adapters.credentials import CredentialsProvider
from payment_gateways.events.normalized import EventType, NormalizedEvent, ResourceType
from payment_gateways.events.status_maps import (
    PaymentStatus,
    SubscriptionStatus,
    get_payment_status,
    get_provider_subscription_status,
    get_subscription_status,
)
from payment_gateways.schemas.webhook import MockWebhookEvent
from payment_gateways.utils.exceptions import NotFoundError, ProviderError
from payment_gateways.utils.hmac_utils import (
    create_mercadopago_signature_header,
    verify_mercadopago_signature,
)


logger = structlog.get_logger(__name__)

GATEWAY_NAME = "mock"


def _raw_status(status: SubscriptionStatus) -> str:
    return get_provider_subscription_status(GATEWAY_NAME, status)


class MockGateway(PaymentGateway):
    """
    Adapter mock para desarrollo y testing.

    Guarda suscripciones y pagos en memoria de la instancia y responde
    con conflicto (409) a transiciones inválidas, como lo haría un
    proveedor real. Útil para desarrollo local sin credenciales.
    """

    # Secret para validación de webhooks mock
    MOCK_WEBHOOK_SECRET = "mock_webhook_secret_for_testing"

    def __init__(self, tenant_id: str, sandbox: bool = True):
        super().__init__(tenant_id)
        self._sandbox = sandbox
        self._subscriptions: dict[str, dict[str, Any]] = {}
        self._payments: dict[str, dict[str, Any]] = {}
        self._authorized_payments: dict[str, dict[str, Any]] = {}

    @classmethod
    async def create(
        cls,
        tenant_id: str,
        credentials_provider: CredentialsProvider,
    ) -> "MockGateway":
        gateway = cls(tenant_id)
        logger.info("MockGateway initialized", tenant_id=str(tenant_id))
        return gateway

    @property
    def name(self) -> str:
        return GATEWAY_NAME

    def is_sandbox(self) -> bool:
        return self._sandbox

    def _generate_mock_id(self, prefix: str = "mock") -> str:
        return f"{prefix}_{uuid4().hex[:24]}"

    def _get_subscription_data(self, subscription_id: str, operation: str) -> dict[str, Any]:
        data = self._subscriptions.get(subscription_id)
        if data is None:
            raise NotFoundError(GATEWAY_NAME, operation, subscription_id)
        return data

    def _conflict(self, operation: str, subscription: dict[str, Any]) -> ProviderError:
        return ProviderError(
            GATEWAY_NAME,
            operation,
            f"Cannot {operation} subscription in status {subscription['status']}",
            status_code=409,
            response={"status": subscription["status"]},
        )

    def _status(self, data: dict[str, Any]) -> SubscriptionStatus:
        return get_subscription_status(GATEWAY_NAME, data["status"])

    def _details(self, data: dict[str, Any]) -> SubscriptionDetails:
        return SubscriptionDetails(
            subscription_id=data["id"],
            status=self._status(data),
            payer_email=data["payer_email"],
            amount=data["amount"],
            currency=data["currency"],
            next_billing_date=data.get("next_payment_date"),
            raw=dict(data),
        )

    # ====================================================================
    # SUSCRIPCIONES
    # ====================================================================

    async def create_subscription(
        self,
        name: str,
        amount: Decimal,
        currency: str,
        payer_email: str,
        return_url: str | None = None,
        external_reference: str | None = None,
    ) -> SubscriptionResult:
        subscription_id = self._generate_mock_id("sub")
        data = {
            "id": subscription_id,
            "reason": name,
            "status": _raw_status(SubscriptionStatus.PENDING),
            "payer_email": payer_email,
            "amount": amount,
            "currency": currency,
            "external_reference": external_reference,
            "back_url": return_url,
            "next_payment_date": None,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        self._subscriptions[subscription_id] = data

        logger.info(
            "Mock subscription created",
            tenant_id=str(self.tenant_id),
            subscription_id=subscription_id,
        )

        return SubscriptionResult(
            subscription_id=subscription_id,
            status=self._status(data),
            checkout_url=f"http://localhost:3000/mock-checkout/{subscription_id}",
            payer_email=payer_email,
            amount=amount,
            currency=currency,
            external_reference=external_reference,
            raw=dict(data),
        )

    async def get_subscription(self, subscription_id: str) -> SubscriptionDetails:
        return self._details(self._get_subscription_data(subscription_id, "get_subscription"))

    async def update_subscription_amount(
        self,
        subscription_id: str,
        amount: Decimal,
        currency: str,
    ) -> SubscriptionDetails:
        operation = "update_subscription_amount"
        data = self._get_subscription_data(subscription_id, operation)
        if self._status(data) == SubscriptionStatus.CANCELLED:
            raise self._conflict(operation, data)

        data["amount"] = amount
        data["currency"] = currency
        return self._details(data)

    async def cancel_subscription(self, subscription_id: str) -> SubscriptionDetails:
        operation = "cancel_subscription"
        data = self._get_subscription_data(subscription_id, operation)
        if self._status(data) == SubscriptionStatus.CANCELLED:
            raise self._conflict(operation, data)

        data["status"] = _raw_status(SubscriptionStatus.CANCELLED)
        data["next_payment_date"] = None
        return self._details(data)

    async def pause_subscription(self, subscription_id: str) -> SubscriptionDetails:
        operation = "pause_subscription"
        data = self._get_subscription_data(subscription_id, operation)
        if self._status(data) != SubscriptionStatus.AUTHORIZED:
            raise self._conflict(operation, data)

        data["status"] = _raw_status(SubscriptionStatus.PAUSED)
        data["next_payment_date"] = None
        return self._details(data)

    async def resume_subscription(self, subscription_id: str) -> SubscriptionDetails:
        operation = "resume_subscription"
        data = self._get_subscription_data(subscription_id, operation)
        if self._status(data) != SubscriptionStatus.PAUSED:
            raise self._conflict(operation, data)

        data["status"] = _raw_status(SubscriptionStatus.AUTHORIZED)
        data["next_payment_date"] = datetime.now(timezone.utc) + timedelta(days=30)
        return self._details(data)

    # ====================================================================
    # PAGOS
    # ====================================================================

    async def get_payment(self, payment_id: str) -> PaymentDetails:
        data = self._payments.get(payment_id)
        if data is None:
            raise NotFoundError(GATEWAY_NAME, "get_payment", payment_id)

        return PaymentDetails(
            payment_id=payment_id,
            status=get_payment_status(GATEWAY_NAME, data["status"]),
            status_detail=data.get("status_detail"),
            amount=data["amount"],
            currency=data["currency"],
            payer_email=data.get("payer_email"),
            external_reference=data.get("external_reference"),
            created_at=data.get("created_at"),
            approved_at=data.get("approved_at"),
            raw=dict(data),
        )

    async def get_authorized_payment(
        self,
        authorized_payment_id: str,
    ) -> AuthorizedPaymentDetails | None:
        data = self._authorized_payments.get(authorized_payment_id)
        if data is None:
            return None

        return AuthorizedPaymentDetails(
            authorized_payment_id=authorized_payment_id,
            subscription_id=data["subscription_id"],
            status=get_payment_status(GATEWAY_NAME, data["status"]),
            amount=data["amount"],
            currency=data["currency"],
            rejection_code=data.get("rejection_code"),
            payment_id=data.get("payment_id"),
            raw=dict(data),
        )

    # ====================================================================
    # WEBHOOKS
    # ====================================================================

    def validate_webhook(
        self,
        signature: str | None,
        request_id: str | None,
        data_id: str | None,
        payload: bytes | None = None,
    ) -> bool:
        return verify_mercadopago_signature(
            signature,
            request_id,
            data_id,
            self.MOCK_WEBHOOK_SECRET,
        )

    def normalize_event(self, raw_event: Any) -> NormalizedEvent:
        try:
            event = MockWebhookEvent.model_validate(raw_event)
            event_type = EventType(event.type)
        except (ValidationError, ValueError):
            raw_type = raw_event.get("type") if isinstance(raw_event, dict) else None
            return NormalizedEvent.unknown(GATEWAY_NAME, raw_type, raw_event)

        if event_type == EventType.UNKNOWN:
            return NormalizedEvent.unknown(GATEWAY_NAME, event.type, raw_event)

        extra = event.data.model_extra or {}
        subscription_id = extra.get("subscription_id")

        if event_type.is_subscription_event:
            resource_type = ResourceType.SUBSCRIPTION
        elif subscription_id:
            resource_type = ResourceType.AUTHORIZED_PAYMENT
        else:
            resource_type = ResourceType.PAYMENT

        return NormalizedEvent(
            type=event_type,
            gateway=GATEWAY_NAME,
            resource_id=event.data.id,
            resource_type=resource_type,
            data={"event_id": event.id, **extra},
            metadata={
                "requires_status_check": False,
                "is_subscription_payment": bool(subscription_id),
                "raw_type": event.type,
            },
            raw=raw_event,
        )

    async def verify_connectivity(self) -> ConnectivityResult:
        return ConnectivityResult(
            success=True,
            message="Mock gateway is always reachable",
            details={"environment": self.environment},
        )

    # ============================================
    # Métodos auxiliares para testing
    # ============================================

    def _webhook_payload(self, event_type: EventType, resource_id: str, **extra: Any) -> dict[str, Any]:
        return {
            "id": self._generate_mock_id("evt"),
            "type": event_type.value,
            "data": {"id": resource_id, **extra},
        }

    def simulate_subscription_authorization(self, subscription_id: str) -> dict[str, Any]:
        """
        Simula que el pagador autorizó la suscripción en el checkout.

        Retorna el payload de webhook que se generaría.
        """
        data = self._get_subscription_data(subscription_id, "authorize_subscription")
        data["status"] = _raw_status(SubscriptionStatus.AUTHORIZED)
        data["next_payment_date"] = datetime.now(timezone.utc) + timedelta(days=30)

        return self._webhook_payload(EventType.SUBSCRIPTION_AUTHORIZED, subscription_id)

    def simulate_subscription_cancellation(self, subscription_id: str) -> dict[str, Any]:
        """Simula una cancelación iniciada desde el lado del proveedor."""
        data = self._get_subscription_data(subscription_id, "cancel_subscription")
        data["status"] = _raw_status(SubscriptionStatus.CANCELLED)
        data["next_payment_date"] = None

        return self._webhook_payload(EventType.SUBSCRIPTION_CANCELLED, subscription_id)

    def simulate_subscription_charge(
        self,
        subscription_id: str,
        succeed: bool = True,
    ) -> dict[str, Any]:
        """Simula el cobro periódico de una suscripción."""
        subscription = self._get_subscription_data(subscription_id, "charge_subscription")
        now = datetime.now(timezone.utc)

        status = PaymentStatus.APPROVED if succeed else PaymentStatus.FAILED
        payment_id = self._generate_mock_id("pay")
        authorized_payment_id = self._generate_mock_id("ap")

        self._payments[payment_id] = {
            "id": payment_id,
            "status": status.value,
            "status_detail": None if succeed else "cc_rejected_insufficient_amount",
            "amount": subscription["amount"],
            "currency": subscription["currency"],
            "payer_email": subscription["payer_email"],
            "external_reference": subscription["external_reference"],
            "created_at": now,
            "approved_at": now if succeed else None,
        }
        self._authorized_payments[authorized_payment_id] = {
            "id": authorized_payment_id,
            "subscription_id": subscription_id,
            "payment_id": payment_id,
            "status": status.value,
            "amount": subscription["amount"],
            "currency": subscription["currency"],
            "rejection_code": None if succeed else "insufficient_amount",
        }

        logger.info(
            "Mock subscription charge simulated",
            subscription_id=subscription_id,
            status=status.value,
        )

        event_type = EventType.PAYMENT_APPROVED if succeed else EventType.PAYMENT_FAILED
        return self._webhook_payload(
            event_type,
            authorized_payment_id,
            subscription_id=subscription_id,
            payment_id=payment_id,
        )

    def generate_webhook_signature(self, data_id: str, request_id: str) -> str:
        """Header x-signature válido para un recurso mock."""
        return create_mercadopago_signature_header(
            data_id,
            request_id,
            self.MOCK_WEBHOOK_SECRET,
        )

    def clear(self) -> None:
        """Limpia todos los datos mock."""
        self._subscriptions.clear()
        self._payments.clear()
        self._authorized_payments.clear()
        logger.info("Mock gateway data cleared", tenant_id=str(self.tenant_id))
