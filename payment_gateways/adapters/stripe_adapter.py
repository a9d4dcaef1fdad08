"""
Adapter para Stripe (pendiente de integración).

Las operaciones de red fallan con GatewayNotImplementedError para que
la UI pueda decir "aún no disponible". La validación de firmas y la
normalización de eventos sí están implementadas: son sólo CPU.
"""

from decimal import Decimal
from typing import Any, NoReturn

import stripe
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
from payment_gateways.adapters.credentials import CredentialsProvider, GatewayCredentials
from payment_gateways.config import settings
from payment_gateways.events.normalized import EventType, NormalizedEvent, ResourceType
from payment_gateways.events.status_maps import (
    event_type_for_subscription_status,
    get_subscription_status,
    is_known_subscription_status,
)
from payment_gateways.schemas.webhook import StripeWebhookEvent
from payment_gateways.utils.exceptions import ConfigurationError, GatewayNotImplementedError


logger = structlog.get_logger(__name__)

GATEWAY_NAME = "stripe"


class StripeGateway(PaymentGateway):
    """
    Adapter de Stripe.

    Los webhooks de Stripe traen el objeto completo, por lo que los
    eventos normalizados no piden consulta de estado.
    """

    # Mapeo de tipos de evento de Stripe a formato interno.
    # None: el tipo se deriva del estado del objeto.
    EVENT_TYPE_MAP: dict[str, tuple[EventType | None, ResourceType]] = {
        "customer.subscription.created": (None, ResourceType.SUBSCRIPTION),
        "customer.subscription.updated": (EventType.SUBSCRIPTION_UPDATED, ResourceType.SUBSCRIPTION),
        "customer.subscription.deleted": (EventType.SUBSCRIPTION_CANCELLED, ResourceType.SUBSCRIPTION),
        "customer.subscription.paused": (EventType.SUBSCRIPTION_PAUSED, ResourceType.SUBSCRIPTION),
        "customer.subscription.resumed": (EventType.SUBSCRIPTION_RESUMED, ResourceType.SUBSCRIPTION),
        "invoice.paid": (EventType.PAYMENT_APPROVED, ResourceType.PAYMENT),
        "invoice.payment_succeeded": (EventType.PAYMENT_APPROVED, ResourceType.PAYMENT),
        "invoice.payment_failed": (EventType.PAYMENT_FAILED, ResourceType.PAYMENT),
        "payment_intent.succeeded": (EventType.PAYMENT_APPROVED, ResourceType.PAYMENT),
        "payment_intent.payment_failed": (EventType.PAYMENT_FAILED, ResourceType.PAYMENT),
        "payment_intent.processing": (EventType.PAYMENT_PENDING, ResourceType.PAYMENT),
        "payment_intent.canceled": (EventType.PAYMENT_CANCELLED, ResourceType.PAYMENT),
        "charge.refunded": (EventType.PAYMENT_REFUNDED, ResourceType.PAYMENT),
    }

    def __init__(self, tenant_id: str, credentials: GatewayCredentials | None = None):
        super().__init__(tenant_id)
        self._credentials = credentials

    @classmethod
    async def create(
        cls,
        tenant_id: str,
        credentials_provider: CredentialsProvider,
    ) -> "StripeGateway":
        # Sin conector todavía se puede normalizar eventos; sólo falta el secret
        try:
            credentials = await credentials_provider.get_credentials(tenant_id, GATEWAY_NAME)
        except ConfigurationError as e:
            logger.info(
                "Stripe connector not configured",
                tenant_id=str(tenant_id),
                reason=e.message,
            )
            credentials = None

        return cls(tenant_id, credentials=credentials)

    def _not_implemented(self, operation: str) -> NoReturn:
        logger.info(
            "Stripe operation requested but gateway is not implemented",
            tenant_id=str(self.tenant_id),
            operation=operation,
        )
        raise GatewayNotImplementedError(GATEWAY_NAME, operation)

    # ====================================================================
    # IDENTIFICACIÓN
    # ====================================================================

    @property
    def name(self) -> str:
        return GATEWAY_NAME

    def is_sandbox(self) -> bool:
        if self._credentials is None:
            return False
        return self._credentials.access_token.startswith(("sk_test_", "rk_test_"))

    # ====================================================================
    # OPERACIONES DE RED (no implementadas)
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
        self._not_implemented("create_subscription")

    async def get_subscription(self, subscription_id: str) -> SubscriptionDetails:
        self._not_implemented("get_subscription")

    async def update_subscription_amount(
        self,
        subscription_id: str,
        amount: Decimal,
        currency: str,
    ) -> SubscriptionDetails:
        self._not_implemented("update_subscription_amount")

    async def cancel_subscription(self, subscription_id: str) -> SubscriptionDetails:
        self._not_implemented("cancel_subscription")

    async def pause_subscription(self, subscription_id: str) -> SubscriptionDetails:
        self._not_implemented("pause_subscription")

    async def resume_subscription(self, subscription_id: str) -> SubscriptionDetails:
        self._not_implemented("resume_subscription")

    async def get_payment(self, payment_id: str) -> PaymentDetails:
        self._not_implemented("get_payment")

    async def get_authorized_payment(
        self,
        authorized_payment_id: str,
    ) -> AuthorizedPaymentDetails | None:
        # Stripe no tiene pagos preautorizados de suscripción
        return None

    async def verify_connectivity(self) -> ConnectivityResult:
        return ConnectivityResult(
            success=False,
            message="Stripe gateway is not yet available",
            details={"code": "GATEWAY_NOT_IMPLEMENTED", "gateway": GATEWAY_NAME},
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
        """
        Verifica el header Stripe-Signature contra el cuerpo crudo.

        `request_id` y `data_id` no intervienen en el esquema de Stripe.
        """
        secret = self._credentials.webhook_secret if self._credentials else None
        if not signature or payload is None or not secret:
            logger.warning(
                "Stripe webhook missing validation data",
                has_signature=bool(signature),
                has_payload=payload is not None,
                has_secret=bool(secret),
            )
            return False

        try:
            body = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else str(payload)
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                secret,
                tolerance=settings.WEBHOOK_TOLERANCE_SECONDS,
            )
            return True
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid Stripe webhook signature", error=str(e))
            return False
        except Exception as e:
            logger.warning("Failed to verify Stripe webhook", error=str(e))
            return False

    def normalize_event(self, raw_event: Any) -> NormalizedEvent:
        try:
            event = StripeWebhookEvent.model_validate(raw_event)
        except ValidationError:
            raw_type = raw_event.get("type") if isinstance(raw_event, dict) else None
            return NormalizedEvent.unknown(GATEWAY_NAME, raw_type, raw_event)

        mapped = self.EVENT_TYPE_MAP.get(event.type)
        obj = event.data.object
        resource_id = obj.get("id")

        if mapped is None or not isinstance(resource_id, str) or not resource_id:
            logger.debug("Unhandled Stripe event", type=event.type)
            return NormalizedEvent.unknown(GATEWAY_NAME, event.type, raw_event)

        event_type, resource_type = mapped
        data: dict[str, Any] = {"event_id": event.id}

        if resource_type == ResourceType.SUBSCRIPTION:
            raw_status = obj.get("status")
            if is_known_subscription_status(GATEWAY_NAME, raw_status):
                status = get_subscription_status(GATEWAY_NAME, raw_status)
                data["status"] = status.value
                if event_type is None:
                    event_type = event_type_for_subscription_status(status)
            if event_type is None:
                event_type = EventType.SUBSCRIPTION_UPDATED
            data["subscription_id"] = resource_id
        else:
            data["payment_id"] = resource_id
            amount = obj.get("amount_paid", obj.get("amount"))
            if isinstance(amount, int):
                data["amount_minor"] = amount
            if obj.get("currency"):
                data["currency"] = str(obj["currency"]).upper()
            error = obj.get("last_payment_error") or {}
            rejection_code = obj.get("failure_code") or (
                error.get("code") if isinstance(error, dict) else None
            )
            if rejection_code:
                data["rejection_code"] = rejection_code

        subscription_ref = obj.get("subscription")
        if isinstance(subscription_ref, dict):
            subscription_ref = subscription_ref.get("id")
        is_subscription_payment = resource_type == ResourceType.PAYMENT and bool(subscription_ref)
        if is_subscription_payment:
            data["subscription_id"] = subscription_ref

        return NormalizedEvent(
            type=event_type,
            gateway=GATEWAY_NAME,
            resource_id=resource_id,
            resource_type=resource_type,
            data=data,
            metadata={
                "requires_status_check": False,
                "is_subscription_payment": is_subscription_payment,
                "raw_type": event.type,
            },
            raw=raw_event,
        )
