"""
Adapter para MercadoPago.
Implementa PaymentGateway sobre la API de preapproval (suscripciones)
y pagos de MercadoPago.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

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
from payment_gateways.clients.mercadopago_client import MercadoPagoClient
from payment_gateways.config import settings
from payment_gateways.events.normalized import EventType, NormalizedEvent, ResourceType
from payment_gateways.events.status_maps import (
    SubscriptionStatus,
    event_type_for_subscription_status,
    get_payment_status,
    get_provider_subscription_status,
    get_subscription_status,
    is_known_payment_status,
    is_known_subscription_status,
)
from payment_gateways.schemas.webhook import MercadoPagoWebhookEvent
from payment_gateways.utils.exceptions import ConfigurationError, NotFoundError
from payment_gateways.utils.hmac_utils import verify_mercadopago_signature


logger = structlog.get_logger(__name__)

GATEWAY_NAME = "mercadopago"

# Tópicos del IPN heredado -> tipo de webhook actual
LEGACY_TOPICS = {
    "preapproval": "subscription_preapproval",
    "authorized_payment": "subscription_authorized_payment",
    "payment": "payment",
}


def _to_decimal(value: Any, default: Decimal = Decimal(0)) -> Decimal:
    if value is None:
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def _parse_datetime(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _raw_type(raw_event: Any) -> Any:
    if isinstance(raw_event, dict):
        return raw_event.get("type") or raw_event.get("topic")
    return None


class MercadoPagoGateway(PaymentGateway):
    """
    Adapter para MercadoPago.

    Las suscripciones se crean como preapproval sin plan asociado en
    estado `pending`, lo que genera un init_point para que el pagador
    autorice el cobro recurrente.

    Los webhooks de MercadoPago sólo anuncian cambios; todos los eventos
    normalizados piden una consulta de estado posterior.
    """

    def __init__(
        self,
        tenant_id: str,
        credentials: GatewayCredentials | None = None,
        credentials_provider: CredentialsProvider | None = None,
        client: MercadoPagoClient | None = None,
    ):
        super().__init__(tenant_id)
        self._credentials = credentials
        self._credentials_provider = credentials_provider
        self._client = client

        if self._client is None and credentials is not None:
            self._client = self._build_client(credentials)

    @classmethod
    async def create(
        cls,
        tenant_id: str,
        credentials_provider: CredentialsProvider,
    ) -> "MercadoPagoGateway":
        credentials = await credentials_provider.get_credentials(tenant_id, GATEWAY_NAME)
        gateway = cls(
            tenant_id,
            credentials=credentials,
            credentials_provider=credentials_provider,
        )

        logger.info(
            "MercadoPagoGateway initialized",
            tenant_id=str(tenant_id),
            environment=gateway.environment,
            token_hint=credentials.token_hint,
        )

        return gateway

    @staticmethod
    def _build_client(credentials: GatewayCredentials) -> MercadoPagoClient:
        return MercadoPagoClient(
            access_token=credentials.access_token,
            base_url=credentials.api_base_url or settings.MERCADOPAGO_API_BASE_URL,
            timeout=settings.MERCADOPAGO_TIMEOUT_SECONDS,
        )

    async def _ensure_client(self) -> MercadoPagoClient:
        """Obtiene (o reobtiene) el cliente la primera vez que se necesita."""
        if self._client is None:
            if self._credentials is None:
                if self._credentials_provider is None:
                    raise ConfigurationError(
                        f"MercadoPago gateway for tenant {self.tenant_id} has no credentials"
                    )
                self._credentials = await self._credentials_provider.get_credentials(
                    self.tenant_id, GATEWAY_NAME
                )
            self._client = self._build_client(self._credentials)
        return self._client

    # ====================================================================
    # IDENTIFICACIÓN
    # ====================================================================

    @property
    def name(self) -> str:
        return GATEWAY_NAME

    def is_sandbox(self) -> bool:
        if self._credentials is None:
            if self._client is not None:
                return self._client.access_token.startswith("TEST-")
            logger.warning(
                "MercadoPagoGateway not initialized, assuming production",
                tenant_id=str(self.tenant_id),
            )
            return False

        if self._credentials.environment:
            return self._credentials.environment == "sandbox"
        return self._credentials.access_token.startswith("TEST-")

    def get_test_payer_email(self) -> str | None:
        if self._credentials is None:
            return None
        return self._credentials.test_payer_email

    # ====================================================================
    # SUSCRIPCIONES
    # ====================================================================

    def _subscription_details(
        self,
        payload: dict[str, Any],
        default_status: SubscriptionStatus = SubscriptionStatus.PENDING,
        fallback_amount: Decimal | None = None,
        fallback_currency: str | None = None,
    ) -> SubscriptionDetails:
        auto_recurring = payload.get("auto_recurring") or {}
        return SubscriptionDetails(
            subscription_id=str(payload.get("id", "")),
            status=get_subscription_status(GATEWAY_NAME, payload.get("status"), default_status),
            payer_email=payload.get("payer_email"),
            amount=_to_decimal(
                auto_recurring.get("transaction_amount"),
                fallback_amount if fallback_amount is not None else Decimal(0),
            ),
            currency=(
                auto_recurring.get("currency_id")
                or fallback_currency
                or settings.DEFAULT_CURRENCY
            ),
            next_billing_date=_parse_datetime(payload.get("next_payment_date")),
            raw=payload,
        )

    async def create_subscription(
        self,
        name: str,
        amount: Decimal,
        currency: str,
        payer_email: str,
        return_url: str | None = None,
        external_reference: str | None = None,
    ) -> SubscriptionResult:
        client = await self._ensure_client()

        test_payer_email = self.get_test_payer_email()
        if self.is_sandbox() and test_payer_email:
            logger.info(
                "Sandbox mode: using test payer email",
                tenant_id=str(self.tenant_id),
                original_email=payer_email,
            )
            payer_email = test_payer_email

        body: dict[str, Any] = {
            "reason": name,
            "payer_email": payer_email,
            "external_reference": external_reference,
            "back_url": return_url,
            # `pending` es lo que hace que MercadoPago genere el init_point
            "status": get_provider_subscription_status(GATEWAY_NAME, SubscriptionStatus.PENDING),
            "auto_recurring": {
                "frequency": 1,
                "frequency_type": "months",
                "transaction_amount": float(amount),
                "currency_id": currency,
            },
        }
        body = {key: value for key, value in body.items() if value is not None}

        logger.info(
            "Creating MercadoPago subscription",
            tenant_id=str(self.tenant_id),
            name=name,
            amount=str(amount),
            currency=currency,
            external_reference=external_reference,
        )

        result = await client.create_preapproval(body)

        subscription = SubscriptionResult(
            subscription_id=str(result.get("id", "")),
            status=get_subscription_status(GATEWAY_NAME, result.get("status")),
            checkout_url=(
                result.get("sandbox_init_point") if self.is_sandbox() else None
            ) or result.get("init_point"),
            payer_email=result.get("payer_email", payer_email),
            amount=amount,
            currency=currency,
            external_reference=result.get("external_reference", external_reference),
            raw=result,
        )

        logger.info(
            "MercadoPago subscription created",
            tenant_id=str(self.tenant_id),
            subscription_id=subscription.subscription_id,
            status=subscription.status.value,
            has_checkout_url=bool(subscription.checkout_url),
        )

        return subscription

    async def get_subscription(self, subscription_id: str) -> SubscriptionDetails:
        client = await self._ensure_client()
        result = await client.get_preapproval(subscription_id)
        return self._subscription_details(result)

    async def update_subscription_amount(
        self,
        subscription_id: str,
        amount: Decimal,
        currency: str,
    ) -> SubscriptionDetails:
        client = await self._ensure_client()

        logger.info(
            "Updating MercadoPago subscription amount",
            tenant_id=str(self.tenant_id),
            subscription_id=subscription_id,
            amount=str(amount),
            currency=currency,
        )

        result = await client.update_preapproval(
            subscription_id,
            {
                "auto_recurring": {
                    "transaction_amount": float(amount),
                    "currency_id": currency,
                },
            },
            operation="update_subscription_amount",
        )

        return self._subscription_details(
            result,
            fallback_amount=amount,
            fallback_currency=currency,
        )

    async def _change_status(
        self,
        subscription_id: str,
        target: SubscriptionStatus,
        operation: str,
    ) -> SubscriptionDetails:
        client = await self._ensure_client()

        logger.info(
            "Changing MercadoPago subscription status",
            tenant_id=str(self.tenant_id),
            subscription_id=subscription_id,
            target=target.value,
        )

        result = await client.update_preapproval(
            subscription_id,
            {"status": get_provider_subscription_status(GATEWAY_NAME, target)},
            operation=operation,
        )
        return self._subscription_details(result, default_status=target)

    async def cancel_subscription(self, subscription_id: str) -> SubscriptionDetails:
        details = await self._change_status(
            subscription_id, SubscriptionStatus.CANCELLED, "cancel_subscription"
        )
        details.next_billing_date = None
        return details

    async def pause_subscription(self, subscription_id: str) -> SubscriptionDetails:
        details = await self._change_status(
            subscription_id, SubscriptionStatus.PAUSED, "pause_subscription"
        )
        details.next_billing_date = None
        return details

    async def resume_subscription(self, subscription_id: str) -> SubscriptionDetails:
        return await self._change_status(
            subscription_id, SubscriptionStatus.AUTHORIZED, "resume_subscription"
        )

    # ====================================================================
    # PAGOS
    # ====================================================================

    async def get_payment(self, payment_id: str) -> PaymentDetails:
        client = await self._ensure_client()
        pago = await client.get_payment(payment_id)

        return PaymentDetails(
            payment_id=str(pago.get("id", payment_id)),
            status=get_payment_status(GATEWAY_NAME, pago.get("status")),
            status_detail=pago.get("status_detail"),
            amount=_to_decimal(pago.get("transaction_amount")),
            currency=pago.get("currency_id"),
            payer_email=(pago.get("payer") or {}).get("email"),
            external_reference=pago.get("external_reference"),
            created_at=_parse_datetime(pago.get("date_created")),
            approved_at=_parse_datetime(pago.get("date_approved")),
            raw=pago,
        )

    async def get_authorized_payment(
        self,
        authorized_payment_id: str,
    ) -> AuthorizedPaymentDetails | None:
        client = await self._ensure_client()

        try:
            pago = await client.get_authorized_payment(authorized_payment_id)
        except NotFoundError:
            logger.info(
                "Authorized payment not found",
                tenant_id=str(self.tenant_id),
                authorized_payment_id=authorized_payment_id,
            )
            return None

        # El estado del cobro vive en `payment.status`; `status` es el del ciclo
        payment = pago.get("payment") or {}
        raw_status = payment.get("status")
        if not is_known_payment_status(GATEWAY_NAME, raw_status):
            raw_status = pago.get("status")

        return AuthorizedPaymentDetails(
            authorized_payment_id=str(pago.get("id", authorized_payment_id)),
            subscription_id=pago.get("preapproval_id"),
            status=get_payment_status(GATEWAY_NAME, raw_status),
            amount=_to_decimal(pago.get("transaction_amount")),
            currency=pago.get("currency_id") or settings.DEFAULT_CURRENCY,
            rejection_code=pago.get("rejection_code") or payment.get("status_detail"),
            payment_id=str(payment["id"]) if payment.get("id") is not None else None,
            raw=pago,
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
        if self._credentials is None:
            logger.warning(
                "MercadoPagoGateway not initialized, cannot validate webhook",
                tenant_id=str(self.tenant_id),
            )
            return False

        return verify_mercadopago_signature(
            signature,
            request_id,
            data_id,
            self._credentials.webhook_secret,
        )

    def normalize_event(self, raw_event: Any) -> NormalizedEvent:
        try:
            event = MercadoPagoWebhookEvent.model_validate(raw_event)
        except ValidationError:
            logger.debug("Malformed MercadoPago webhook payload")
            return NormalizedEvent.unknown(GATEWAY_NAME, _raw_type(raw_event), raw_event)

        event_type = event.type or LEGACY_TOPICS.get(event.topic or "")
        data_id = event.data_id

        logger.debug(
            "Normalizing MercadoPago event",
            type=event_type,
            action=event.action,
            data_id=data_id,
        )

        if not data_id:
            return NormalizedEvent.unknown(GATEWAY_NAME, event_type, raw_event)

        if event_type == "subscription_preapproval":
            return self._normalize_subscription_preapproval(event, data_id, raw_event)

        if event_type == "subscription_authorized_payment":
            return self._normalize_authorized_payment(event, data_id, raw_event)

        if event_type == "payment":
            return self._normalize_payment(event, data_id, raw_event)

        logger.debug("Unhandled MercadoPago event", type=event_type, action=event.action)
        return NormalizedEvent.unknown(GATEWAY_NAME, event_type, raw_event)

    def _normalize_subscription_preapproval(
        self,
        event: MercadoPagoWebhookEvent,
        subscription_id: str,
        raw_event: Any,
    ) -> NormalizedEvent:
        # La acción (created/updated) no dice el estado; si el cuerpo trae
        # un estado conocido se usa como pista, pero se pide verificación.
        raw_status = event.data.status if event.data is not None else None
        data: dict[str, Any] = {
            "action": event.action,
            "subscription_id": subscription_id,
        }

        event_type = EventType.SUBSCRIPTION_UPDATED
        if is_known_subscription_status(GATEWAY_NAME, raw_status):
            status = get_subscription_status(GATEWAY_NAME, raw_status)
            event_type = event_type_for_subscription_status(status)
            data["status"] = status.value

        return NormalizedEvent(
            type=event_type,
            gateway=GATEWAY_NAME,
            resource_id=subscription_id,
            resource_type=ResourceType.SUBSCRIPTION,
            data=data,
            metadata={
                "requires_status_check": True,
                "raw_type": event.type or event.topic,
            },
            raw=raw_event,
        )

    def _normalize_authorized_payment(
        self,
        event: MercadoPagoWebhookEvent,
        authorized_payment_id: str,
        raw_event: Any,
    ) -> NormalizedEvent:
        return NormalizedEvent(
            type=EventType.PAYMENT_PENDING,
            gateway=GATEWAY_NAME,
            resource_id=authorized_payment_id,
            resource_type=ResourceType.AUTHORIZED_PAYMENT,
            data={
                "action": event.action,
                "payment_id": authorized_payment_id,
            },
            metadata={
                "requires_status_check": True,
                "is_subscription_payment": True,
                "raw_type": event.type or event.topic,
            },
            raw=raw_event,
        )

    def _normalize_payment(
        self,
        event: MercadoPagoWebhookEvent,
        payment_id: str,
        raw_event: Any,
    ) -> NormalizedEvent:
        return NormalizedEvent(
            type=EventType.PAYMENT_PENDING,
            gateway=GATEWAY_NAME,
            resource_id=payment_id,
            resource_type=ResourceType.PAYMENT,
            data={
                "action": event.action,
                "payment_id": payment_id,
            },
            metadata={
                "requires_status_check": True,
                "raw_type": event.type or event.topic,
            },
            raw=raw_event,
        )

    # ====================================================================
    # VERIFICACIÓN
    # ====================================================================

    async def verify_connectivity(self) -> ConnectivityResult:
        try:
            client = await self._ensure_client()
            user = await client.get_current_user()
        except Exception as e:
            logger.warning(
                "MercadoPago connectivity check failed",
                tenant_id=str(self.tenant_id),
                error=str(e),
            )
            return ConnectivityResult(
                success=False,
                message=f"Could not reach MercadoPago: {e}",
                details={"environment": self.environment},
            )

        return ConnectivityResult(
            success=True,
            message="Connected to MercadoPago",
            details={
                "user_id": user.get("id"),
                "site_id": user.get("site_id"),
                "environment": self.environment,
            },
        )
