"""
Adapters para pasarelas de pago.
Implementación del patrón Adapter para abstraer diferentes proveedores.
"""

from payment_gateways.adapters.base import (
    AuthorizedPaymentDetails,
    ConnectivityResult,
    GatewayIdentity,
    PaymentDetails,
    PaymentGateway,
    SubscriptionDetails,
    SubscriptionResult,
)
from payment_gateways.adapters.credentials import (
    CredentialsProvider,
    GatewayCredentials,
    InMemoryCredentialsProvider,
    SettingsCredentialsProvider,
)
from payment_gateways.adapters.mercadopago_adapter import MercadoPagoGateway
from payment_gateways.adapters.stripe_adapter import StripeGateway
from payment_gateways.adapters.mock_adapter import MockGateway
from payment_gateways.adapters.factory import (
    GatewayFactory,
    get_gateway,
    get_gateway_factory,
)

__all__ = [
    "AuthorizedPaymentDetails",
    "ConnectivityResult",
    "GatewayIdentity",
    "PaymentDetails",
    "PaymentGateway",
    "SubscriptionDetails",
    "SubscriptionResult",
    "CredentialsProvider",
    "GatewayCredentials",
    "InMemoryCredentialsProvider",
    "SettingsCredentialsProvider",
    "MercadoPagoGateway",
    "StripeGateway",
    "MockGateway",
    "GatewayFactory",
    "get_gateway",
    "get_gateway_factory",
]
