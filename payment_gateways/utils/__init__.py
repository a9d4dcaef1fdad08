"""
Utilidades de la capa de pasarelas.
"""

from payment_gateways.utils.exceptions import (
    ConfigurationError,
    GatewayError,
    GatewayNotImplementedError,
    NotFoundError,
    ProviderError,
    UnsupportedGatewayError,
)
from payment_gateways.utils.hmac_utils import (
    create_mercadopago_signature_header,
    generate_signature,
    verify_mercadopago_signature,
    verify_signature,
)

__all__ = [
    # Errores
    "ConfigurationError",
    "GatewayError",
    "GatewayNotImplementedError",
    "NotFoundError",
    "ProviderError",
    "UnsupportedGatewayError",
    # HMAC
    "create_mercadopago_signature_header",
    "generate_signature",
    "verify_mercadopago_signature",
    "verify_signature",
]
