"""
Excepciones de la capa de pasarelas de pago.

Cada error lleva un `code` estable para que la capa de facturación
pueda elegir el mensaje al tenant y decidir si reintenta.
"""

from typing import Any


class GatewayError(Exception):
    """Error base de la capa de pasarelas."""

    def __init__(self, message: str, code: str = "GATEWAY_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ConfigurationError(GatewayError):
    """Tenant faltante, credenciales incompletas o pasarela inválida."""

    def __init__(self, message: str, code: str = "CONFIGURATION_ERROR"):
        super().__init__(message=message, code=code)


class UnsupportedGatewayError(ConfigurationError):
    """El nombre de pasarela no está en el registro."""

    def __init__(self, gateway: str, supported: list[str]):
        super().__init__(
            message=(
                f"Payment gateway '{gateway}' not supported. "
                f"Available: {', '.join(supported)}"
            ),
            code="UNSUPPORTED_GATEWAY",
        )
        self.gateway = gateway
        self.supported = supported


class ProviderError(GatewayError):
    """
    El proveedor externo rechazó o no pudo completar la llamada.

    Se propaga tal cual al llamador; esta capa no reintenta.
    """

    def __init__(
        self,
        provider: str,
        operation: str,
        message: str,
        status_code: int | None = None,
        response: Any = None,
        code: str = "PROVIDER_ERROR",
    ):
        super().__init__(
            message=f"Payment provider error ({provider}.{operation}): {message}",
            code=code,
        )
        self.provider = provider
        self.operation = operation
        self.status_code = status_code
        self.response = response


class NotFoundError(ProviderError):
    """El recurso solicitado no existe en el proveedor."""

    def __init__(
        self,
        provider: str,
        operation: str,
        resource_id: str,
        response: Any = None,
    ):
        super().__init__(
            provider=provider,
            operation=operation,
            message=f"Resource not found: {resource_id}",
            status_code=404,
            response=response,
            code="RESOURCE_NOT_FOUND",
        )
        self.resource_id = resource_id


class GatewayNotImplementedError(GatewayError):
    """Pasarela reconocida pero aún sin integración."""

    def __init__(self, gateway: str, operation: str | None = None):
        detail = f" (operation: {operation})" if operation else ""
        super().__init__(
            message=f"Payment gateway '{gateway}' is not yet available{detail}",
            code="GATEWAY_NOT_IMPLEMENTED",
        )
        self.gateway = gateway
        self.operation = operation
