"""
Credenciales de pasarela por tenant.

Cada organización configura sus propios conectores; el origen de las
credenciales (base de datos cifrada, vault, entorno) es un colaborador
intercambiable.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import structlog

from payment_gateways.config import Settings, settings as default_settings
from payment_gateways.utils.exceptions import ConfigurationError


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GatewayCredentials:
    """Credenciales resueltas para un tenant y una pasarela."""

    access_token: str
    webhook_secret: str | None = None
    environment: str | None = None  # "sandbox" | "production"
    test_payer_email: str | None = None
    api_base_url: str | None = None

    @property
    def token_hint(self) -> str:
        """Últimos caracteres del token, para logs."""
        return f"...{self.access_token[-4:]}" if self.access_token else ""


class CredentialsProvider(ABC):
    """Origen de credenciales por (tenant, pasarela)."""

    @abstractmethod
    async def get_credentials(self, tenant_id: str, gateway: str) -> GatewayCredentials:
        """
        Raises:
            ConfigurationError: Si el tenant no tiene conector para la pasarela
        """


class InMemoryCredentialsProvider(CredentialsProvider):
    """
    Credenciales en memoria.

    Útil para pruebas y para procesos que cargan los conectores al
    arrancar. `register` también sirve para rotarlas; tras rotar hay que
    desalojar la instancia cacheada en el factory.
    """

    def __init__(self) -> None:
        self._credentials: dict[tuple[str, str], GatewayCredentials] = {}

    def register(self, tenant_id: str, gateway: str, credentials: GatewayCredentials) -> None:
        self._credentials[(str(tenant_id), gateway)] = credentials
        logger.info(
            "Gateway credentials registered",
            tenant_id=str(tenant_id),
            gateway=gateway,
            token_hint=credentials.token_hint,
        )

    def remove(self, tenant_id: str, gateway: str) -> None:
        self._credentials.pop((str(tenant_id), gateway), None)

    async def get_credentials(self, tenant_id: str, gateway: str) -> GatewayCredentials:
        credentials = self._credentials.get((str(tenant_id), gateway))
        if credentials is None:
            raise ConfigurationError(
                f"No {gateway} connector configured for tenant {tenant_id}"
            )
        return credentials


class SettingsCredentialsProvider(CredentialsProvider):
    """
    Credenciales tomadas de settings, iguales para todos los tenants.

    Pensado para despliegues de un solo tenant y desarrollo local.
    """

    def __init__(self, app_settings: Settings | None = None):
        self._settings = app_settings or default_settings

    async def get_credentials(self, tenant_id: str, gateway: str) -> GatewayCredentials:
        if gateway == "mercadopago":
            credentials = GatewayCredentials(
                access_token=self._settings.MERCADOPAGO_ACCESS_TOKEN,
                webhook_secret=self._settings.MERCADOPAGO_WEBHOOK_SECRET or None,
                environment=self._settings.MERCADOPAGO_ENVIRONMENT,
                test_payer_email=self._settings.MERCADOPAGO_TEST_PAYER_EMAIL or None,
                api_base_url=self._settings.MERCADOPAGO_API_BASE_URL,
            )
        elif gateway == "stripe":
            credentials = GatewayCredentials(
                access_token=self._settings.STRIPE_SECRET_KEY,
                webhook_secret=self._settings.STRIPE_WEBHOOK_SECRET or None,
            )
        else:
            raise ConfigurationError(f"No settings credentials for gateway '{gateway}'")

        if not credentials.access_token:
            raise ConfigurationError(
                f"Missing access token for gateway '{gateway}' (tenant {tenant_id})"
            )

        return credentials
