"""
Factory para obtener la pasarela de pago de un tenant.

Resuelve (tenant, pasarela) a una instancia lista para usar y la
reutiliza durante un TTL para no releer credenciales en cada request.
"""

import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Callable, Mapping

import structlog

from payment_gateways.adapters.base import PaymentGateway
from payment_gateways.adapters.credentials import CredentialsProvider, SettingsCredentialsProvider
from payment_gateways.adapters.mercadopago_adapter import MercadoPagoGateway
from payment_gateways.adapters.mock_adapter import MockGateway
from payment_gateways.adapters.stripe_adapter import StripeGateway
from payment_gateways.config import Settings, settings as default_settings
from payment_gateways.utils.exceptions import ConfigurationError, UnsupportedGatewayError


logger = structlog.get_logger(__name__)


# Registro de pasarelas disponibles
GATEWAY_REGISTRY: Mapping[str, type[PaymentGateway]] = MappingProxyType({
    "mercadopago": MercadoPagoGateway,
    "stripe": StripeGateway,
})


def build_registry(app_settings: Settings | None = None) -> dict[str, type[PaymentGateway]]:
    """Registro efectivo según configuración (la pasarela mock es opcional)."""
    app_settings = app_settings or default_settings
    registry = dict(GATEWAY_REGISTRY)
    if app_settings.ENABLE_MOCK_GATEWAY:
        registry["mock"] = MockGateway
    return registry


@dataclass
class CacheEntry:
    instance: PaymentGateway
    created_at: float


@dataclass
class CacheStats:
    """Estadísticas de diagnóstico del cache (no afectan la corrección)."""

    total: int
    active: int
    expired: int
    ttl_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "active": self.active,
            "expired": self.expired,
            "ttl_ms": self.ttl_ms,
        }


class GatewayFactory:
    """
    Resuelve pasarelas por tenant con cache de expiración perezosa.

    El lock sólo protege las mutaciones del diccionario y nunca se
    mantiene durante un await. Dos misses concurrentes para la misma
    clave construyen dos instancias equivalentes; gana la última
    escritura.
    """

    def __init__(
        self,
        credentials_provider: CredentialsProvider | None = None,
        registry: Mapping[str, type[PaymentGateway]] | None = None,
        ttl_seconds: float | None = None,
        default_gateway: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._credentials = credentials_provider or SettingsCredentialsProvider()
        self._registry = dict(registry) if registry is not None else build_registry()
        self._ttl = (
            ttl_seconds if ttl_seconds is not None
            else default_settings.GATEWAY_CACHE_TTL_SECONDS
        )
        self._default = (default_gateway or default_settings.DEFAULT_GATEWAY).lower()
        self._clock = clock

        self._cache: dict[tuple[str, str], CacheEntry] = {}
        self._lock = threading.Lock()

        if self._default not in self._registry:
            raise UnsupportedGatewayError(self._default, self.list_supported_gateways())

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def list_supported_gateways(self) -> list[str]:
        return list(self._registry)

    def default_gateway(self) -> str:
        return self._default

    async def resolve(
        self,
        tenant_id: str | int | None,
        gateway_name: str | None = None,
    ) -> PaymentGateway:
        """
        Obtiene la pasarela de un tenant.

        Args:
            tenant_id: ID de la organización
            gateway_name: Nombre de la pasarela (usa la default si es None)

        Raises:
            ConfigurationError: Si falta el tenant
            UnsupportedGatewayError: Si la pasarela no está registrada
        """
        if tenant_id is None or not str(tenant_id).strip():
            raise ConfigurationError("tenant_id is required to resolve a payment gateway")

        tenant_key = str(tenant_id)
        name = (gateway_name or self._default).lower()

        gateway_class = self._registry.get(name)
        if gateway_class is None:
            raise UnsupportedGatewayError(name, self.list_supported_gateways())

        key = (tenant_key, name)

        with self._lock:
            entry = self._cache.get(key)

        if entry is not None and self._clock() - entry.created_at < self._ttl:
            logger.debug("Gateway cache hit", tenant_id=tenant_key, gateway=name)
            return entry.instance

        instance = await gateway_class.create(tenant_key, self._credentials)

        with self._lock:
            self._cache[key] = CacheEntry(instance=instance, created_at=self._clock())

        logger.info(
            "Payment gateway resolved",
            tenant_id=tenant_key,
            gateway=name,
            expired_entry=entry is not None,
        )

        return instance

    def evict(
        self,
        tenant_id: str | int | None = None,
        gateway_name: str | None = None,
    ) -> int:
        """
        Desaloja entradas del cache (ej: tras rotar credenciales).

        Sin argumentos vacía el cache completo; con tenant desaloja sus
        entradas; con ambos, sólo esa entrada.

        Returns:
            Número de entradas desalojadas
        """
        tenant_key = str(tenant_id) if tenant_id is not None else None
        name = gateway_name.lower() if gateway_name else None

        with self._lock:
            if tenant_key is None and name is None:
                evicted = len(self._cache)
                self._cache.clear()
            else:
                keys = [
                    key for key in self._cache
                    if (tenant_key is None or key[0] == tenant_key)
                    and (name is None or key[1] == name)
                ]
                for key in keys:
                    del self._cache[key]
                evicted = len(keys)

        logger.info(
            "Gateway cache evicted",
            tenant_id=tenant_key,
            gateway=name,
            evicted=evicted,
        )
        return evicted

    async def is_available(
        self,
        tenant_id: str | int | None,
        gateway_name: str | None = None,
    ) -> bool:
        """Sondeo best-effort: resuelve y verifica conectividad; nunca lanza."""
        try:
            gateway = await self.resolve(tenant_id, gateway_name)
            result = await gateway.verify_connectivity()
            return result.success
        except Exception as e:
            logger.warning(
                "Gateway availability check failed",
                tenant_id=str(tenant_id),
                gateway=gateway_name or self._default,
                error=str(e),
            )
            return False

    def cache_stats(self) -> CacheStats:
        now = self._clock()
        with self._lock:
            ages = [now - entry.created_at for entry in self._cache.values()]

        active = sum(1 for age in ages if age < self._ttl)
        return CacheStats(
            total=len(ages),
            active=active,
            expired=len(ages) - active,
            ttl_ms=int(self._ttl * 1000),
        )


@lru_cache()
def get_gateway_factory() -> GatewayFactory:
    """
    Factory compartido por el proceso.

    Usa las credenciales de settings; los despliegues multi-tenant
    construyen su propio GatewayFactory con otro CredentialsProvider.
    """
    factory = GatewayFactory()

    logger.info(
        "Gateway factory initialized",
        default_gateway=factory.default_gateway(),
        supported=factory.list_supported_gateways(),
        ttl_seconds=factory.ttl_seconds,
    )

    return factory


async def get_gateway(
    tenant_id: str | int | None,
    gateway_name: str | None = None,
) -> PaymentGateway:
    """Atajo sobre el factory compartido."""
    return await get_gateway_factory().resolve(tenant_id, gateway_name)


def list_supported_gateways() -> list[str]:
    return get_gateway_factory().list_supported_gateways()


def default_gateway() -> str:
    return get_gateway_factory().default_gateway()
