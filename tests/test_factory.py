"""
Tests para GatewayFactory.
"""

import asyncio

import pytest

from payment_gateways.adapters.credentials import (
    InMemoryCredentialsProvider,
    SettingsCredentialsProvider,
)
from payment_gateways.adapters.factory import (
    GatewayFactory,
    build_registry,
    default_gateway,
    get_gateway,
    get_gateway_factory,
    list_supported_gateways,
)
from payment_gateways.adapters.mercadopago_adapter import MercadoPagoGateway
from payment_gateways.adapters.mock_adapter import MockGateway
from payment_gateways.adapters.stripe_adapter import StripeGateway
from payment_gateways.config import Settings
from payment_gateways.utils.exceptions import (
    ConfigurationError,
    GatewayNotImplementedError,
    UnsupportedGatewayError,
)
from tests.conftest import OTHER_TENANT_ID, TENANT_ID


class CountingMockGateway(MockGateway):
    """MockGateway que cuenta cuántas instancias construye el factory."""

    created = 0

    @classmethod
    async def create(cls, tenant_id, credentials_provider):
        cls.created += 1
        return await super().create(tenant_id, credentials_provider)


class FailingMockGateway(MockGateway):
    async def verify_connectivity(self):
        raise RuntimeError("boom")


@pytest.fixture(autouse=True)
def reset_counter():
    CountingMockGateway.created = 0


@pytest.fixture
def factory(credentials_provider, fake_clock, mp_gateway_class):
    return GatewayFactory(
        credentials_provider=credentials_provider,
        registry={
            "mercadopago": mp_gateway_class,
            "stripe": StripeGateway,
            "mock": CountingMockGateway,
            "failing": FailingMockGateway,
        },
        ttl_seconds=300,
        default_gateway="mock",
        clock=fake_clock,
    )


class TestResolve:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tenant_id", [None, "", "   "])
    async def test_missing_tenant(self, factory: GatewayFactory, tenant_id):
        """Test resolver sin tenant."""
        with pytest.raises(ConfigurationError):
            await factory.resolve(tenant_id, "mock")

        assert CountingMockGateway.created == 0

    @pytest.mark.asyncio
    async def test_unsupported_gateway(self, factory: GatewayFactory):
        """Test resolver gateway no soportado."""
        with pytest.raises(UnsupportedGatewayError) as exc_info:
            await factory.resolve(TENANT_ID, "paypal")

        assert isinstance(exc_info.value, ConfigurationError)
        assert "mercadopago" in exc_info.value.message
        assert "stripe" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_default_gateway_is_used(self, factory: GatewayFactory):
        """Test usar el gateway por defecto."""
        gateway = await factory.resolve(TENANT_ID)

        assert isinstance(gateway, CountingMockGateway)
        assert factory.default_gateway() == "mock"

    @pytest.mark.asyncio
    async def test_names_are_case_insensitive(self, factory: GatewayFactory):
        """Test nombres de gateway sin distinguir mayúsculas."""
        first = await factory.resolve(TENANT_ID, "MOCK")
        second = await factory.resolve(TENANT_ID, "mock")

        assert first is second

    @pytest.mark.asyncio
    async def test_numeric_tenant_shares_entry_with_string(self, factory: GatewayFactory):
        """Test tenant numérico comparte entrada con su texto."""
        first = await factory.resolve(42, "mock")
        second = await factory.resolve("42", "mock")

        assert first is second

    def test_invalid_default_gateway(self, credentials_provider):
        """Test gateway por defecto inválido."""
        with pytest.raises(UnsupportedGatewayError):
            GatewayFactory(
                credentials_provider=credentials_provider,
                registry={"mock": MockGateway},
                default_gateway="paypal",
            )

    def test_list_supported_gateways(self, factory: GatewayFactory):
        """Test listar gateways soportados."""
        assert factory.list_supported_gateways() == ["mercadopago", "stripe", "mock", "failing"]

    def test_build_registry(self):
        """Test construir registro desde la configuración."""
        assert "mock" not in build_registry(Settings(ENABLE_MOCK_GATEWAY=False))

        registry = build_registry(Settings(ENABLE_MOCK_GATEWAY=True))
        assert registry["mock"] is MockGateway
        assert registry["mercadopago"] is MercadoPagoGateway
        assert registry["stripe"] is StripeGateway

    @pytest.mark.asyncio
    async def test_resolves_mercadopago_with_tenant_credentials(self, factory: GatewayFactory):
        """Test resolver MercadoPago con credenciales del tenant."""
        gateway = await factory.resolve(TENANT_ID, "mercadopago")

        assert gateway.name == "mercadopago"
        assert gateway.tenant_id == TENANT_ID
        assert gateway.is_sandbox() is True

    @pytest.mark.asyncio
    async def test_missing_credentials_are_not_cached(self, factory: GatewayFactory):
        """Test credenciales faltantes no se guardan en caché."""
        with pytest.raises(ConfigurationError):
            await factory.resolve("999", "mercadopago")

        assert factory.cache_stats().total == 0

    @pytest.mark.asyncio
    async def test_stub_gateway_resolves_but_operations_fail(self, factory: GatewayFactory):
        """Test gateway stub se resuelve pero sus operaciones fallan."""
        gateway = await factory.resolve(TENANT_ID, "stripe")

        with pytest.raises(GatewayNotImplementedError) as exc_info:
            await gateway.get_subscription("sub_1")

        assert exc_info.value.gateway == "stripe"


class TestCache:

    @pytest.mark.asyncio
    async def test_same_instance_within_ttl(self, factory: GatewayFactory, fake_clock):
        """Test misma instancia dentro del TTL."""
        first = await factory.resolve(TENANT_ID, "mock")
        fake_clock.advance(299.999)
        second = await factory.resolve(TENANT_ID, "mock")

        assert first is second
        assert CountingMockGateway.created == 1

    @pytest.mark.asyncio
    async def test_new_instance_after_ttl(self, factory: GatewayFactory, fake_clock):
        """Test nueva instancia tras expirar el TTL."""
        first = await factory.resolve(TENANT_ID, "mock")
        fake_clock.advance(300.001)
        second = await factory.resolve(TENANT_ID, "mock")

        assert first is not second
        assert CountingMockGateway.created == 2

    @pytest.mark.asyncio
    async def test_expired_entry_is_refreshed_with_new_timestamp(self, factory, fake_clock):
        """Test entrada expirada se renueva con nueva marca de tiempo."""
        await factory.resolve(TENANT_ID, "mock")
        fake_clock.advance(301)
        refreshed = await factory.resolve(TENANT_ID, "mock")
        fake_clock.advance(200)

        assert await factory.resolve(TENANT_ID, "mock") is refreshed

    @pytest.mark.asyncio
    async def test_tenants_are_isolated(self, factory: GatewayFactory):
        """Test tenants aislados entre sí."""
        first = await factory.resolve(TENANT_ID, "mock")
        second = await factory.resolve(OTHER_TENANT_ID, "mock")

        assert first is not second
        assert first.tenant_id == TENANT_ID
        assert second.tenant_id == OTHER_TENANT_ID

    @pytest.mark.asyncio
    async def test_gateways_are_isolated_per_tenant(self, factory: GatewayFactory):
        """Test gateways aislados por tenant."""
        mock = await factory.resolve(TENANT_ID, "mock")
        mercadopago = await factory.resolve(TENANT_ID, "mercadopago")

        assert mock is not mercadopago
        assert factory.cache_stats().total == 2

    @pytest.mark.asyncio
    async def test_evict_tenant(self, factory: GatewayFactory):
        """Test invalidar un tenant."""
        first = await factory.resolve(TENANT_ID, "mock")
        await factory.resolve(TENANT_ID, "mercadopago")
        other = await factory.resolve(OTHER_TENANT_ID, "mock")

        assert factory.evict(TENANT_ID) == 2

        assert await factory.resolve(TENANT_ID, "mock") is not first
        assert await factory.resolve(OTHER_TENANT_ID, "mock") is other

    @pytest.mark.asyncio
    async def test_evict_single_entry(self, factory: GatewayFactory):
        """Test invalidar una sola entrada."""
        await factory.resolve(TENANT_ID, "mock")
        mercadopago = await factory.resolve(TENANT_ID, "mercadopago")

        assert factory.evict(TENANT_ID, "MOCK") == 1
        assert await factory.resolve(TENANT_ID, "mercadopago") is mercadopago

    @pytest.mark.asyncio
    async def test_evict_gateway_across_tenants(self, factory: GatewayFactory):
        """Test invalidar un gateway en todos los tenants."""
        await factory.resolve(TENANT_ID, "mock")
        await factory.resolve(OTHER_TENANT_ID, "mock")
        await factory.resolve(TENANT_ID, "mercadopago")

        assert factory.evict(gateway_name="mock") == 2
        assert factory.cache_stats().total == 1

    @pytest.mark.asyncio
    async def test_evict_all(self, factory: GatewayFactory):
        """Test invalidar toda la caché."""
        await factory.resolve(TENANT_ID, "mock")
        await factory.resolve(OTHER_TENANT_ID, "mock")

        assert factory.evict() == 2
        assert factory.evict() == 0

    @pytest.mark.asyncio
    async def test_evict_unknown_tenant_is_noop(self, factory: GatewayFactory):
        """Test invalidar tenant desconocido no hace nada."""
        await factory.resolve(TENANT_ID, "mock")

        assert factory.evict("does-not-exist") == 0
        assert factory.cache_stats().total == 1

    @pytest.mark.asyncio
    async def test_cache_stats(self, factory: GatewayFactory, fake_clock):
        """Test estadísticas de caché."""
        await factory.resolve(TENANT_ID, "mock")
        fake_clock.advance(200)
        await factory.resolve(OTHER_TENANT_ID, "mock")
        fake_clock.advance(150)

        stats = factory.cache_stats()

        assert stats.total == 2
        assert stats.active == 1
        assert stats.expired == 1
        assert stats.to_dict() == {"total": 2, "active": 1, "expired": 1, "ttl_ms": 300000}

    @pytest.mark.asyncio
    async def test_concurrent_resolves_return_usable_instances(self, factory: GatewayFactory):
        """Test resoluciones concurrentes devuelven instancias usables."""
        results = await asyncio.gather(
            *(factory.resolve(TENANT_ID, "mock") for _ in range(10))
        )

        assert all(isinstance(gateway, CountingMockGateway) for gateway in results)
        assert factory.cache_stats().total == 1
        assert await factory.resolve(TENANT_ID, "mock") is results[-1]


class TestAvailability:

    @pytest.mark.asyncio
    async def test_available(self, factory: GatewayFactory):
        """Test gateway disponible."""
        assert await factory.is_available(TENANT_ID, "mock") is True
        assert await factory.is_available(TENANT_ID, "mercadopago") is True

    @pytest.mark.asyncio
    async def test_stub_is_unavailable(self, factory: GatewayFactory):
        """Test gateway stub no disponible."""
        assert await factory.is_available(TENANT_ID, "stripe") is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "tenant_id,gateway_name",
        [
            (None, "mock"),
            (TENANT_ID, "paypal"),
            ("999", "mercadopago"),
            (TENANT_ID, "failing"),
        ],
    )
    async def test_availability_never_raises(self, factory, tenant_id, gateway_name):
        """Test disponibilidad nunca lanza excepción."""
        assert await factory.is_available(tenant_id, gateway_name) is False

    @pytest.mark.asyncio
    async def test_upstream_failure_is_unavailable(self, factory: GatewayFactory, mp_api):
        """Test falla del proveedor marca gateway no disponible."""
        mp_api.fail_with = 503

        assert await factory.is_available(TENANT_ID, "mercadopago") is False


class TestCredentialRotation:

    @pytest.mark.asyncio
    async def test_rotation_takes_effect_after_eviction(self, fake_clock, mp_gateway_class, mp_credentials):
        """Test rotación de credenciales tras invalidar la caché."""
        provider = InMemoryCredentialsProvider()
        provider.register(TENANT_ID, "mercadopago", mp_credentials)
        factory = GatewayFactory(
            credentials_provider=provider,
            registry={"mercadopago": mp_gateway_class},
            default_gateway="mercadopago",
            clock=fake_clock,
        )

        first = await factory.resolve(TENANT_ID)
        provider.remove(TENANT_ID, "mercadopago")

        assert await factory.resolve(TENANT_ID) is first

        factory.evict(TENANT_ID, "mercadopago")
        with pytest.raises(ConfigurationError):
            await factory.resolve(TENANT_ID)


class TestSettingsCredentials:

    @pytest.mark.asyncio
    async def test_mercadopago_from_settings(self):
        """Test credenciales de MercadoPago desde settings."""
        provider = SettingsCredentialsProvider(
            Settings(
                MERCADOPAGO_ACCESS_TOKEN="TEST-abc",
                MERCADOPAGO_WEBHOOK_SECRET="secret",
                MERCADOPAGO_TEST_PAYER_EMAIL="test_user@testuser.com",
                MERCADOPAGO_ENVIRONMENT=None,
            )
        )

        credentials = await provider.get_credentials(TENANT_ID, "mercadopago")

        assert credentials.access_token == "TEST-abc"
        assert credentials.webhook_secret == "secret"
        assert credentials.environment is None
        assert credentials.test_payer_email == "test_user@testuser.com"
        assert credentials.token_hint == "...-abc"

    @pytest.mark.asyncio
    async def test_production_token_without_environment_is_not_sandbox(self):
        """Test token de producción sin entorno no es sandbox."""
        provider = SettingsCredentialsProvider(
            Settings(
                MERCADOPAGO_ACCESS_TOKEN="APP_USR-123-prod",
                MERCADOPAGO_ENVIRONMENT=None,
                MERCADOPAGO_TEST_PAYER_EMAIL="test_user@testuser.com",
            )
        )

        gateway = await MercadoPagoGateway.create(TENANT_ID, provider)

        assert gateway.is_sandbox() is False
        assert gateway.identify().environment == "production"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "token,environment,expected",
        [
            ("TEST-abc", None, True),
            ("APP_USR-abc", "sandbox", True),
            ("TEST-abc", "production", False),
        ],
    )
    async def test_explicit_environment_overrides_token_prefix(self, token, environment, expected):
        """Test entorno explícito tiene prioridad sobre el prefijo del token."""
        provider = SettingsCredentialsProvider(
            Settings(MERCADOPAGO_ACCESS_TOKEN=token, MERCADOPAGO_ENVIRONMENT=environment)
        )

        gateway = await MercadoPagoGateway.create(TENANT_ID, provider)

        assert gateway.is_sandbox() is expected

    @pytest.mark.asyncio
    @pytest.mark.parametrize("gateway", ["mercadopago", "stripe", "paypal"])
    async def test_missing_settings_credentials(self, gateway):
        """Test settings sin credenciales."""
        provider = SettingsCredentialsProvider(
            Settings(MERCADOPAGO_ACCESS_TOKEN="", STRIPE_SECRET_KEY="")
        )

        with pytest.raises(ConfigurationError):
            await provider.get_credentials(TENANT_ID, gateway)


class TestSharedFactory:

    def test_shared_factory_is_cached(self):
        """Test factory compartida se reutiliza."""
        assert get_gateway_factory() is get_gateway_factory()
        assert {"mercadopago", "stripe"} <= set(list_supported_gateways())
        assert default_gateway() in list_supported_gateways()

    @pytest.mark.asyncio
    async def test_get_gateway_shortcut(self):
        """Test atajo get_gateway."""
        gateway = await get_gateway(TENANT_ID, "stripe")

        assert isinstance(gateway, StripeGateway)
        assert await get_gateway(TENANT_ID, "stripe") is gateway
