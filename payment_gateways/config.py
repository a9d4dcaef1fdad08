"""
Configuración de la capa de pasarelas de pago.
Carga variables de entorno y define settings globales.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuración principal."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Aplicación
    APP_NAME: str = "Payment Gateways"
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"
    LOG_LEVEL: str = "INFO"

    # Resolución de pasarelas
    DEFAULT_GATEWAY: str = "mercadopago"
    GATEWAY_CACHE_TTL_SECONDS: float = 300.0
    ENABLE_MOCK_GATEWAY: bool = False
    DEFAULT_CURRENCY: str = "MXN"

    # MercadoPago (credenciales de respaldo para despliegues de un solo tenant)
    MERCADOPAGO_ACCESS_TOKEN: str = ""
    MERCADOPAGO_WEBHOOK_SECRET: str = ""
    # Sin valor, el entorno se deduce del prefijo del token (TEST-)
    MERCADOPAGO_ENVIRONMENT: Literal["sandbox", "production"] | None = None
    MERCADOPAGO_TEST_PAYER_EMAIL: str = ""
    MERCADOPAGO_API_BASE_URL: str = "https://api.mercadopago.com"
    MERCADOPAGO_TIMEOUT_SECONDS: float = 5.0

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""

    # Tolerancia de timestamp para firmas de webhooks (5 minutos)
    WEBHOOK_TOLERANCE_SECONDS: int = 300


@lru_cache()
def get_settings() -> Settings:
    """Retorna instancia cacheada de settings."""
    return Settings()


settings = get_settings()
