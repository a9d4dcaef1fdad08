"""
Logging estructurado con structlog.
"""

import logging

import structlog

from payment_gateways.config import Settings, settings as default_settings


def configure_logging(app_settings: Settings | None = None) -> None:
    """
    Configura structlog sobre el logging estándar.

    En producción emite JSON; en el resto de entornos usa el renderer
    de consola.
    """
    app_settings = app_settings or default_settings

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, app_settings.LOG_LEVEL.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if app_settings.ENVIRONMENT == "production"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
