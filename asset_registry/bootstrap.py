"""
Asset Registry — process bootstrap.

Configures structured logging and builds a registry from settings:
1. Open the shared store and create its schema
2. Deploy with the configured admin principal, or attach if already deployed
3. Register the structlog sink so every mint record is published
"""

from __future__ import annotations

import logging

import structlog

from asset_registry.access.control import AccessController
from asset_registry.config import RegistrySettings, settings as default_settings
from asset_registry.registry.sinks import StructlogMintSink
from asset_registry.registry.store import RegistryStore
from asset_registry.registry.unified import UnifiedRegistry

logger = logging.getLogger(__name__)


def configure_logging(settings: RegistrySettings | None = None) -> None:
    """Configure structured logging."""
    settings = settings or default_settings
    level = logging.getLevelName(settings.log_level)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.dev.ConsoleRenderer()
                if settings.log_format != "json"
                else structlog.processors.JSONRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_registry(settings: RegistrySettings | None = None) -> UnifiedRegistry:
    """
    Open the configured store and return its registry.

    A store with no deployment yet is deployed with `admin_principal`.
    """
    settings = settings or default_settings
    store = RegistryStore(settings.database_url, echo=settings.database_echo)
    store.initialize()

    sinks = [StructlogMintSink()]
    if AccessController(store).is_initialized():
        logger.info("Attaching to deployed registry at %s", store.engine.url.render_as_string())
        return UnifiedRegistry(store, sinks=sinks)
    return UnifiedRegistry(store, admin=settings.admin_principal, sinks=sinks)
