"""
Wiring for the Square connection service.
"""

import logging
from functools import lru_cache

from square.client import Client

from square_connect.core.callback import SquareCallbackHandler
from square_connect.core.database import get_session_factory
from square_connect.core.settings import SquareSettings
from square_connect.core.store import ConnectionStore
from square_connect.plugins.square import SquareLocationResolver, SquareTokenExchanger

# Setup logger
logger = logging.getLogger("dependencies")


@lru_cache()
def get_settings() -> SquareSettings:
    """
    Load and validate the settings once per process.
    """
    settings = SquareSettings()  # Reads Square-related vars from .env
    logger.info("get_settings returning SquareSettings with environment: %s", settings.environment)
    missing = settings.missing_oauth_settings()
    if missing:
        logger.warning(
            "Square OAuth is not configured, callbacks will fail until these are set: %s",
            ", ".join(missing),
        )
    return settings


@lru_cache()
def get_square_client() -> Client:
    """
    Square client used for the OAuth token exchange.
    """
    settings = get_settings()
    logger.info(
        "Creating Square client with environment %s: %s",
        settings.environment,
        settings.square_base_url,
    )
    return Client(environment=settings.environment, square_version=settings.square_version)


@lru_cache()
def get_connection_store() -> ConnectionStore:
    return ConnectionStore(get_session_factory())


@lru_cache()
def get_callback_handler() -> SquareCallbackHandler:
    """
    Callback handler built from the startup settings.
    """
    settings = get_settings()
    return SquareCallbackHandler(
        settings=settings,
        store=get_connection_store(),
        token_exchanger=SquareTokenExchanger(get_square_client(), settings),
        location_resolver=SquareLocationResolver(settings),
    )
