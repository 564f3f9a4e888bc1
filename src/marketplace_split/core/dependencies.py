"""
Dependency factories for the marketplace split service.

Each collaborator is built once per process and handed explicitly to the
components that need it; none of them holds per-seller state.
"""

import logging
from functools import lru_cache

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .database import create_db_engine, create_session_factory
from .gateway import MercadoPagoGateway
from .settings import MercadoPagoSettings
from .store import CredentialStore
from .webhook import OrderSystemNotifier

# Setup logger
logger = logging.getLogger("dependencies")


@lru_cache()
def get_settings() -> MercadoPagoSettings:
    """
    Get the settings for the marketplace split service.
    """
    settings = MercadoPagoSettings()  # Reads variables from the environment and .env
    logger.info("get_settings returning settings for backend: %s", settings.backend_url)
    if not settings.mp_app_id or not settings.mp_client_secret:
        logger.warning("Mercado Pago connect application credentials are not configured")
    if not settings.internal_api_key:
        logger.warning("INTERNAL_API_KEY is not set; product sync requests will be rejected")
    return settings


@lru_cache()
def get_engine() -> Engine:
    return create_db_engine(get_settings())


@lru_cache()
def get_session_factory() -> sessionmaker[Session]:
    return create_session_factory(get_engine())


@lru_cache()
def get_credential_store() -> CredentialStore:
    return CredentialStore(get_session_factory())


@lru_cache()
def get_gateway() -> MercadoPagoGateway:
    """
    Injection method to get the Mercado Pago gateway bound to the connect application.
    """
    return MercadoPagoGateway(get_settings())


@lru_cache()
def get_order_system_notifier() -> OrderSystemNotifier:
    return OrderSystemNotifier(get_settings())
