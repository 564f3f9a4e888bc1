"""Shared fixtures: a throwaway SQLite credential store and mocked Mercado Pago collaborators."""

from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from marketplace_split.core.database import create_db_engine, create_session_factory, init_db
from marketplace_split.core.gateway import MercadoPagoGateway
from marketplace_split.core.settings import MercadoPagoSettings
from marketplace_split.core.store import CredentialStore
from marketplace_split.core.webhook import OrderSystemNotifier


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings(tmp_path: Path) -> MercadoPagoSettings:
    """Settings pointing at a temporary database."""
    return MercadoPagoSettings(
        mp_app_id="1234567890",
        mp_client_secret="test_client_secret",
        mp_marketplace_access_token="APP_USR-marketplace",
        backend_url="https://split.example.com",
        frontend_url="https://shop.example.com",
        order_system_webhook_url="https://shop.example.com/api/payments/confirmed",
        internal_api_key="test_internal_key",
        marketplace_fixed_fee=0.01,
        relay_max_attempts=3,
        relay_backoff_seconds=0,
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
    )


@pytest.fixture
def engine(settings: MercadoPagoSettings) -> Generator[Engine, None, None]:
    engine = create_db_engine(settings)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine: Engine) -> CredentialStore:
    return CredentialStore(create_session_factory(engine))


@pytest.fixture
def gateway() -> MagicMock:
    """Mercado Pago gateway whose remote calls are AsyncMocks."""
    mock_gateway = MagicMock(spec=MercadoPagoGateway)
    mock_gateway.exchange_code = AsyncMock()
    mock_gateway.create_preference = AsyncMock()
    mock_gateway.get_payment = AsyncMock()
    return mock_gateway


@pytest.fixture
def notifier() -> MagicMock:
    mock_notifier = MagicMock(spec=OrderSystemNotifier)
    mock_notifier.notify_paid = AsyncMock()
    return mock_notifier


@pytest.fixture
def client(
    settings: MercadoPagoSettings,
    engine: Engine,
    gateway: MagicMock,
    notifier: MagicMock,
) -> Generator[TestClient, None, None]:
    from marketplace_split.core.main import create_app

    app = create_app(settings=settings, engine=engine, gateway=gateway, notifier=notifier)
    with TestClient(app) as test_client:
        yield test_client
