"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.middleware.base import BaseHTTPMiddleware

from marketplace_split.api.v1.sync import create_sync_router
from marketplace_split.core.checkout import SplitPreferenceBuilder, TokenResolver
from marketplace_split.core.database import create_session_factory, init_db
from marketplace_split.core.dependencies import (
    get_engine,
    get_gateway,
    get_order_system_notifier,
    get_settings,
)
from marketplace_split.core.errors import SplitPaymentError
from marketplace_split.core.gateway import MercadoPagoGateway
from marketplace_split.core.onboarding import OnboardingFlow
from marketplace_split.core.settings import MercadoPagoSettings
from marketplace_split.core.store import CredentialStore
from marketplace_split.core.webhook import OrderSystemNotifier, WebhookRelay
from marketplace_split.plugins.mercadopago import create_mercadopago_router

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("api")

MASKED_HEADERS = {"authorization", "cookie", "x-signature", "x-internal-api-key"}


def mask_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {k: ("***" if k.lower() in MASKED_HEADERS else v) for k, v in headers.items()}


# Request tracing middleware
class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Request tracing middleware."""

    async def dispatch(self, request: Request, call_next: Callable) -> Any:
        logger.info("Request: %s %s", request.method, request.url.path)
        logger.debug("Headers: %s", mask_headers(request.headers))

        response = await call_next(request)

        logger.info("Response status: %s", response.status_code)
        return response


async def split_payment_error_handler(request: Request, exc: SplitPaymentError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error_code, "detail": exc.message},
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "invalid_request", "detail": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


def create_app(
    settings: Optional[MercadoPagoSettings] = None,
    engine: Optional[Engine] = None,
    gateway: Optional[MercadoPagoGateway] = None,
    notifier: Optional[OrderSystemNotifier] = None,
) -> FastAPI:
    """
    Build the application with explicitly constructed collaborators.

    Anything not passed in comes from the cached factories in
    ``marketplace_split.core.dependencies``.
    """
    if settings is None:
        settings = get_settings()
    if engine is None:
        engine = get_engine()
    if gateway is None:
        gateway = get_gateway()
    if notifier is None:
        notifier = get_order_system_notifier()

    store = CredentialStore(create_session_factory(engine))
    onboarding = OnboardingFlow(settings, gateway, store)
    builder = SplitPreferenceBuilder(settings, TokenResolver(store), gateway)
    relay = WebhookRelay(gateway, notifier)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Lifespan for the FastAPI application."""
        logger.info("Initializing database...")
        init_db(engine)
        logger.info("Database initialized successfully!")
        yield
        engine.dispose()

    app = FastAPI(
        title="Marketplace Split API",
        description="Mercado Pago split payments for marketplace sellers",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Add request tracing middleware
    app.add_middleware(RequestTracingMiddleware)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SplitPaymentError, split_payment_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(create_mercadopago_router(onboarding, builder, relay), prefix="/mercadopago")
    app.include_router(create_sync_router(settings, store), prefix="/api/v1")

    @app.get("/")
    async def root() -> dict:
        """Root endpoint."""
        return {"message": "Welcome to the Marketplace Split API"}

    return app


app = create_app()
