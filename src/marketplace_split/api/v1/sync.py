"""Internal sync endpoints called by the platform's main backend."""

import hmac
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from marketplace_split.core.errors import Forbidden, InvalidRequest, SplitPaymentError
from marketplace_split.core.models import ProductSync
from marketplace_split.core.settings import MercadoPagoSettings
from marketplace_split.core.store import CredentialStore

logger = logging.getLogger("sync")


def verify_internal_key(settings: MercadoPagoSettings, provided: Any) -> None:
    """Reject the call unless it carries the configured shared secret."""
    expected = settings.internal_api_key
    if (
        not expected
        or not isinstance(provided, str)
        or not provided
        or not hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))
    ):
        raise Forbidden("Invalid internal API key")


async def read_json_object(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def create_sync_router(settings: MercadoPagoSettings, store: CredentialStore) -> APIRouter:
    """Create the router for platform-to-service synchronisation."""

    router = APIRouter(prefix="/sync", tags=["sync"])

    @router.post("/product")
    async def sync_product(request: Request) -> JSONResponse:
        """
        Record which seller owns a product.

        Expects a JSON body ``{productId, sellerId, internal_api_key}``. Also
        makes sure the seller row exists so the seller can be onboarded later.
        The shared secret is checked before anything else in the body, and
        nothing is written unless it matches.
        """
        body = await read_json_object(request)
        try:
            verify_internal_key(settings, body.get("internal_api_key"))
            try:
                payload = ProductSync.model_validate(body)
            except ValidationError as e:
                raise InvalidRequest("productId and sellerId must be strings or numbers") from e
            if not payload.product_id or not payload.seller_id:
                raise InvalidRequest("productId and sellerId are required")

            await store.upsert_mapping(payload.product_id, payload.seller_id)
            await store.upsert_seller(payload.seller_id)
        except SplitPaymentError as e:
            logger.warning("Product sync rejected: %s", e.message)
            return JSONResponse(
                status_code=e.status_code,
                content={"success": False, "error": e.error_code, "message": e.message},
            )

        logger.info("Product %s mapped to seller %s", payload.product_id, payload.seller_id)
        return JSONResponse(
            status_code=200, content={"success": True, "message": "Mapping saved"}
        )

    return router
