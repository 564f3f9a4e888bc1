"""Mercado Pago plugin module.

This module provides the processor-facing API of the marketplace: the OAuth
connect flow that onboards sellers, checkout preference creation with the
marketplace fee split, and the payment notification webhook.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse

from marketplace_split.core.checkout import SplitPreferenceBuilder
from marketplace_split.core.models import PreferenceCreate, PreferenceCreated
from marketplace_split.core.onboarding import OnboardingFlow
from marketplace_split.core.webhook import WebhookOutcome, WebhookRelay

# Setup module-level logger
logger = logging.getLogger("mercadopago")


def create_mercadopago_router(
    onboarding: OnboardingFlow,
    builder: SplitPreferenceBuilder,
    relay: WebhookRelay,
) -> APIRouter:
    """Create a router for the Mercado Pago integration."""

    router = APIRouter()

    @router.get("/oauth")
    async def initiate_oauth(seller_id: Optional[str] = None) -> RedirectResponse:
        """Redirect a platform seller to Mercado Pago's authorization page."""
        oauth_url = onboarding.authorization_url(seller_id)
        return RedirectResponse(oauth_url, status_code=302)

    @router.get("/oauth/callback")
    async def oauth_callback(
        code: Optional[str] = None, state: Optional[str] = None
    ) -> RedirectResponse:
        """
        Handle the OAuth callback from Mercado Pago.

        Redirects to the seller panel with ``status=success`` or
        ``status=cancelled``; a failed token exchange answers 500.

        Args:
            code (str | None): Authorization code; absent when the seller cancelled.
            state (str | None): Platform seller id echoed back by Mercado Pago.
        """
        panel_url = await onboarding.complete(code, state)
        return RedirectResponse(panel_url, status_code=302)

    @router.post("/preferences", response_model=PreferenceCreated)
    async def create_preference(payload: PreferenceCreate) -> PreferenceCreated:
        """Create a checkout preference on the product seller's account."""
        return await builder.build(
            payload.order_id, payload.product_id, payload.payer_email, payload.total_amount
        )

    @router.post("/webhook")
    async def payment_webhook(request: Request) -> JSONResponse:
        """
        Receive a Mercado Pago notification.

        Answers 200 ``{status: ignored|processed}`` when the notification was
        handled or deliberately ignored, and 500 when Mercado Pago should
        deliver it again.
        """
        raw_body = await request.body()
        ack = await relay.handle(request.query_params, raw_body)
        if ack.status_code >= 500:
            return JSONResponse(status_code=ack.status_code, content={"error": ack.outcome.value})
        status = "ignored" if ack.outcome is WebhookOutcome.IGNORED else "processed"
        return JSONResponse(status_code=ack.status_code, content={"status": status})

    return router
