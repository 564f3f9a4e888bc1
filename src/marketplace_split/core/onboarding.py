"""Seller onboarding through Mercado Pago's OAuth authorization-code flow."""

import logging
from typing import Optional
from urllib.parse import urlencode

from marketplace_split.core.errors import InvalidRequest
from marketplace_split.core.gateway import MercadoPagoGateway
from marketplace_split.core.settings import MP_AUTHORIZATION_URL, MercadoPagoSettings
from marketplace_split.core.store import CredentialStore

logger = logging.getLogger("onboarding")

STATUS_SUCCESS = "success"
STATUS_CANCELLED = "cancelled"


class OnboardingFlow:
    """
    Drives a seller from "not connected" to "tokens saved".

    The ``state`` parameter is the only channel carrying the platform's seller
    id through Mercado Pago's redirect, so it is treated as untrusted and
    possibly absent.
    """

    def __init__(
        self,
        settings: MercadoPagoSettings,
        gateway: MercadoPagoGateway,
        store: CredentialStore,
    ) -> None:
        self._settings = settings
        self._gateway = gateway
        self._store = store

    def authorization_url(self, seller_id: Optional[str]) -> str:
        """
        Build the Mercado Pago authorization URL for a platform seller.

        Args:
            seller_id (str | None): Platform-assigned seller identifier.

        Returns:
            str: URL the seller's browser is redirected to.

        Raises:
            InvalidRequest: If ``seller_id`` is missing or blank.
        """
        if not seller_id or not seller_id.strip():
            raise InvalidRequest("seller_id is required")

        query = urlencode(
            {
                "client_id": self._settings.mp_app_id,
                "response_type": "code",
                "platform_id": "mp",
                "state": seller_id,
                "redirect_uri": self._settings.oauth_redirect_uri,
            }
        )
        logger.info("Initiating OAuth for seller: %s", seller_id)
        return f"{MP_AUTHORIZATION_URL}?{query}"

    def panel_url(self, status: str) -> str:
        return f"{self._settings.seller_panel_url}?{urlencode({'status': status})}"

    async def complete(self, code: Optional[str], state: Optional[str]) -> str:
        """
        Finish the flow when Mercado Pago redirects back.

        A missing ``code`` means the seller cancelled: nothing is exchanged or
        saved. Tokens are saved only after a fully parsed exchange response,
        and only when ``state`` names a seller; re-authorization overwrites the
        previous pair.

        Returns:
            str: Seller panel URL carrying the outcome.

        Raises:
            ExchangeFailed: If the token exchange fails.
        """
        if not code:
            logger.info("OAuth cancelled by seller (state=%s)", state)
            return self.panel_url(STATUS_CANCELLED)

        logger.info("OAuth callback received: code=%s... state=%s", code[:5], state)
        tokens = await self._gateway.exchange_code(code)

        seller_id = (state or "").strip()
        if seller_id:
            await self._store.save_tokens(seller_id, tokens.access_token, tokens.refresh_token)
            logger.info("Saved Mercado Pago tokens for seller: %s", seller_id)
        else:
            logger.warning(
                "Token exchange succeeded without state; tokens for Mercado Pago user %s "
                "were not associated with any seller",
                tokens.user_id,
            )

        return self.panel_url(STATUS_SUCCESS)
