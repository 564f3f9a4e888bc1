"""Mercado Pago gateway: OAuth token exchange, preference creation, payment lookup.

The ``mercadopago`` SDK and ``requests`` are blocking, so each call runs in a
worker thread. A new SDK instance is built for every call from the token that
should act: the seller's token for preferences, the marketplace token for
payment lookups.
"""

import logging
from typing import Any, Optional

import anyio
import mercadopago
import requests
from mercadopago.config import RequestOptions
from mercadopago.errors.exceptions import MercadoPagoError
from pydantic import BaseModel

from marketplace_split.core.errors import (
    ExchangeFailed,
    GatewayUnavailable,
    PreferenceCreationFailed,
)
from marketplace_split.core.settings import MP_API_BASE_URL, MercadoPagoSettings

logger = logging.getLogger("gateway")


class OAuthTokens(BaseModel):
    """Token pair returned by the authorization-code exchange."""

    access_token: str
    refresh_token: Optional[str] = None
    user_id: Optional[str] = None


class CreatedPreference(BaseModel):
    """Preference as created on the seller's account."""

    id: str
    init_point: str


class PaymentRecord(BaseModel):
    """Authoritative payment state as reported by Mercado Pago."""

    payment_id: str
    status: Optional[str] = None
    collector_id: Optional[str] = None
    preference_id: Optional[str] = None
    external_reference: Optional[str] = None
    amount: Optional[float] = None


def _mask(token: str) -> str:
    return f"{token[:8]}..." if token else "<empty>"


class MercadoPagoGateway:
    """Remote payment gateway bound to the marketplace's connect application."""

    def __init__(self, settings: MercadoPagoSettings) -> None:
        self._settings = settings
        self._timeout = settings.http_timeout_seconds

    def _sdk(self, access_token: str) -> Any:
        return mercadopago.SDK(
            access_token,
            request_options=RequestOptions(connection_timeout=self._timeout),
        )

    async def exchange_code(self, code: str) -> OAuthTokens:
        """
        Exchange an authorization code for the seller's token pair.

        Args:
            code (str): Authorization code received on the OAuth callback.

        Returns:
            OAuthTokens: The seller's access and refresh tokens.

        Raises:
            ExchangeFailed: On transport errors, non-2xx answers, or a body
                without an access token.
        """

        def _exchange_code() -> OAuthTokens:
            payload = {
                "client_id": self._settings.mp_app_id,
                "client_secret": self._settings.mp_client_secret,
                "code": code,
                "redirect_uri": self._settings.oauth_redirect_uri,
                "grant_type": "authorization_code",
            }
            try:
                response = requests.post(
                    f"{MP_API_BASE_URL}/oauth/token", json=payload, timeout=self._timeout
                )
            except requests.RequestException as e:
                logger.error("Token exchange request failed: %s: %s", type(e).__name__, str(e))
                raise ExchangeFailed(f"Token exchange request failed: {type(e).__name__}") from e

            try:
                body = response.json()
            except ValueError as e:
                logger.error("Token exchange returned a non-JSON body (%s)", response.status_code)
                raise ExchangeFailed("Token exchange returned a malformed body") from e

            if not 200 <= response.status_code < 300:
                message = body.get("message") if isinstance(body, dict) else None
                logger.error(
                    "Token exchange rejected: status=%s message=%s", response.status_code, message
                )
                raise ExchangeFailed(message or f"Token exchange rejected ({response.status_code})")

            if not isinstance(body, dict) or not body.get("access_token"):
                logger.error("Token exchange response has no access_token")
                raise ExchangeFailed("Token exchange response has no access_token")

            user_id = body.get("user_id")
            return OAuthTokens(
                access_token=body["access_token"],
                refresh_token=body.get("refresh_token"),
                user_id=str(user_id) if user_id is not None else None,
            )

        return await anyio.to_thread.run_sync(_exchange_code)

    async def create_preference(self, seller_token: str, body: dict) -> CreatedPreference:
        """
        Create a checkout preference acting as the seller.

        Raises:
            PreferenceCreationFailed: On transport errors and unreadable or non-2xx replies.
        """

        def _create_preference() -> CreatedPreference:
            logger.info("Creating preference with seller token %s", _mask(seller_token))
            try:
                result = self._sdk(seller_token).preference().create(body)
            except (requests.RequestException, MercadoPagoError, ValueError) as e:
                logger.error("Preference request failed: %s: %s", type(e).__name__, str(e))
                raise PreferenceCreationFailed(
                    f"Preference request failed: {type(e).__name__}"
                ) from e

            status = result.get("status")
            response = result.get("response") or {}
            if not isinstance(status, int) or not 200 <= status < 300:
                logger.error("Preference creation rejected: status=%s body=%s", status, response)
                raise PreferenceCreationFailed(f"Preference creation rejected ({status})")
            if not response.get("id") or not response.get("init_point"):
                logger.error("Preference response is missing id or init_point: %s", response)
                raise PreferenceCreationFailed("Preference response is incomplete")

            return CreatedPreference(id=str(response["id"]), init_point=response["init_point"])

        return await anyio.to_thread.run_sync(_create_preference)

    async def get_payment(self, payment_id: str) -> PaymentRecord:
        """
        Fetch the authoritative payment record with the marketplace credential.

        Raises:
            GatewayUnavailable: On transport errors and unreadable or non-2xx replies.
        """

        def _get_payment() -> PaymentRecord:
            try:
                result = self._sdk(self._settings.mp_marketplace_access_token).payment().get(
                    payment_id
                )
            except (requests.RequestException, MercadoPagoError, ValueError) as e:
                logger.error("Payment lookup failed: %s: %s", type(e).__name__, str(e))
                raise GatewayUnavailable(f"Payment lookup failed: {type(e).__name__}") from e

            status = result.get("status")
            response = result.get("response")
            if not isinstance(status, int) or not 200 <= status < 300 or not isinstance(
                response, dict
            ):
                logger.error("Payment lookup rejected: status=%s body=%s", status, response)
                raise GatewayUnavailable(f"Payment lookup rejected ({status})")

            collector_id = response.get("collector_id") or (response.get("collector") or {}).get(
                "id"
            )
            preference_id = response.get("preference_id")
            external_reference = response.get("external_reference")
            return PaymentRecord(
                payment_id=str(payment_id),
                status=response.get("status"),
                collector_id=str(collector_id) if collector_id is not None else None,
                preference_id=str(preference_id) if preference_id else None,
                external_reference=str(external_reference) if external_reference else None,
                amount=response.get("transaction_amount"),
            )

        return await anyio.to_thread.run_sync(_get_payment)
