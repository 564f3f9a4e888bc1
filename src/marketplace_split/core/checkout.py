"""Checkout path: resolve the product's seller and create a split preference on their account."""

import logging
import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional
from urllib.parse import urlencode

from marketplace_split.core.errors import InvalidRequest, SellerNotFound
from marketplace_split.core.gateway import MercadoPagoGateway
from marketplace_split.core.models import PreferenceCreated
from marketplace_split.core.settings import MercadoPagoSettings
from marketplace_split.core.store import CredentialStore

logger = logging.getLogger("checkout")

TWO_PLACES = Decimal("0.01")


def marketplace_fee_percentage(fixed_fee: float, total_amount: float) -> float:
    """
    Express a fixed absolute platform fee as a percentage of ``total_amount``.

    Mercado Pago's split field is a percentage, so the value must be
    recomputed for every amount. Rounded half-up to two decimals; results
    above 100 are returned unchanged. Raises ``decimal.InvalidOperation`` when
    the percentage has more digits than the decimal context can hold.

    >>> marketplace_fee_percentage(0.01, 2.00)
    0.5
    """
    percentage = Decimal(str(fixed_fee)) / Decimal(str(total_amount)) * 100
    return float(percentage.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


class TokenResolver:
    """Maps a product to the access token of the seller who owns it."""

    def __init__(self, store: CredentialStore) -> None:
        self._store = store

    async def resolve(self, product_id: str) -> Optional[str]:
        """
        Return the seller token for ``product_id`` or None when there is none.

        Any non-empty stored value is accepted; Mercado Pago decides whether
        it is still valid when the token is used.
        """
        token = await self._store.get_token(product_id)
        return token or None


class SplitPreferenceBuilder:
    """Builds and submits a preference that pays the seller and keeps the marketplace fee."""

    def __init__(
        self,
        settings: MercadoPagoSettings,
        resolver: TokenResolver,
        gateway: MercadoPagoGateway,
    ) -> None:
        self._settings = settings
        self._resolver = resolver
        self._gateway = gateway

    @staticmethod
    def _validate(
        order_id: Optional[str],
        product_id: Optional[str],
        payer_email: Optional[str],
        total_amount: Optional[float],
    ) -> tuple[str, str, str, float]:
        missing = [
            name
            for name, value in (
                ("orderId", order_id),
                ("productId", product_id),
                ("payerEmail", payer_email),
            )
            if value is None or not str(value).strip()
        ]
        if total_amount is None:
            missing.append("totalAmount")
        if missing:
            raise InvalidRequest(f"Missing required fields: {', '.join(missing)}")
        if not math.isfinite(total_amount) or total_amount <= 0:
            raise InvalidRequest("totalAmount must be greater than zero")
        return str(order_id), str(product_id), str(payer_email), float(total_amount)

    def preference_body(
        self,
        order_id: str,
        product_id: str,
        payer_email: str,
        total_amount: float,
        fee_percentage: float,
    ) -> dict:
        """Processor-facing preference request; ``external_reference`` joins it back to the order."""
        orders_url = self._settings.orders_url
        return {
            "items": [
                {
                    "id": str(product_id),
                    "title": f"Order #{order_id} - Marketplace",
                    "description": f"Payment for order {order_id}",
                    "unit_price": float(total_amount),
                    "quantity": 1,
                    "currency_id": self._settings.currency_id,
                }
            ],
            "payer": {"email": payer_email},
            "marketplace_fee": fee_percentage,
            "external_reference": str(order_id),
            "back_urls": {
                "success": f"{orders_url}?{urlencode({'status': 'success', 'order_id': order_id})}",
                "failure": f"{orders_url}?{urlencode({'status': 'failure', 'order_id': order_id})}",
            },
            "notification_url": self._settings.notification_url,
        }

    async def build(
        self,
        order_id: Optional[str],
        product_id: Optional[str],
        payer_email: Optional[str],
        total_amount: Optional[float],
    ) -> PreferenceCreated:
        """
        Create the split preference for one checkout.

        Raises:
            InvalidRequest: If an input is missing or ``total_amount`` is not positive
                or too small to express the fee.
            SellerNotFound: If no onboarded seller token exists for the product.
            PreferenceCreationFailed: If Mercado Pago rejects the preference.
        """
        order_id, product_id, payer_email, total_amount = self._validate(
            order_id, product_id, payer_email, total_amount
        )

        try:
            fee_percentage = marketplace_fee_percentage(
                self._settings.marketplace_fixed_fee, total_amount
            )
        except InvalidOperation as e:
            raise InvalidRequest("totalAmount is too small to express the marketplace fee") from e
        if fee_percentage > 100:
            logger.warning(
                "Marketplace fee of %s%% exceeds the order total (order=%s amount=%s)",
                fee_percentage,
                order_id,
                total_amount,
            )

        seller_token = await self._resolver.resolve(product_id)
        if seller_token is None:
            raise SellerNotFound(f"No connected seller token for product {product_id}")

        body = self.preference_body(order_id, product_id, payer_email, total_amount, fee_percentage)
        logger.info(
            "Creating preference for order %s (product=%s amount=%s fee=%s%%)",
            order_id,
            product_id,
            total_amount,
            fee_percentage,
        )
        preference = await self._gateway.create_preference(seller_token, body)
        logger.info("Preference %s created for order %s", preference.id, order_id)

        return PreferenceCreated(checkout_url=preference.init_point, preference_id=preference.id)
