"""Tests for token resolution and split preference construction."""

from decimal import InvalidOperation
from unittest.mock import AsyncMock, MagicMock

import pytest

from marketplace_split.core.checkout import (
    SplitPreferenceBuilder,
    TokenResolver,
    marketplace_fee_percentage,
)
from marketplace_split.core.errors import InvalidRequest, SellerNotFound
from marketplace_split.core.gateway import CreatedPreference
from marketplace_split.core.settings import MercadoPagoSettings
from marketplace_split.core.store import CredentialStore


@pytest.mark.parametrize(
    ("fixed_fee", "total_amount", "expected"),
    [
        (0.01, 2.00, 0.5),
        (0.01, 100.0, 0.01),
        (1.00, 3.00, 33.33),
        (2.00, 3.00, 66.67),
        (0.01, 0.005, 200.0),
    ],
)
def test_marketplace_fee_percentage(fixed_fee: float, total_amount: float, expected: float) -> None:
    assert marketplace_fee_percentage(fixed_fee, total_amount) == expected


def test_marketplace_fee_percentage_beyond_decimal_precision() -> None:
    with pytest.raises(InvalidOperation):
        marketplace_fee_percentage(0.01, 1e-30)


@pytest.fixture
def builder(settings: MercadoPagoSettings, store: CredentialStore, gateway: MagicMock) -> SplitPreferenceBuilder:
    gateway.create_preference.return_value = CreatedPreference(
        id="123456-pref", init_point="https://www.mercadopago.com.br/checkout/v1/redirect?pref_id=123456-pref"
    )
    return SplitPreferenceBuilder(settings, TokenResolver(store), gateway)


@pytest.mark.anyio
async def test_resolver_returns_none_for_unmapped_product(store: CredentialStore) -> None:
    assert await TokenResolver(store).resolve("prod-x") is None


@pytest.mark.anyio
async def test_resolver_accepts_any_non_empty_token(store: CredentialStore) -> None:
    """No prefix or shape check: TEST- and APP_USR- tokens are both usable."""
    await store.upsert_mapping("prod-1", "seller-1")
    await store.save_tokens("seller-1", "TEST-sandbox-token", None)

    assert await TokenResolver(store).resolve("prod-1") == "TEST-sandbox-token"


@pytest.mark.anyio
@pytest.mark.parametrize("total_amount", [0, -5.0, None, float("nan"), 1e-30])
async def test_build_rejects_bad_amount_before_gateway(
    builder: SplitPreferenceBuilder, gateway: MagicMock, total_amount: float
) -> None:
    with pytest.raises(InvalidRequest):
        await builder.build("order-1", "prod-1", "buyer@example.com", total_amount)
    gateway.create_preference.assert_not_awaited()


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("order_id", "product_id", "payer_email"),
    [
        (None, "prod-1", "buyer@example.com"),
        ("order-1", "", "buyer@example.com"),
        ("order-1", "prod-1", "   "),
    ],
)
async def test_build_rejects_missing_fields(
    builder: SplitPreferenceBuilder,
    gateway: MagicMock,
    order_id: str,
    product_id: str,
    payer_email: str,
) -> None:
    with pytest.raises(InvalidRequest):
        await builder.build(order_id, product_id, payer_email, 10.0)
    gateway.create_preference.assert_not_awaited()


@pytest.mark.anyio
async def test_build_without_seller_token(builder: SplitPreferenceBuilder, gateway: MagicMock) -> None:
    with pytest.raises(SellerNotFound) as exc_info:
        await builder.build("order-1", "prod-unmapped", "buyer@example.com", 10.0)
    assert exc_info.value.status_code == 404
    gateway.create_preference.assert_not_awaited()


@pytest.mark.anyio
async def test_build_creates_preference_as_seller(
    builder: SplitPreferenceBuilder, store: CredentialStore, gateway: MagicMock
) -> None:
    await store.upsert_mapping("prod-1", "seller-1")
    await store.save_tokens("seller-1", "APP_USR-seller-1", "TG-refresh")

    result = await builder.build("order-42", "prod-1", "buyer@example.com", 2.00)

    assert result.preference_id == "123456-pref"
    assert result.checkout_url.endswith("pref_id=123456-pref")

    gateway.create_preference.assert_awaited_once()
    seller_token, body = gateway.create_preference.await_args.args
    assert seller_token == "APP_USR-seller-1"
    assert body["marketplace_fee"] == 0.5
    assert body["external_reference"] == "order-42"
    assert body["payer"] == {"email": "buyer@example.com"}
    assert body["notification_url"] == "https://split.example.com/mercadopago/webhook"
    assert body["items"] == [
        {
            "id": "prod-1",
            "title": "Order #order-42 - Marketplace",
            "description": "Payment for order order-42",
            "unit_price": 2.0,
            "quantity": 1,
            "currency_id": "BRL",
        }
    ]
    assert body["back_urls"] == {
        "success": "https://shop.example.com/my-orders?status=success&order_id=order-42",
        "failure": "https://shop.example.com/my-orders?status=failure&order_id=order-42",
    }


@pytest.mark.anyio
async def test_build_recomputes_fee_per_amount(
    builder: SplitPreferenceBuilder, store: CredentialStore, gateway: MagicMock
) -> None:
    await store.upsert_mapping("prod-1", "seller-1")
    await store.save_tokens("seller-1", "APP_USR-seller-1", None)

    await builder.build("order-1", "prod-1", "buyer@example.com", 2.00)
    await builder.build("order-2", "prod-1", "buyer@example.com", 100.00)

    fees = [call.args[1]["marketplace_fee"] for call in gateway.create_preference.await_args_list]
    assert fees == [0.5, 0.01]


@pytest.mark.anyio
async def test_build_does_not_clamp_fee_above_total(
    builder: SplitPreferenceBuilder, store: CredentialStore, gateway: MagicMock
) -> None:
    await store.upsert_mapping("prod-1", "seller-1")
    await store.save_tokens("seller-1", "APP_USR-seller-1", None)

    await builder.build("order-1", "prod-1", "buyer@example.com", 0.005)

    body = gateway.create_preference.await_args.args[1]
    assert body["marketplace_fee"] == 200.0


@pytest.mark.anyio
async def test_resolver_uses_store_lookup() -> None:
    store = MagicMock(spec=CredentialStore)
    store.get_token = AsyncMock(return_value="")

    assert await TokenResolver(store).resolve("prod-1") is None
    store.get_token.assert_awaited_once_with("prod-1")
