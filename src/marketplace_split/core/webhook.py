"""Payment notification relay.

Mercado Pago notifies at least once. A notification is never trusted as
proof of payment: the payment is re-fetched from Mercado Pago and only an
approved record is forwarded to the platform's order system, which treats
repeated "paid" relays for the same preference as no-ops.
"""

import json
import logging
from enum import Enum
from typing import Any, Mapping, Optional
from urllib.parse import parse_qsl

import anyio
import requests
from pydantic import BaseModel

from marketplace_split.core.errors import RelayFailed
from marketplace_split.core.gateway import MercadoPagoGateway
from marketplace_split.core.settings import MercadoPagoSettings

logger = logging.getLogger("webhook")

PAYMENT_TOPIC = "payment"
APPROVED = "approved"


class WebhookOutcome(str, Enum):
    IGNORED = "ignored"
    NOT_APPROVED = "not_approved"
    MISSING_PREFERENCE = "missing_preference"
    RELAYED = "relayed"
    FAILED = "failed"


class PaymentNotification(BaseModel):
    """One webhook delivery, enriched with the authoritative payment state."""

    topic: Optional[str] = None
    notification_id: Optional[str] = None
    status: Optional[str] = None
    preference_id: Optional[str] = None
    collector_id: Optional[str] = None


class WebhookAck(BaseModel):
    """What to answer Mercado Pago: 500 is the only answer that asks for redelivery."""

    status_code: int
    outcome: WebhookOutcome


def decode_body(raw_body: bytes) -> dict:
    """Decode a JSON or form-encoded notification body; anything else is empty."""
    if not raw_body:
        return {}
    try:
        decoded = json.loads(raw_body)
    except ValueError:
        try:
            return dict(parse_qsl(raw_body.decode("utf-8")))
        except UnicodeDecodeError:
            return {}
    return decoded if isinstance(decoded, dict) else {}


def parse_notification(query: Mapping[str, str], body: Mapping[str, Any]) -> PaymentNotification:
    """
    Pull topic and notification id out of either transport.

    Query parameters win over the body. Both the IPN style (``topic``/``id``)
    and the webhook style (``type``/``data.id``) are understood.
    """
    topic = query.get("topic") or query.get("type") or body.get("topic") or body.get("type")

    data = body.get("data")
    body_data_id = data.get("id") if isinstance(data, dict) else None
    notification_id = (
        query.get("id") or query.get("data.id") or body_data_id or body.get("data.id")
    )

    return PaymentNotification(
        topic=str(topic) if topic else None,
        notification_id=str(notification_id) if notification_id else None,
    )


class OrderSystemNotifier:
    """Forwards approved payments to the platform's order-update endpoint."""

    def __init__(self, settings: MercadoPagoSettings) -> None:
        self._settings = settings

    def _post(self, preference_id: str) -> int:
        response = requests.post(
            self._settings.order_system_webhook_url,
            json={
                "preference_id": preference_id,
                "internal_api_key": self._settings.internal_api_key,
            },
            timeout=self._settings.http_timeout_seconds,
        )
        return response.status_code

    async def notify_paid(self, preference_id: str) -> None:
        """
        Relay one approved payment, retrying with exponential backoff.

        Raises:
            RelayFailed: If no attempt got a 2xx answer.
        """
        if not self._settings.order_system_webhook_url:
            logger.error("Order system URL is not configured; cannot relay %s", preference_id)
            raise RelayFailed("Order system URL is not configured")

        attempts = max(1, self._settings.relay_max_attempts)
        delay = self._settings.relay_backoff_seconds
        for attempt in range(1, attempts + 1):
            try:
                status_code = await anyio.to_thread.run_sync(self._post, preference_id)
            except requests.RequestException as e:
                logger.warning(
                    "Relay attempt %s/%s for %s failed: %s: %s",
                    attempt,
                    attempts,
                    preference_id,
                    type(e).__name__,
                    str(e),
                )
            else:
                if 200 <= status_code < 300:
                    logger.info("Relayed approved payment (preference %s)", preference_id)
                    return
                logger.warning(
                    "Relay attempt %s/%s for %s answered %s",
                    attempt,
                    attempts,
                    preference_id,
                    status_code,
                )
            if attempt < attempts:
                await anyio.sleep(delay)
                delay *= 2

        raise RelayFailed(f"Order system did not accept preference {preference_id}")


class WebhookRelay:
    """Verifies payment notifications against Mercado Pago and relays approvals."""

    def __init__(self, gateway: MercadoPagoGateway, notifier: OrderSystemNotifier) -> None:
        self._gateway = gateway
        self._notifier = notifier

    async def handle(self, query: Mapping[str, str], raw_body: bytes) -> WebhookAck:
        notification = parse_notification(query, decode_body(raw_body))

        if notification.topic != PAYMENT_TOPIC or not notification.notification_id:
            logger.info(
                "Ignoring notification (topic=%s id=%s)",
                notification.topic,
                notification.notification_id,
            )
            return WebhookAck(status_code=200, outcome=WebhookOutcome.IGNORED)

        try:
            return await self._process(notification)
        except Exception as e:
            logger.error(
                "Error processing notification %s: %s: %s",
                notification.notification_id,
                type(e).__name__,
                str(e),
            )
            return WebhookAck(status_code=500, outcome=WebhookOutcome.FAILED)

    async def _process(self, notification: PaymentNotification) -> WebhookAck:
        payment = await self._gateway.get_payment(str(notification.notification_id))
        notification.status = payment.status
        notification.preference_id = payment.preference_id
        notification.collector_id = payment.collector_id
        logger.info(
            "Payment notification %s: status=%s collector=%s",
            notification.notification_id,
            notification.status,
            notification.collector_id,
        )

        if notification.status != APPROVED:
            return WebhookAck(status_code=200, outcome=WebhookOutcome.NOT_APPROVED)

        if not notification.preference_id:
            logger.warning(
                "Payment %s approved but has no preference_id; nothing to relay",
                notification.notification_id,
            )
            return WebhookAck(status_code=200, outcome=WebhookOutcome.MISSING_PREFERENCE)

        await self._notifier.notify_paid(notification.preference_id)
        return WebhookAck(status_code=200, outcome=WebhookOutcome.RELAYED)
