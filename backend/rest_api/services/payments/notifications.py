"""
Inbound Mercado Pago notification payloads.

Mercado Pago delivers several shapes to the same URL:

    Feed v2 payment:   {"type": "payment", "action": "payment.updated",
                        "data": {"id": "123"}}
    Legacy (IPN):      {"topic": "payment", "resource": "123"}
    Merchant order:    {"topic": "merchant_order",
                        "resource": "https://api.mercadolibre.com/merchant_orders/9"}

``parse_notification`` folds them into one of three models so callers can
match on the ``kind`` field instead of probing dict keys.
"""

from collections.abc import Mapping
from typing import Any, Literal, Union

from pydantic import BaseModel


class PaymentNotification(BaseModel):
    kind: Literal["payment"] = "payment"
    payment_id: str
    external_reference: str | None = None
    action: str | None = None


class MerchantOrderNotification(BaseModel):
    kind: Literal["merchant_order"] = "merchant_order"
    merchant_order_id: str | None = None


class UnknownNotification(BaseModel):
    """Any other topic, or a payment notification without an id."""

    kind: Literal["unknown"] = "unknown"
    type: str | None = None
    reason: str


Notification = Union[PaymentNotification, MerchantOrderNotification, UnknownNotification]


def _last_segment(resource: Any) -> str | None:
    if not isinstance(resource, str) or not resource:
        return None
    segment = resource.rstrip("/").split("/")[-1]
    return segment or None


def _as_id(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None


def parse_notification(
    body: Any,
    query: Mapping[str, Any] | None = None,
) -> Notification:
    """
    Classify a webhook body.

    The notification type comes from ``type`` and falls back to the legacy
    ``topic`` key (body first, then query string). Never raises.
    """
    query = query or {}
    if not isinstance(body, dict):
        body = {}
    data = body.get("data") if isinstance(body.get("data"), dict) else {}

    notification_type = (
        body.get("type")
        or body.get("topic")
        or query.get("type")
        or query.get("topic")
    )

    if notification_type == "payment":
        payment_id = (
            _as_id(data.get("id"))
            or _last_segment(body.get("resource"))
            or _as_id(query.get("data.id"))
            or _as_id(query.get("id"))
        )
        if not payment_id:
            return UnknownNotification(type="payment", reason="payment notification without id")

        return PaymentNotification(
            payment_id=payment_id,
            external_reference=_as_id(data.get("external_reference")),
            action=body.get("action") if isinstance(body.get("action"), str) else None,
        )

    if notification_type in ("merchant_order", "topic_merchant_order_wh"):
        return MerchantOrderNotification(
            merchant_order_id=(
                _last_segment(body.get("resource"))
                or _as_id(data.get("id"))
                or _as_id(query.get("id"))
            ),
        )

    return UnknownNotification(
        type=str(notification_type) if notification_type else None,
        reason="unsupported notification type",
    )
