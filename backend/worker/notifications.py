"""
Admin notifications for completed settlements.

The worker does not send e-mail itself: it publishes a versioned event on the
``admin:notifications`` Redis channel and the mailer subscribes to it.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

import redis.asyncio as redis

from shared.config.logging import get_logger, mask_email

logger = get_logger(__name__)

ADMIN_NOTIFICATIONS_CHANNEL = "admin:notifications"
DISCOUNT_CODE_SETTLED = "DISCOUNT_CODE_SETTLED"


@dataclass(frozen=True)
class SettlementNotification:
    """What admins are told about a settled discount code."""

    to: list[str]
    code: str
    influencer_name: str | None
    influencer_email: str | None
    total_amount: str
    currency: str
    commissions_count: int
    influencer_payment_id: str | None

    def to_payload(self) -> dict[str, Any]:
        return {
            "to": list(self.to),
            "code": self.code,
            "influencerName": self.influencer_name,
            "influencerEmail": self.influencer_email,
            "totalAmount": self.total_amount,
            "currency": self.currency,
            "commissionsCount": self.commissions_count,
            "influencerPaymentId": self.influencer_payment_id,
        }


@dataclass
class AdminEvent:
    """Envelope for events on the admin channel."""

    type: str
    entity: dict[str, Any] = field(default_factory=dict)
    ts: str | None = None
    v: int = 1

    def __post_init__(self) -> None:
        if not self.type or not isinstance(self.type, str):
            raise ValueError("Event type must be a non-empty string")

    def to_json(self) -> str:
        data = asdict(self)
        data["ts"] = data["ts"] or datetime.now(timezone.utc).isoformat()
        return json.dumps(data, ensure_ascii=False)


class AdminNotifier(Protocol):
    async def send_settlement_notification(self, notification: SettlementNotification) -> None:
        ...


class RedisAdminNotifier:
    """Publishes admin events to Redis pub/sub."""

    def __init__(self, redis_client: redis.Redis, channel: str = ADMIN_NOTIFICATIONS_CHANNEL):
        self._redis = redis_client
        self._channel = channel

    async def send_settlement_notification(self, notification: SettlementNotification) -> None:
        event = AdminEvent(type=DISCOUNT_CODE_SETTLED, entity=notification.to_payload())
        receivers = await self._redis.publish(self._channel, event.to_json())

        fields = {
            "channel": self._channel,
            "code": notification.code,
            "influencer_email": mask_email(notification.influencer_email),
            "receivers": receivers,
        }
        # Pub/sub does not buffer: with no subscriber the event is gone
        if receivers == 0:
            logger.warning("Settlement notification reached no subscriber", **fields)
        else:
            logger.info("Settlement notification published", **fields)
