"""
Periodic scan for expired discount codes.

Every active code whose validity window has closed gets one settlement job.
Jobs carry a singleton key so repeated scans within a day enqueue at most
one job per code; the settlement itself stays idempotent either way.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from sqlalchemy import select

from shared.config.constants import Jobs
from shared.config.logging import settlement_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import Database
from shared.infrastructure.jobs import JobQueue
from rest_api.models import DiscountCode, as_utc, utcnow


def settle_singleton_key(discount_code_id: str) -> str:
    return f"discount-code-settle:{discount_code_id}"


class DiscountCodeExpirationScanner:
    """Finds expired active discount codes and enqueues settlement jobs."""

    def __init__(self, database: Database, queue: JobQueue, batch_size: int | None = None):
        self._database = database
        self._queue = queue
        self._batch_size = batch_size or settings.settlement_scan_batch_size

    def find_expired(self, now: datetime | None = None) -> list[str]:
        """Ids of active codes with valid_until strictly before ``now``."""
        now = as_utc(now) if now is not None else utcnow()
        with self._database.session_scope() as db:
            return list(
                db.scalars(
                    select(DiscountCode.id)
                    .where(
                        DiscountCode.is_active.is_(True),
                        DiscountCode.valid_until.is_not(None),
                        DiscountCode.valid_until < now,
                    )
                    .order_by(DiscountCode.valid_until)
                    .limit(self._batch_size)
                ).all()
            )

    async def scan(self, now: datetime | None = None) -> int:
        """Enqueue settlement for expired codes. Returns how many jobs were sent."""
        code_ids = await asyncio.to_thread(self.find_expired, now)

        sent = 0
        for code_id in code_ids:
            job_id = await self._queue.send(
                Jobs.DISCOUNT_CODE_SETTLE,
                {"discountCodeId": code_id},
                singleton_key=settle_singleton_key(code_id),
                singleton_seconds=Jobs.DISCOUNT_CODE_SETTLE_SINGLETON_SECONDS,
            )
            if job_id is not None:
                sent += 1

        logger.info("Expired discount code scan finished", found=len(code_ids), enqueued=sent)
        return sent
