"""
Tests for the expired discount code scan and the worker run loop.
"""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from shared.config.constants import Jobs
from shared.infrastructure.jobs import Job
from worker.main import SettlementRunner
from worker.notifications import (
    ADMIN_NOTIFICATIONS_CHANNEL,
    DISCOUNT_CODE_SETTLED,
    RedisAdminNotifier,
    SettlementNotification,
)
from worker.scan import DiscountCodeExpirationScanner, settle_singleton_key


NOW = datetime.now(timezone.utc)


class TestExpirationScan:

    def test_finds_only_active_expired_codes(self, database, make_discount_code):
        expired = make_discount_code(code="OLD", valid_until=NOW - timedelta(days=1))
        make_discount_code(code="CURRENT", valid_until=NOW + timedelta(days=1))
        make_discount_code(code="DONE", valid_until=NOW - timedelta(days=2), is_active=False)

        found = DiscountCodeExpirationScanner(database, AsyncMock()).find_expired(NOW)

        assert found == [expired.id]

    def test_batch_size_limits_results(self, database, make_discount_code):
        for i in range(3):
            make_discount_code(code=f"OLD{i}", valid_until=NOW - timedelta(days=i + 1))

        found = DiscountCodeExpirationScanner(database, AsyncMock(), batch_size=2).find_expired(NOW)

        assert len(found) == 2

    @pytest.mark.asyncio
    async def test_scan_enqueues_with_singleton_key(self, database, make_discount_code):
        expired = make_discount_code(code="OLD", valid_until=NOW - timedelta(days=1))
        queue = AsyncMock()
        queue.send.return_value = "job-1"

        sent = await DiscountCodeExpirationScanner(database, queue).scan(NOW)

        assert sent == 1
        queue.send.assert_awaited_once_with(
            Jobs.DISCOUNT_CODE_SETTLE,
            {"discountCodeId": expired.id},
            singleton_key=settle_singleton_key(expired.id),
            singleton_seconds=Jobs.DISCOUNT_CODE_SETTLE_SINGLETON_SECONDS,
        )

    @pytest.mark.asyncio
    async def test_deduplicated_jobs_are_not_counted(self, database, make_discount_code):
        make_discount_code(code="OLD", valid_until=NOW - timedelta(days=1))
        queue = AsyncMock()
        queue.send.return_value = None

        assert await DiscountCodeExpirationScanner(database, queue).scan(NOW) == 0


class TestSettlementRunner:

    @pytest.mark.asyncio
    async def test_consume_once_processes_a_batch(self):
        job = Job(id="j1", queue=Jobs.DISCOUNT_CODE_SETTLE, data={"discountCodeId": "dc1"})
        queue = AsyncMock()
        queue.fetch.return_value = [job]
        worker = MagicMock()
        worker.concurrency = 2
        worker.process_batch = AsyncMock()

        runner = SettlementRunner(AsyncMock(), worker, queue)
        processed = await runner.consume_once()

        assert processed == 1
        queue.requeue_expired.assert_awaited_once_with(Jobs.DISCOUNT_CODE_SETTLE)
        queue.fetch.assert_awaited_once_with(Jobs.DISCOUNT_CODE_SETTLE, batch_size=2)
        worker.process_batch.assert_awaited_once_with([job])

    @pytest.mark.asyncio
    async def test_consume_once_idle(self):
        queue = AsyncMock()
        queue.fetch.return_value = []
        worker = MagicMock()
        worker.concurrency = 1
        worker.process_batch = AsyncMock()

        assert await SettlementRunner(AsyncMock(), worker, queue).consume_once() == 0
        worker.process_batch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        queue = AsyncMock()
        queue.fetch.return_value = []
        worker = MagicMock()
        worker.concurrency = 1
        scanner = AsyncMock()

        runner = SettlementRunner(scanner, worker, queue, scan_interval=60, poll_interval=60)
        await runner.start()
        assert runner.running
        await runner.stop()

        assert not runner.running


def settlement_notification():
    return SettlementNotification(
        to=["ops@example.com"],
        code="SUMMER24",
        influencer_name="Ana",
        influencer_email="ana@example.com",
        total_amount="150.00",
        currency="ARS",
        commissions_count=3,
        influencer_payment_id="ip1",
    )


class TestRedisAdminNotifier:

    @pytest.mark.asyncio
    async def test_publishes_settlement_event(self):
        redis_client = AsyncMock()
        redis_client.publish.return_value = 1

        with patch("worker.notifications.logger") as logger:
            await RedisAdminNotifier(redis_client).send_settlement_notification(
                settlement_notification()
            )

        logger.info.assert_called_once()
        logger.warning.assert_not_called()

        channel, message = redis_client.publish.await_args.args
        event = json.loads(message)
        assert channel == ADMIN_NOTIFICATIONS_CHANNEL
        assert event["type"] == DISCOUNT_CODE_SETTLED
        assert event["v"] == 1
        assert event["entity"]["totalAmount"] == "150.00"
        assert event["entity"]["commissionsCount"] == 3

    @pytest.mark.asyncio
    async def test_warns_when_nobody_is_subscribed(self):
        redis_client = AsyncMock()
        redis_client.publish.return_value = 0

        with patch("worker.notifications.logger") as logger:
            await RedisAdminNotifier(redis_client).send_settlement_notification(
                settlement_notification()
            )

        logger.warning.assert_called_once()
        assert logger.warning.call_args.kwargs["receivers"] == 0
        logger.info.assert_not_called()
