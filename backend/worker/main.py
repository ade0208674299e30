"""
Settlement worker process.

Two loops share one event loop:
- scan: every ``settlement_scan_interval_seconds`` enqueue expired codes
- consume: poll the settlement queue and run jobs with bounded concurrency

Run with:
    python -m worker.main
"""

from __future__ import annotations

import asyncio
import signal

from shared.config.constants import Jobs
from shared.config.logging import setup_logging, worker_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import Database
from shared.infrastructure.jobs import JobQueue
from shared.infrastructure.redis_pool import close_redis_pool, get_redis_pool

from .notifications import RedisAdminNotifier
from .scan import DiscountCodeExpirationScanner
from .settlement import CommissionSettlementWorker


class SettlementRunner:
    """
    Drives the scanner and the settlement consumer until stopped.

    Usage:
        runner = SettlementRunner(scanner, worker, queue)
        await runner.start()
        ...
        await runner.stop()
    """

    def __init__(
        self,
        scanner: DiscountCodeExpirationScanner,
        worker: CommissionSettlementWorker,
        queue: JobQueue,
        *,
        scan_interval: float | None = None,
        poll_interval: float | None = None,
    ):
        self._scanner = scanner
        self._worker = worker
        self._queue = queue
        self._scan_interval = scan_interval or settings.settlement_scan_interval_seconds
        self._poll_interval = poll_interval or settings.settlement_poll_interval_seconds
        self._running = False
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("Settlement runner already running")
            return

        self._running = True
        self._tasks = [
            asyncio.create_task(self._scan_loop()),
            asyncio.create_task(self._consume_loop()),
        ]
        logger.info(
            "Settlement runner started",
            scan_interval=self._scan_interval,
            concurrency=self._worker.concurrency,
        )

    async def stop(self) -> None:
        """Stop both loops. Jobs in flight are retried after their lease lapses."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("Settlement runner stopped")

    async def _scan_loop(self) -> None:
        while self._running:
            try:
                await self._scanner.scan()
            except Exception as e:
                logger.error("Expired code scan failed", error=str(e))
            await asyncio.sleep(self._scan_interval)

    async def _consume_loop(self) -> None:
        while self._running:
            try:
                processed = await self.consume_once()
                if processed == 0:
                    await asyncio.sleep(self._poll_interval)
            except Exception as e:
                logger.error("Settlement consumer error", error=str(e))
                await asyncio.sleep(self._poll_interval)

    async def consume_once(self) -> int:
        """Claim and run one batch. Returns how many jobs were handled."""
        await self._queue.requeue_expired(Jobs.DISCOUNT_CODE_SETTLE)
        jobs = await self._queue.fetch(
            Jobs.DISCOUNT_CODE_SETTLE, batch_size=self._worker.concurrency
        )
        if not jobs:
            return 0
        await self._worker.process_batch(jobs)
        return len(jobs)


async def run_worker() -> None:
    """Open resources, run until SIGINT/SIGTERM, then close them."""
    setup_logging()

    database = Database.from_settings()
    database.open()
    redis_client = await get_redis_pool()

    queue = JobQueue(redis_client, lease_seconds=settings.job_lease_seconds)
    worker = CommissionSettlementWorker(database, queue, RedisAdminNotifier(redis_client))
    runner = SettlementRunner(DiscountCodeExpirationScanner(database, queue), worker, queue)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    await runner.start()
    try:
        await stop_event.wait()
    finally:
        await runner.stop()
        database.close()
        await close_redis_pool()


if __name__ == "__main__":
    asyncio.run(run_worker())
