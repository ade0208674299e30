"""
Redis-backed job queue with at-least-once delivery.

Jobs are scheduled in a sorted set keyed by their next run time. A worker
claims a job by removing it from the pending set (only one ``ZREM`` can
succeed) and leases it in the active set; a job whose lease lapses because
the worker died is returned to pending by ``requeue_expired``.

Key structure (per queue):
- jobs:{queue}:pending (sorted set) - job ids scored by next run time
- jobs:{queue}:active (sorted set) - claimed job ids scored by lease expiry
- jobs:{queue}:item:{id} (hash) - job details
- jobs:{queue}:singleton:{key} (string) - dedupe marker with TTL
- jobs:{queue}:dead_letter (list) - jobs that exceeded max attempts

Usage:
    queue = JobQueue(await get_redis_pool())
    await queue.send(
        Jobs.DISCOUNT_CODE_SETTLE,
        {"discountCodeId": code_id},
        singleton_key=f"discount-code-settle:{code_id}",
        singleton_seconds=Jobs.DISCOUNT_CODE_SETTLE_SINGLETON_SECONDS,
    )

    for job in await queue.fetch(Jobs.DISCOUNT_CODE_SETTLE, batch_size=5):
        ...
        await queue.complete(job)
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import redis.asyncio as redis

from shared.config.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Job:
    """A job claimed from the queue."""
    id: str
    queue: str
    data: dict[str, Any]
    attempt: int = 0
    max_attempts: int = 5
    created_at: float = field(default_factory=time.time)
    last_error: str = ""


class JobQueue:
    """At-least-once job queue with exponential backoff and a dead-letter list."""

    KEY_PREFIX = "jobs"

    # Backoff configuration
    BASE_DELAY_SECONDS = 10
    MAX_DELAY_SECONDS = 3600  # 1 hour max
    MAX_ATTEMPTS = 5
    DEAD_LETTER_LIMIT = 1000

    def __init__(self, redis_client: redis.Redis, lease_seconds: int = 300):
        self._redis = redis_client
        self._lease_seconds = lease_seconds

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    def _pending_key(self, queue: str) -> str:
        return f"{self.KEY_PREFIX}:{queue}:pending"

    def _active_key(self, queue: str) -> str:
        return f"{self.KEY_PREFIX}:{queue}:active"

    def _item_key(self, queue: str, job_id: str) -> str:
        return f"{self.KEY_PREFIX}:{queue}:item:{job_id}"

    def _singleton_key(self, queue: str, key: str) -> str:
        return f"{self.KEY_PREFIX}:{queue}:singleton:{key}"

    def _dead_letter_key(self, queue: str) -> str:
        return f"{self.KEY_PREFIX}:{queue}:dead_letter"

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        return min(
            self.BASE_DELAY_SECONDS * (2 ** max(attempt - 1, 0)),
            self.MAX_DELAY_SECONDS,
        )

    # -------------------------------------------------------------------------
    # Producer
    # -------------------------------------------------------------------------

    async def send(
        self,
        queue: str,
        data: dict[str, Any],
        singleton_key: str | None = None,
        singleton_seconds: int | None = None,
    ) -> str | None:
        """
        Enqueue a job to run as soon as possible.

        With ``singleton_key`` the job is dropped (returns None) when another
        job with the same key was sent within ``singleton_seconds``.
        """
        job_id = uuid.uuid4().hex

        if singleton_key:
            acquired = await self._redis.set(
                self._singleton_key(queue, singleton_key),
                job_id,
                nx=True,
                ex=singleton_seconds or None,
            )
            if not acquired:
                logger.debug(
                    "Job deduplicated by singleton key",
                    queue=queue,
                    singleton_key=singleton_key,
                )
                return None

        now = time.time()
        await self._redis.hset(
            self._item_key(queue, job_id),
            mapping={
                "id": job_id,
                "queue": queue,
                "data": json.dumps(data),
                "attempt": "0",
                "max_attempts": str(self.MAX_ATTEMPTS),
                "created_at": str(now),
                "last_error": "",
            },
        )
        await self._redis.zadd(self._pending_key(queue), {job_id: now})

        logger.info("Job enqueued", queue=queue, job_id=job_id)
        return job_id

    # -------------------------------------------------------------------------
    # Consumer
    # -------------------------------------------------------------------------

    async def fetch(self, queue: str, batch_size: int = 1) -> list[Job]:
        """Claim up to ``batch_size`` due jobs and lease them to the caller."""
        now = time.time()
        due_ids = await self._redis.zrangebyscore(
            self._pending_key(queue),
            min=0,
            max=now,
            start=0,
            num=batch_size,
        )

        jobs: list[Job] = []
        for job_id in due_ids:
            # Another worker may have claimed it between ZRANGEBYSCORE and here
            claimed = await self._redis.zrem(self._pending_key(queue), job_id)
            if not claimed:
                continue

            await self._redis.zadd(
                self._active_key(queue),
                {job_id: now + self._lease_seconds},
            )

            job = await self._load(queue, job_id)
            if job is None:
                await self._redis.zrem(self._active_key(queue), job_id)
                logger.warning("Dropping job without details", queue=queue, job_id=job_id)
                continue
            jobs.append(job)

        return jobs

    async def complete(self, job: Job) -> None:
        """Acknowledge a job; it will not be delivered again."""
        await self._redis.zrem(self._active_key(job.queue), job.id)
        await self._redis.delete(self._item_key(job.queue, job.id))
        logger.debug("Job completed", queue=job.queue, job_id=job.id)

    async def fail(self, job: Job, error: str) -> None:
        """Schedule a retry with backoff, or dead-letter after max attempts."""
        attempt = job.attempt + 1
        job.attempt = attempt
        job.last_error = error

        if attempt >= job.max_attempts:
            await self._move_to_dead_letter(job)
            return

        delay = self.backoff_delay(attempt)
        await self._redis.hset(
            self._item_key(job.queue, job.id),
            mapping={"attempt": str(attempt), "last_error": error},
        )
        await self._redis.zrem(self._active_key(job.queue), job.id)
        await self._redis.zadd(self._pending_key(job.queue), {job.id: time.time() + delay})

        logger.warning(
            "Job failed, retry scheduled",
            queue=job.queue,
            job_id=job.id,
            attempt=attempt,
            next_retry_in=f"{delay:.1f}s",
            error=error,
        )

    async def requeue_expired(self, queue: str) -> int:
        """Return jobs whose lease lapsed to pending. Returns how many moved."""
        now = time.time()
        expired = await self._redis.zrangebyscore(self._active_key(queue), min=0, max=now)

        moved = 0
        for job_id in expired:
            if await self._redis.zrem(self._active_key(queue), job_id):
                await self._redis.zadd(self._pending_key(queue), {job_id: now})
                moved += 1

        if moved:
            logger.warning("Requeued jobs with expired lease", queue=queue, count=moved)
        return moved

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _load(self, queue: str, job_id: str) -> Job | None:
        data = await self._redis.hgetall(self._item_key(queue, job_id))
        if not data:
            return None

        return Job(
            id=data.get("id", job_id),
            queue=data.get("queue", queue),
            data=json.loads(data.get("data", "{}")),
            attempt=int(data.get("attempt", "0")),
            max_attempts=int(data.get("max_attempts", str(self.MAX_ATTEMPTS))),
            created_at=float(data.get("created_at", "0") or "0"),
            last_error=data.get("last_error", ""),
        )

    async def _move_to_dead_letter(self, job: Job) -> None:
        entry = {
            "id": job.id,
            "queue": job.queue,
            "data": job.data,
            "error": job.last_error,
            "attempts": job.attempt,
            "created_at": job.created_at,
            "failed_at": time.time(),
        }
        dead_letter_key = self._dead_letter_key(job.queue)
        await self._redis.lpush(dead_letter_key, json.dumps(entry))
        # Trim dead letter list to prevent unbounded growth
        await self._redis.ltrim(dead_letter_key, 0, self.DEAD_LETTER_LIMIT - 1)

        await self._redis.zrem(self._active_key(job.queue), job.id)
        await self._redis.delete(self._item_key(job.queue, job.id))

        logger.error(
            "Job moved to dead letter queue",
            queue=job.queue,
            job_id=job.id,
            attempts=job.attempt,
            error=job.last_error,
        )

    async def get_stats(self, queue: str) -> dict[str, int]:
        """Queue statistics for monitoring."""
        return {
            "pending_count": await self._redis.zcard(self._pending_key(queue)),
            "active_count": await self._redis.zcard(self._active_key(queue)),
            "dead_letter_count": await self._redis.llen(self._dead_letter_key(queue)),
        }
