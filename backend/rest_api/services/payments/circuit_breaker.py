"""
Circuit breaker for calls to the payment provider's read API.

States:
1. CLOSED: requests pass through, consecutive failures are counted
2. OPEN: after ``failure_threshold`` failures, requests fail fast
3. HALF_OPEN: after ``timeout_seconds``, a few probe requests decide
   whether to close again or reopen

Usage:
    from rest_api.services.payments.circuit_breaker import mercadopago_breaker

    async with mercadopago_breaker.call():
        response = await client.get(...)
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from enum import Enum
from typing import AsyncGenerator

from shared.config.logging import get_logger

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    name: str
    failure_threshold: int = 5       # Consecutive failures before opening
    success_threshold: int = 2       # Probe successes needed to close
    timeout_seconds: float = 30.0    # Open duration before probing
    half_open_max_calls: int = 2     # Concurrent probes allowed


@dataclass
class CircuitBreakerStats:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    state_changes: int = 0


class CircuitBreakerError(Exception):
    """Raised when the circuit rejects a call."""

    def __init__(self, breaker_name: str, retry_after: float):
        self.breaker_name = breaker_name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker '{breaker_name}' is open. Retry after {retry_after:.1f}s"
        )


class CircuitBreaker:
    """Async circuit breaker. All state changes happen under one asyncio lock."""

    def __init__(self, config: CircuitBreakerConfig):
        self.config = config
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._probe_successes = 0
        self._probes_in_flight = 0
        self._opened_at: float | None = None
        self._lock = asyncio.Lock()
        self._stats = CircuitBreakerStats()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def stats(self) -> CircuitBreakerStats:
        return self._stats

    def _set_state(self, new_state: CircuitState) -> None:
        if new_state is self._state:
            return
        logger.info(
            "Circuit breaker state change",
            breaker=self.config.name,
            old_state=self._state.value,
            new_state=new_state.value,
            failures=self._failures,
        )
        self._state = new_state
        self._stats.state_changes += 1

        if new_state is CircuitState.OPEN:
            self._opened_at = time.monotonic()
        else:
            self._probe_successes = 0
            self._probes_in_flight = 0
            if new_state is CircuitState.CLOSED:
                self._failures = 0
                self._opened_at = None

    def _retry_after(self) -> float:
        if self._opened_at is None:
            return 0.0
        remaining = self.config.timeout_seconds - (time.monotonic() - self._opened_at)
        return max(0.0, remaining)

    async def _admit(self) -> None:
        """Raise CircuitBreakerError unless a call may proceed."""
        async with self._lock:
            if self._state is CircuitState.OPEN:
                if self._retry_after() > 0:
                    self._stats.rejected_calls += 1
                    raise CircuitBreakerError(self.config.name, self._retry_after())
                self._set_state(CircuitState.HALF_OPEN)

            if self._state is CircuitState.HALF_OPEN:
                if self._probes_in_flight >= self.config.half_open_max_calls:
                    self._stats.rejected_calls += 1
                    raise CircuitBreakerError(self.config.name, 1.0)
                self._probes_in_flight += 1

    async def record_success(self) -> None:
        async with self._lock:
            self._stats.total_calls += 1
            self._stats.successful_calls += 1

            if self._state is CircuitState.HALF_OPEN:
                self._probes_in_flight = max(0, self._probes_in_flight - 1)
                self._probe_successes += 1
                if self._probe_successes >= self.config.success_threshold:
                    self._set_state(CircuitState.CLOSED)
            else:
                self._failures = 0

    async def record_failure(self, error: BaseException | None = None) -> None:
        async with self._lock:
            self._stats.total_calls += 1
            self._stats.failed_calls += 1
            self._failures += 1

            logger.warning(
                "Circuit breaker recorded failure",
                breaker=self.config.name,
                error=str(error) if error else None,
                failures=self._failures,
                threshold=self.config.failure_threshold,
            )

            if self._state is CircuitState.HALF_OPEN:
                self._set_state(CircuitState.OPEN)
            elif self._failures >= self.config.failure_threshold:
                self._set_state(CircuitState.OPEN)

    @asynccontextmanager
    async def call(self) -> AsyncGenerator[None, None]:
        """
        Protect the enclosed block. Any exception escaping the block counts
        as a failure and is re-raised.

        Raises:
            CircuitBreakerError: If the circuit rejects the call
        """
        await self._admit()
        try:
            yield
        except Exception as e:
            await self.record_failure(e)
            raise
        else:
            await self.record_success()

    async def reset(self) -> None:
        """Force the breaker closed (operator action)."""
        async with self._lock:
            self._set_state(CircuitState.CLOSED)
            self._failures = 0
            logger.info("Circuit breaker manually reset", breaker=self.config.name)

    def snapshot(self) -> dict:
        return {"state": self._state.value, **asdict(self._stats)}


# =============================================================================
# Pre-configured Circuit Breakers
# =============================================================================

mercadopago_breaker = CircuitBreaker(
    CircuitBreakerConfig(
        name="mercadopago",
        failure_threshold=5,
        success_threshold=2,
        timeout_seconds=30.0,
        half_open_max_calls=2,
    )
)


def get_all_breaker_stats() -> dict[str, dict]:
    """Breaker snapshots for the detailed health endpoint."""
    return {breaker.name: breaker.snapshot() for breaker in (mercadopago_breaker,)}
