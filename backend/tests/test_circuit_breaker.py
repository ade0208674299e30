"""
Tests for the provider circuit breaker.
"""

import pytest

from rest_api.services.payments.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
    get_all_breaker_stats,
)


def make_breaker(**overrides):
    config = {"name": "test", "failure_threshold": 2, "success_threshold": 1, "timeout_seconds": 30.0}
    config.update(overrides)
    return CircuitBreaker(CircuitBreakerConfig(**config))


async def failing_call(breaker):
    with pytest.raises(ValueError):
        async with breaker.call():
            raise ValueError("provider down")


class TestCircuitBreaker:

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self):
        breaker = make_breaker()

        await failing_call(breaker)
        assert breaker.state is CircuitState.CLOSED
        await failing_call(breaker)
        assert breaker.state is CircuitState.OPEN

        with pytest.raises(CircuitBreakerError) as exc_info:
            async with breaker.call():
                pass
        assert exc_info.value.retry_after > 0

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self):
        breaker = make_breaker()

        await failing_call(breaker)
        async with breaker.call():
            pass
        await failing_call(breaker)

        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_probe_closes(self):
        breaker = make_breaker(timeout_seconds=0.0)
        await failing_call(breaker)
        await failing_call(breaker)
        assert breaker.state is CircuitState.OPEN

        async with breaker.call():
            assert breaker.state is CircuitState.HALF_OPEN

        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self):
        breaker = make_breaker(timeout_seconds=0.0)
        await failing_call(breaker)
        await failing_call(breaker)

        await failing_call(breaker)

        assert breaker.state is CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_reset(self):
        breaker = make_breaker()
        await failing_call(breaker)
        await failing_call(breaker)

        await breaker.reset()

        assert breaker.state is CircuitState.CLOSED
        assert breaker.snapshot()["failed_calls"] == 2

    def test_registry_includes_provider_breaker(self):
        stats = get_all_breaker_stats()
        assert "mercadopago" in stats
        assert "state" in stats["mercadopago"]
