"""
Tests for health check endpoints.
"""

import asyncio

import pytest

from shared.utils.health import HealthStatus, aggregate_health_checks, health_check_with_timeout


class TestHealthEndpoints:
    """Test health check API endpoints."""

    def test_health_check(self, client):
        """Basic health check should return healthy status."""
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "rest-api"


class TestHealthChecks:
    """Timeout and aggregation helpers."""

    @pytest.mark.asyncio
    async def test_healthy_component(self):
        @health_check_with_timeout(timeout=1.0, component="fast")
        async def check():
            return {"type": "fake"}

        result = await check()
        assert result.status is HealthStatus.HEALTHY
        assert result.details == {"type": "fake"}

    @pytest.mark.asyncio
    async def test_timeout_is_unhealthy(self):
        @health_check_with_timeout(timeout=0.01, component="slow")
        async def check():
            await asyncio.sleep(1)

        result = await check()
        assert result.status is HealthStatus.UNHEALTHY

    @pytest.mark.asyncio
    async def test_aggregate_degrades_on_failure(self):
        @health_check_with_timeout(timeout=1.0, component="ok")
        async def ok():
            return {}

        @health_check_with_timeout(timeout=1.0, component="broken")
        async def broken():
            raise ConnectionError("refused")

        health = await aggregate_health_checks([ok(), broken()])

        assert health["status"] != HealthStatus.HEALTHY.value
        assert health["components"]["ok"]["status"] == "healthy"
        assert health["components"]["broken"]["status"] == "unhealthy"
