"""
Tests for the provider read client and payment status resolution.
Uses httpx.MockTransport so no network is involved.
"""

from decimal import Decimal

import httpx
import pytest

from rest_api.services.payments.circuit_breaker import CircuitState
from rest_api.services.payments.mercadopago import MercadoPagoClient, PaymentStatusResolver
from rest_api.services.payments.notifications import (
    MerchantOrderNotification,
    PaymentNotification,
)
from shared.utils.exceptions import ProviderNotConfiguredError, ProviderUnavailableError


class TestMercadoPagoClient:

    @pytest.mark.asyncio
    async def test_get_payment(self, mp_client, provider_payments):
        provider_payments["MP1"] = {"status": "approved"}
        payment = await mp_client.get_payment("MP1")
        assert payment == {"id": "MP1", "status": "approved"}

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, breaker):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            seen["path"] = request.url.path
            return httpx.Response(200, json={"status": "pending"})

        client = MercadoPagoClient(
            "TOKEN-1",
            base_url="https://api.mercadopago.test",
            breaker=breaker,
            transport=httpx.MockTransport(handler),
        )
        await client.get_payment("55")
        await client.aclose()

        assert seen == {"auth": "Bearer TOKEN-1", "path": "/v1/payments/55"}

    @pytest.mark.asyncio
    async def test_non_200_is_unavailable(self, mp_client):
        with pytest.raises(ProviderUnavailableError):
            await mp_client.get_payment("unknown")

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self, breaker):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = MercadoPagoClient(
            "TOKEN", breaker=breaker, transport=httpx.MockTransport(handler)
        )
        with pytest.raises(ProviderUnavailableError):
            await client.get_payment("1")

    @pytest.mark.asyncio
    async def test_missing_token(self, breaker, provider_transport):
        client = MercadoPagoClient("", breaker=breaker, transport=provider_transport)
        assert client.is_configured is False
        with pytest.raises(ProviderNotConfiguredError):
            await client.get_payment("1")

    @pytest.mark.asyncio
    async def test_breaker_opens_and_fails_fast(self, mp_client, breaker, provider_payments):
        provider_payments["MP1"] = httpx.Response(502)

        for _ in range(breaker.config.failure_threshold):
            with pytest.raises(ProviderUnavailableError):
                await mp_client.get_payment("MP1")
        assert breaker.state is CircuitState.OPEN

        with pytest.raises(ProviderUnavailableError) as exc_info:
            await mp_client.get_payment("MP1")
        assert exc_info.value.retry_after is not None
        assert breaker.stats.rejected_calls == 1


class TestPaymentStatusResolver:

    @pytest.mark.asyncio
    async def test_resolves_payment(self, mp_client, provider_payments):
        provider_payments["MP1"] = {
            "status": "approved",
            "status_detail": "accredited",
            "external_reference": "order-1",
            "transaction_amount": 90.1,
            "currency_id": "ARS",
        }
        resolved = await PaymentStatusResolver(mp_client).resolve(
            PaymentNotification(payment_id="MP1")
        )
        assert resolved.payment_id == "MP1"
        assert resolved.status == "approved"
        assert resolved.order_id == "order-1"
        assert resolved.transaction_amount == Decimal("90.1")
        assert resolved.currency == "ARS"

    @pytest.mark.asyncio
    async def test_notification_reference_wins(self, mp_client, provider_payments):
        provider_payments["MP1"] = {"status": "approved", "metadata": {"order_id": "from-metadata"}}
        resolved = await PaymentStatusResolver(mp_client).resolve(
            PaymentNotification(payment_id="MP1", external_reference="from-notification")
        )
        assert resolved.order_id == "from-notification"

    @pytest.mark.asyncio
    async def test_conflicting_reference_uses_provider_record(self, mp_client, provider_payments):
        provider_payments["MP1"] = {"status": "approved", "external_reference": "from-payment"}
        resolved = await PaymentStatusResolver(mp_client).resolve(
            PaymentNotification(payment_id="MP1", external_reference="from-notification")
        )
        assert resolved.order_id == "from-payment"

    @pytest.mark.asyncio
    async def test_metadata_order_id_fallback(self, mp_client, provider_payments):
        provider_payments["MP1"] = {"status": "pending", "metadata": {"order_id": "meta-order"}}
        resolved = await PaymentStatusResolver(mp_client).resolve(
            PaymentNotification(payment_id="MP1")
        )
        assert resolved.order_id == "meta-order"

    @pytest.mark.asyncio
    async def test_no_order_reference(self, mp_client, provider_payments):
        provider_payments["MP1"] = {"status": "pending"}
        resolved = await PaymentStatusResolver(mp_client).resolve(
            PaymentNotification(payment_id="MP1")
        )
        assert resolved.order_id is None

    @pytest.mark.asyncio
    async def test_non_payment_resolves_to_none(self, mp_client):
        resolved = await PaymentStatusResolver(mp_client).resolve(
            MerchantOrderNotification(merchant_order_id="9")
        )
        assert resolved is None
