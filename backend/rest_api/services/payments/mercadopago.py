"""
Mercado Pago read API client and payment status resolution.

Webhook bodies carry only an id; the authoritative status, amount and order
reference come from GET /v1/payments/{id}. Every read goes through the
``mercadopago`` circuit breaker and a bounded httpx timeout, and any failure
surfaces as ProviderUnavailableError so the webhook answers 500 and Mercado
Pago retries the delivery.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import httpx

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.exceptions import ProviderNotConfiguredError, ProviderUnavailableError
from shared.utils.money import to_decimal

from .circuit_breaker import CircuitBreaker, CircuitBreakerError, mercadopago_breaker
from .notifications import Notification, PaymentNotification

logger = get_logger(__name__)


class MercadoPagoClient:
    """
    Thin async client over the provider's read API.

    Owns one httpx.AsyncClient; call ``aclose()`` at shutdown.
    """

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = "https://api.mercadopago.com",
        timeout_seconds: float = 5.0,
        breaker: CircuitBreaker = mercadopago_breaker,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._access_token = access_token
        self._breaker = breaker
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Authorization": f"Bearer {access_token}"},
            transport=transport,
        )

    @classmethod
    def from_settings(cls) -> "MercadoPagoClient":
        return cls(
            settings.mercadopago_access_token,
            base_url=settings.mercadopago_api_base_url,
            timeout_seconds=settings.mercadopago_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._access_token)

    async def get_payment(self, payment_id: str) -> dict[str, Any]:
        """
        Fetch a payment by provider id.

        Raises:
            ProviderNotConfiguredError: No access token
            ProviderUnavailableError: Breaker open, transport error, timeout or non-200
        """
        if not self._access_token:
            raise ProviderNotConfiguredError("mercadopago")

        try:
            async with self._breaker.call():
                try:
                    response = await self._http.get(f"/v1/payments/{payment_id}")
                except httpx.TimeoutException as e:
                    raise ProviderUnavailableError(
                        "Timed out fetching provider payment", payment_id=payment_id
                    ) from e
                except httpx.HTTPError as e:
                    raise ProviderUnavailableError(
                        "Transport error fetching provider payment",
                        payment_id=payment_id,
                        error=str(e),
                    ) from e

                if response.status_code != 200:
                    raise ProviderUnavailableError(
                        f"Provider returned HTTP {response.status_code}",
                        payment_id=payment_id,
                        status_code=response.status_code,
                    )
                return response.json()
        except CircuitBreakerError as e:
            raise ProviderUnavailableError(
                "Provider circuit breaker open",
                retry_after=e.retry_after,
                payment_id=payment_id,
            ) from e

    async def aclose(self) -> None:
        await self._http.aclose()


@dataclass(frozen=True)
class ResolvedPayment:
    """Authoritative provider view of one payment."""

    payment_id: str
    status: str | None
    order_id: str | None = None
    status_detail: str | None = None
    transaction_amount: Decimal | None = None
    currency: str | None = None


class PaymentStatusResolver:
    """
    Turns a parsed notification into a ResolvedPayment.

    Non-payment notifications resolve to None and are acknowledged upstream.
    """

    def __init__(self, client: MercadoPagoClient):
        self._client = client

    async def resolve(self, notification: Notification) -> ResolvedPayment | None:
        if not isinstance(notification, PaymentNotification):
            return None

        payment = await self._client.get_payment(notification.payment_id)

        metadata = payment.get("metadata")
        metadata_order_id = metadata.get("order_id") if isinstance(metadata, dict) else None

        provider_reference = payment.get("external_reference")
        notification_reference = notification.external_reference
        if (
            notification_reference
            and provider_reference
            and str(provider_reference) != notification_reference
        ):
            # The body reference is not signed; the provider's own record wins
            logger.warning(
                "Notification order reference disagrees with provider",
                payment_id=notification.payment_id,
                notification_reference=notification_reference,
                provider_reference=provider_reference,
            )
            notification_reference = None

        # Order reference precedence: notification, payment, payment metadata
        order_id = notification_reference or provider_reference or metadata_order_id

        amount = payment.get("transaction_amount")
        resolved = ResolvedPayment(
            payment_id=notification.payment_id,
            status=payment.get("status"),
            order_id=str(order_id) if order_id else None,
            status_detail=payment.get("status_detail"),
            transaction_amount=to_decimal(amount) if amount is not None else None,
            currency=payment.get("currency_id"),
        )

        logger.info(
            "Provider payment resolved",
            payment_id=resolved.payment_id,
            status=resolved.status,
            status_detail=resolved.status_detail,
            order_id=resolved.order_id,
        )
        return resolved
