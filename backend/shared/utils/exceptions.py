"""
Centralized exceptions for the reconciliation and settlement core.

Only genuine processing failures are exceptions. Rejected signatures,
ignored notifications, idempotent no-ops and policy guards are reported as
result values so the caller can acknowledge them.

Usage:
    from shared.utils.exceptions import ProviderUnavailableError

    raise ProviderUnavailableError("Provider returned HTTP 502", payment_id="MP1")
"""

from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class ReconciliationError(Exception):
    """
    Base exception with automatic logging.

    Raised errors propagate to the transport layer, which answers 500 to the
    provider (webhook) or fails the job (worker) so the delivery is retried.
    """

    log_level = "error"

    def __init__(self, detail: str, **log_context: Any):
        self.detail = detail
        self.context = log_context

        log_fn = getattr(logger, self.log_level, logger.error)
        log_fn(detail, error_type=type(self).__name__, **log_context)

        super().__init__(detail)


# =============================================================================
# Provider Errors
# =============================================================================


class ProviderUnavailableError(ReconciliationError):
    """
    Transient provider or transport failure: non-200 response, timeout,
    connection error or an open circuit breaker.
    """

    log_level = "warning"

    def __init__(
        self,
        detail: str,
        *,
        retry_after: float | None = None,
        **log_context: Any,
    ):
        self.retry_after = retry_after
        super().__init__(detail, retry_after=retry_after, **log_context)


class ProviderNotConfiguredError(ProviderUnavailableError):
    """The provider access token is missing."""

    log_level = "error"

    def __init__(self, provider: str = "mercadopago"):
        super().__init__(f"{provider} is not configured", provider=provider)
