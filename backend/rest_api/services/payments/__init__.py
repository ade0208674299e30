"""
Payment Services - provider notifications and reconciliation.

Provides:
- Notification parsing (tagged union over notification types)
- Mercado Pago read client and status resolution
- Reconciliation state machine for Payment/Order
- Circuit breaker for provider calls
"""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
    mercadopago_breaker,
    get_all_breaker_stats,
)
from .notifications import (
    MerchantOrderNotification,
    Notification,
    PaymentNotification,
    UnknownNotification,
    parse_notification,
)
from .mercadopago import (
    MercadoPagoClient,
    PaymentStatusResolver,
    ResolvedPayment,
)
from .reconciliation import (
    ReconciliationEngine,
    ReconciliationOutcome,
    ReconciliationResult,
)

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitState",
    "mercadopago_breaker",
    "get_all_breaker_stats",
    # Notifications
    "Notification",
    "PaymentNotification",
    "MerchantOrderNotification",
    "UnknownNotification",
    "parse_notification",
    # Provider
    "MercadoPagoClient",
    "PaymentStatusResolver",
    "ResolvedPayment",
    # Reconciliation
    "ReconciliationEngine",
    "ReconciliationOutcome",
    "ReconciliationResult",
]
