"""
Centralized status types and transition tables.

Every status column is a closed ``str`` Enum; transitions between states are
looked up in an explicit table so that adding a state forces a table update.

Usage:
    from shared.config.constants import OrderStatus, can_transition_order

    if can_transition_order(order.status, OrderStatus.PAID):
        ...
"""

from enum import Enum
from typing import Final


# =============================================================================
# Entity Status Types
# =============================================================================


class OrderStatus(str, Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Internal Payment status (mirrors the provider's terminal states)."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class CommissionStatus(str, Enum):
    """Influencer commission status."""

    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class InfluencerPaymentStatus(str, Enum):
    """Aggregate influencer payable status."""

    PENDING = "pending"
    INVOICE_UPLOADED = "invoice_uploaded"
    INVOICE_REJECTED = "invoice_rejected"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class InfluencerPaymentMethod(str, Enum):
    """How an influencer gets paid."""

    TRANSFER = "transfer"
    MERCADOPAGO = "mercadopago"


class CommissionType(str, Enum):
    """Commission terms configured on a discount code."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


# =============================================================================
# Transition Tables
# =============================================================================


PAYMENT_TRANSITIONS: Final[dict[PaymentStatus, frozenset[PaymentStatus]]] = {
    PaymentStatus.PENDING: frozenset({
        PaymentStatus.APPROVED,
        PaymentStatus.REJECTED,
        PaymentStatus.CANCELLED,
        PaymentStatus.REFUNDED,
    }),
    # Chargebacks and refunds arrive after approval
    PaymentStatus.APPROVED: frozenset({
        PaymentStatus.REJECTED,
        PaymentStatus.CANCELLED,
        PaymentStatus.REFUNDED,
    }),
    PaymentStatus.REJECTED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


ORDER_TRANSITIONS: Final[dict[OrderStatus, frozenset[OrderStatus]]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


# Transitions that webhook reconciliation must never apply on its own
WEBHOOK_FORBIDDEN_ORDER_TRANSITIONS: Final[frozenset[tuple[OrderStatus, OrderStatus]]] = frozenset({
    (OrderStatus.PAID, OrderStatus.CANCELLED),
})


INFLUENCER_PAYMENT_TRANSITIONS: Final[
    dict[InfluencerPaymentStatus, frozenset[InfluencerPaymentStatus]]
] = {
    InfluencerPaymentStatus.PENDING: frozenset({
        InfluencerPaymentStatus.INVOICE_UPLOADED,
        InfluencerPaymentStatus.CANCELLED,
    }),
    InfluencerPaymentStatus.INVOICE_UPLOADED: frozenset({
        InfluencerPaymentStatus.APPROVED,
        InfluencerPaymentStatus.INVOICE_REJECTED,
        InfluencerPaymentStatus.CANCELLED,
    }),
    InfluencerPaymentStatus.INVOICE_REJECTED: frozenset({
        InfluencerPaymentStatus.INVOICE_UPLOADED,
        InfluencerPaymentStatus.CANCELLED,
    }),
    InfluencerPaymentStatus.APPROVED: frozenset({
        InfluencerPaymentStatus.PAID,
        InfluencerPaymentStatus.CANCELLED,
    }),
    InfluencerPaymentStatus.PAID: frozenset(),
    InfluencerPaymentStatus.CANCELLED: frozenset(),
}


def can_transition_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    """True if a Payment may move from ``current`` to ``target``."""
    return target in PAYMENT_TRANSITIONS[PaymentStatus(current)]


def can_transition_order(
    current: OrderStatus,
    target: OrderStatus,
    *,
    from_webhook: bool = False,
) -> bool:
    """
    True if an Order may move from ``current`` to ``target``.

    With ``from_webhook=True`` the webhook-only restrictions
    (WEBHOOK_FORBIDDEN_ORDER_TRANSITIONS) also apply.
    """
    current, target = OrderStatus(current), OrderStatus(target)
    if from_webhook and (current, target) in WEBHOOK_FORBIDDEN_ORDER_TRANSITIONS:
        return False
    return target in ORDER_TRANSITIONS[current]


def can_transition_influencer_payment(
    current: InfluencerPaymentStatus,
    target: InfluencerPaymentStatus,
) -> bool:
    """True if an InfluencerPayment may move from ``current`` to ``target``."""
    return target in INFLUENCER_PAYMENT_TRANSITIONS[InfluencerPaymentStatus(current)]


# =============================================================================
# Provider Status Mapping
# =============================================================================


# provider status -> (Payment target, Order target or None)
PROVIDER_STATUS_MAP: Final[dict[str, tuple[PaymentStatus, OrderStatus | None]]] = {
    "approved": (PaymentStatus.APPROVED, OrderStatus.PAID),
    "rejected": (PaymentStatus.REJECTED, OrderStatus.CANCELLED),
    "cancelled": (PaymentStatus.CANCELLED, OrderStatus.CANCELLED),
    "refunded": (PaymentStatus.REFUNDED, OrderStatus.CANCELLED),
    "in_process": (PaymentStatus.PENDING, None),
    "pending": (PaymentStatus.PENDING, None),
}


def map_provider_status(provider_status: str | None) -> tuple[PaymentStatus, OrderStatus | None]:
    """Map a provider payment status to internal targets; unknown → pending, no order change."""
    return PROVIDER_STATUS_MAP.get(provider_status or "", (PaymentStatus.PENDING, None))


# =============================================================================
# Job Queue Names
# =============================================================================


class Jobs:
    """Queue names used by the worker."""

    DISCOUNT_CODE_SETTLE: Final[str] = "discount-code.settle"
    DISCOUNT_CODE_SETTLE_SINGLETON_SECONDS: Final[int] = 60 * 60 * 24
