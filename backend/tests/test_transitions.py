"""
Tests for status transition tables and provider status mapping.
"""

import pytest

from shared.config.constants import (
    InfluencerPaymentStatus,
    OrderStatus,
    PaymentStatus,
    can_transition_influencer_payment,
    can_transition_order,
    can_transition_payment,
    map_provider_status,
)


class TestProviderStatusMapping:

    @pytest.mark.parametrize(
        "provider_status, expected",
        [
            ("approved", (PaymentStatus.APPROVED, OrderStatus.PAID)),
            ("rejected", (PaymentStatus.REJECTED, OrderStatus.CANCELLED)),
            ("cancelled", (PaymentStatus.CANCELLED, OrderStatus.CANCELLED)),
            ("refunded", (PaymentStatus.REFUNDED, OrderStatus.CANCELLED)),
            ("in_process", (PaymentStatus.PENDING, None)),
            ("pending", (PaymentStatus.PENDING, None)),
            ("charged_back", (PaymentStatus.PENDING, None)),
            (None, (PaymentStatus.PENDING, None)),
        ],
    )
    def test_mapping(self, provider_status, expected):
        assert map_provider_status(provider_status) == expected


class TestPaymentTransitions:

    def test_pending_can_resolve(self):
        for target in (PaymentStatus.APPROVED, PaymentStatus.REJECTED, PaymentStatus.REFUNDED):
            assert can_transition_payment(PaymentStatus.PENDING, target)

    def test_approved_can_be_reversed(self):
        assert can_transition_payment(PaymentStatus.APPROVED, PaymentStatus.REJECTED)
        assert can_transition_payment(PaymentStatus.APPROVED, PaymentStatus.REFUNDED)

    def test_approved_never_returns_to_pending(self):
        assert not can_transition_payment(PaymentStatus.APPROVED, PaymentStatus.PENDING)

    def test_terminal_states(self):
        for status in (PaymentStatus.REJECTED, PaymentStatus.CANCELLED, PaymentStatus.REFUNDED):
            assert not can_transition_payment(status, PaymentStatus.APPROVED)

    def test_accepts_raw_values(self):
        assert can_transition_payment("pending", "approved")


class TestOrderTransitions:

    def test_pending_to_paid(self):
        assert can_transition_order(OrderStatus.PENDING, OrderStatus.PAID)

    def test_paid_to_cancelled_only_outside_webhooks(self):
        assert can_transition_order(OrderStatus.PAID, OrderStatus.CANCELLED)
        assert not can_transition_order(
            OrderStatus.PAID, OrderStatus.CANCELLED, from_webhook=True
        )

    def test_cancelled_is_terminal(self):
        for target in OrderStatus:
            assert not can_transition_order(OrderStatus.CANCELLED, target)

    def test_delivered_is_terminal(self):
        for target in OrderStatus:
            assert not can_transition_order(OrderStatus.DELIVERED, target)


class TestInfluencerPaymentTransitions:

    def test_invoice_flow(self):
        path = [
            InfluencerPaymentStatus.PENDING,
            InfluencerPaymentStatus.INVOICE_UPLOADED,
            InfluencerPaymentStatus.APPROVED,
            InfluencerPaymentStatus.PAID,
        ]
        for current, target in zip(path, path[1:]):
            assert can_transition_influencer_payment(current, target)

    def test_rejected_invoice_can_be_reuploaded(self):
        assert can_transition_influencer_payment(
            InfluencerPaymentStatus.INVOICE_REJECTED,
            InfluencerPaymentStatus.INVOICE_UPLOADED,
        )

    def test_paid_is_terminal(self):
        assert not can_transition_influencer_payment(
            InfluencerPaymentStatus.PAID, InfluencerPaymentStatus.CANCELLED
        )
