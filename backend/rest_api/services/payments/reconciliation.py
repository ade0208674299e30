"""
Webhook reconciliation state machine.

Applies a resolved provider payment status to the local Payment and Order
rows. Deliveries are at-least-once and unordered, so every step is written
to be safely repeatable:

1. Locate the Payment (row-locked): the order's most recent payment when the
   notification carries an order reference, else by provider payment id.
2. Map provider status to (Payment target, Order target or None).
3. Idempotency: nothing to do when both rows already match.
4. Guards: a paid order is never cancelled by a webhook; any other
   transition outside the tables is refused and logged.
5. Apply payment first, then order; create the commission when the order
   becomes paid. One commit per notification.

Usage:
    engine = ReconciliationEngine()
    result = engine.reconcile(db, resolved)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import (
    OrderStatus,
    PaymentStatus,
    can_transition_order,
    can_transition_payment,
    map_provider_status,
)
from shared.config.logging import webhook_logger as logger
from shared.infrastructure.db import safe_commit
from rest_api.models import Order, Payment
from rest_api.services.domain.commission_service import CommissionService

from .mercadopago import ResolvedPayment


class ReconciliationOutcome(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    DOWNGRADE_BLOCKED = "downgrade_blocked"
    TRANSITION_REFUSED = "transition_refused"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: ReconciliationOutcome
    provider_payment_id: str
    payment_id: str | None = None
    order_id: str | None = None
    payment_status: PaymentStatus | None = None
    order_status: OrderStatus | None = None
    commission_id: str | None = None


class ReconciliationEngine:
    """Maps resolved provider payments onto local Payment/Order state."""

    def locate_payment(self, db: Session, resolved: ResolvedPayment) -> Payment | None:
        """Find and row-lock the Payment a notification refers to."""
        payment = None

        if resolved.order_id:
            payment = db.scalar(
                select(Payment)
                .where(Payment.order_id == resolved.order_id)
                .order_by(Payment.created_at.desc())
                .limit(1)
                .with_for_update()
            )
            if payment is None:
                logger.warning(
                    "Order not found or has no payments",
                    order_id=resolved.order_id,
                    provider_payment_id=resolved.payment_id,
                )

        # Retried notifications may arrive without the order reference
        if payment is None:
            payment = db.scalar(
                select(Payment)
                .where(Payment.mercadopago_payment_id == resolved.payment_id)
                .order_by(Payment.created_at.desc())
                .limit(1)
                .with_for_update()
            )

        return payment

    def reconcile(self, db: Session, resolved: ResolvedPayment) -> ReconciliationResult:
        payment = self.locate_payment(db, resolved)
        if payment is None:
            logger.error(
                "Payment record not found, status cannot be updated",
                provider_payment_id=resolved.payment_id,
                order_id=resolved.order_id,
            )
            return ReconciliationResult(
                outcome=ReconciliationOutcome.NOT_FOUND,
                provider_payment_id=resolved.payment_id,
                order_id=resolved.order_id,
            )

        order = db.scalar(select(Order).where(Order.id == payment.order_id).with_for_update())
        if order is None:
            # FK makes this unreachable on Postgres; treat like a missing payment
            logger.error("Payment has no order", payment_id=payment.id)
            return ReconciliationResult(
                outcome=ReconciliationOutcome.NOT_FOUND,
                provider_payment_id=resolved.payment_id,
                payment_id=payment.id,
            )

        current_payment = PaymentStatus(payment.status)
        current_order = OrderStatus(order.status)
        target_payment, target_order = map_provider_status(resolved.status)

        logger.info(
            "Status mapping resolved",
            payment_id=payment.id,
            order_id=order.id,
            provider_status=resolved.status,
            current_payment_status=current_payment.value,
            target_payment_status=target_payment.value,
            current_order_status=current_order.value,
            target_order_status=target_order.value if target_order else None,
        )

        if current_payment == target_payment and (
            target_order is None or current_order == target_order
        ):
            logger.info(
                "No state change needed",
                payment_id=payment.id,
                payment_status=current_payment.value,
                order_status=current_order.value,
            )
            return self._result(ReconciliationOutcome.UNCHANGED, resolved, payment, order)

        changed = False
        downgrade_blocked = False
        payment_refused = False
        commission_id = None

        # Payment first: it is the narrower record
        if current_payment != target_payment:
            if can_transition_payment(current_payment, target_payment):
                payment.status = target_payment
                changed = True
            else:
                payment_refused = True
                logger.warning(
                    "Payment transition refused",
                    payment_id=payment.id,
                    from_status=current_payment.value,
                    to_status=target_payment.value,
                )

        # The order only follows a payment status the table accepted
        if not payment_refused and target_order is not None and current_order != target_order:
            if current_order == OrderStatus.PAID and target_order == OrderStatus.CANCELLED:
                downgrade_blocked = True
                logger.warning(
                    "Blocked paid to cancelled downgrade",
                    order_id=order.id,
                    payment_id=payment.id,
                    provider_status=resolved.status,
                )
            elif can_transition_order(current_order, target_order, from_webhook=True):
                order.status = target_order
                changed = True
                logger.info(
                    "Order status updated",
                    order_id=order.id,
                    from_status=current_order.value,
                    to_status=target_order.value,
                )
                if target_order == OrderStatus.PAID:
                    commission = CommissionService(db).create_from_order(order)
                    commission_id = commission.id if commission else None
            else:
                logger.warning(
                    "Order transition refused",
                    order_id=order.id,
                    from_status=current_order.value,
                    to_status=target_order.value,
                )

        if changed and payment.mercadopago_payment_id != resolved.payment_id:
            payment.mercadopago_payment_id = resolved.payment_id

        if changed:
            safe_commit(db)
            logger.info(
                "Webhook reconciled",
                provider_payment_id=resolved.payment_id,
                payment_id=payment.id,
                order_id=order.id,
                payment_status=PaymentStatus(payment.status).value,
                order_status=OrderStatus(order.status).value,
            )

        if downgrade_blocked:
            outcome = ReconciliationOutcome.DOWNGRADE_BLOCKED
        elif changed:
            outcome = ReconciliationOutcome.UPDATED
        else:
            outcome = ReconciliationOutcome.TRANSITION_REFUSED

        return self._result(outcome, resolved, payment, order, commission_id)

    @staticmethod
    def _result(
        outcome: ReconciliationOutcome,
        resolved: ResolvedPayment,
        payment: Payment,
        order: Order,
        commission_id: str | None = None,
    ) -> ReconciliationResult:
        return ReconciliationResult(
            outcome=outcome,
            provider_payment_id=resolved.payment_id,
            payment_id=payment.id,
            order_id=order.id,
            payment_status=PaymentStatus(payment.status),
            order_status=OrderStatus(order.status),
            commission_id=commission_id,
        )
