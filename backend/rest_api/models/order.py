"""
Order Models: Order, Payment.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import OrderStatus, PaymentStatus

from .base import Base, TimestampMixin, id_column, status_enum, utcnow

if TYPE_CHECKING:
    from .influencer import Commission, DiscountCode


class Order(TimestampMixin, Base):
    """
    A storefront order.

    Table named "app_order" because ORDER is a reserved SQL keyword.
    Status moves only through ORDER_TRANSITIONS; webhook reconciliation never
    takes a paid order back to cancelled.
    """

    __tablename__ = "app_order"

    id: Mapped[str] = id_column()
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    shipping_cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ARS")
    status: Mapped[OrderStatus] = mapped_column(
        status_enum(OrderStatus, "order_status"),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
    )
    discount_code_id: Mapped[Optional[str]] = mapped_column(
        String(32), ForeignKey("discount_code.id"), nullable=True, index=True
    )

    # Relationships
    payments: Mapped[list["Payment"]] = relationship(
        back_populates="order", order_by="Payment.created_at"
    )
    discount_code: Mapped[Optional["DiscountCode"]] = relationship()
    commission: Mapped[Optional["Commission"]] = relationship(back_populates="order")

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, total={self.total}, status={self.status})>"

    __table_args__ = (
        CheckConstraint("total >= 0", name="chk_order_total_non_negative"),
        CheckConstraint("discount >= 0", name="chk_order_discount_non_negative"),
    )


class Payment(Base):
    """
    A checkout attempt for an order.

    An order can have several payments (retries); the most recent one is the
    authoritative record that webhooks reconcile against.
    """

    __tablename__ = "payment"

    id: Mapped[str] = id_column()
    order_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("app_order.id"), nullable=False, index=True
    )
    status: Mapped[PaymentStatus] = mapped_column(
        status_enum(PaymentStatus, "payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True,
    )
    # Provider payment id, set by the first reconciled notification
    mercadopago_payment_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    mercadopago_preference_id: Mapped[Optional[str]] = mapped_column(String(128))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    # Relationships
    order: Mapped["Order"] = relationship(back_populates="payments")

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, order={self.order_id}, "
            f"mp_id={self.mercadopago_payment_id}, status={self.status})>"
        )

    __table_args__ = (
        Index("ix_payment_order_created", "order_id", "created_at"),
    )
