"""
Influencer Models: Influencer, DiscountCode, Commission, InfluencerPayment,
DiscountCodeSettlement.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import (
    CommissionStatus,
    CommissionType,
    InfluencerPaymentMethod,
    InfluencerPaymentStatus,
)

from .base import Base, TimestampMixin, id_column, status_enum, utcnow

if TYPE_CHECKING:
    from .order import Order


class Influencer(TimestampMixin, Base):
    """
    A partner who promotes discount codes.
    Banking details are copied onto each InfluencerPayment at settlement.
    """

    __tablename__ = "influencer"

    id: Mapped[str] = id_column()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    payment_method: Mapped[Optional[InfluencerPaymentMethod]] = mapped_column(
        status_enum(InfluencerPaymentMethod, "influencer_payment_method"), nullable=True
    )
    account_number: Mapped[Optional[str]] = mapped_column(String(64))
    cvu: Mapped[Optional[str]] = mapped_column(String(32))
    bank_name: Mapped[Optional[str]] = mapped_column(String(128))
    mercadopago_email: Mapped[Optional[str]] = mapped_column(String(255))

    discount_codes: Mapped[list["DiscountCode"]] = relationship(back_populates="influencer")

    def __repr__(self) -> str:
        return f"<Influencer(id={self.id}, name={self.name})>"


class DiscountCode(TimestampMixin, Base):
    """
    A promotional code, optionally attributed to an influencer.

    Created active; deactivated manually or by settlement once its validity
    window closes. Settlement never reactivates a code.
    """

    __tablename__ = "discount_code"

    id: Mapped[str] = id_column()
    code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    discount_type: Mapped[str] = mapped_column(String(16), nullable=False, default="percentage")
    discount_value: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    commission_type: Mapped[Optional[CommissionType]] = mapped_column(
        status_enum(CommissionType, "commission_type"), nullable=True
    )
    commission_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    valid_from: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    usage_limit: Mapped[Optional[int]] = mapped_column(Integer)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    influencer_id: Mapped[Optional[str]] = mapped_column(
        String(32), ForeignKey("influencer.id"), nullable=True, index=True
    )

    influencer: Mapped[Optional["Influencer"]] = relationship(back_populates="discount_codes")
    commissions: Mapped[list["Commission"]] = relationship(back_populates="discount_code")
    settlement: Mapped[Optional["DiscountCodeSettlement"]] = relationship(
        back_populates="discount_code"
    )

    def __repr__(self) -> str:
        return f"<DiscountCode(id={self.id}, code={self.code}, active={self.is_active})>"

    __table_args__ = (
        # Expiration scan: active codes ordered by valid_until
        Index("ix_discount_code_active_valid_until", "is_active", "valid_until"),
    )


class Commission(TimestampMixin, Base):
    """
    Commission earned by an influencer on one paid order.

    ``influencer_payment_id`` is set when settlement aggregates the row into
    an InfluencerPayment; a linked commission is never aggregated again.
    """

    __tablename__ = "commission"

    id: Mapped[str] = id_column()
    order_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("app_order.id"), nullable=False, unique=True
    )
    discount_code_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("discount_code.id"), nullable=False, index=True
    )
    influencer_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("influencer.id"), nullable=False, index=True
    )
    order_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[CommissionStatus] = mapped_column(
        status_enum(CommissionStatus, "commission_status"),
        nullable=False,
        default=CommissionStatus.PENDING,
        index=True,
    )
    influencer_payment_id: Mapped[Optional[str]] = mapped_column(
        String(32), ForeignKey("influencer_payment.id"), nullable=True, index=True
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    order: Mapped["Order"] = relationship(back_populates="commission")
    discount_code: Mapped["DiscountCode"] = relationship(back_populates="commissions")
    influencer: Mapped["Influencer"] = relationship()
    influencer_payment: Mapped[Optional["InfluencerPayment"]] = relationship(
        back_populates="commissions"
    )

    def __repr__(self) -> str:
        return (
            f"<Commission(id={self.id}, order={self.order_id}, "
            f"amount={self.commission_amount}, status={self.status})>"
        )

    __table_args__ = (
        CheckConstraint("commission_amount >= 0", name="chk_commission_amount_non_negative"),
        Index("ix_commission_code_status", "discount_code_id", "status"),
    )


class InfluencerPayment(TimestampMixin, Base):
    """
    A payable owed to an influencer, created by settlement in ``pending``.
    Lifecycle transitions are listed in INFLUENCER_PAYMENT_TRANSITIONS.
    """

    __tablename__ = "influencer_payment"

    id: Mapped[str] = id_column()
    influencer_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("influencer.id"), nullable=False, index=True
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ARS")
    payment_method: Mapped[InfluencerPaymentMethod] = mapped_column(
        status_enum(InfluencerPaymentMethod, "influencer_payment_method"),
        nullable=False,
        default=InfluencerPaymentMethod.TRANSFER,
    )
    status: Mapped[InfluencerPaymentStatus] = mapped_column(
        status_enum(InfluencerPaymentStatus, "influencer_payment_status"),
        nullable=False,
        default=InfluencerPaymentStatus.PENDING,
        index=True,
    )
    account_number: Mapped[Optional[str]] = mapped_column(String(64))
    cvu: Mapped[Optional[str]] = mapped_column(String(32))
    bank_name: Mapped[Optional[str]] = mapped_column(String(128))
    mercadopago_email: Mapped[Optional[str]] = mapped_column(String(255))
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    influencer: Mapped["Influencer"] = relationship()
    commissions: Mapped[list["Commission"]] = relationship(back_populates="influencer_payment")

    def __repr__(self) -> str:
        return (
            f"<InfluencerPayment(id={self.id}, influencer={self.influencer_id}, "
            f"total={self.total_amount}, status={self.status})>"
        )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="chk_influencer_payment_non_negative"),
    )


class DiscountCodeSettlement(Base):
    """
    One row per settled discount code. Its existence means the code has been
    processed; the UNIQUE constraint rejects a concurrent second settlement.
    """

    __tablename__ = "discount_code_settlement"

    id: Mapped[str] = id_column()
    discount_code_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("discount_code.id"), nullable=False, unique=True
    )
    influencer_id: Mapped[Optional[str]] = mapped_column(
        String(32), ForeignKey("influencer.id"), nullable=True, index=True
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ARS")
    commissions_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    influencer_payment_id: Mapped[Optional[str]] = mapped_column(
        String(32), ForeignKey("influencer_payment.id"), nullable=True
    )
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    discount_code: Mapped["DiscountCode"] = relationship(back_populates="settlement")

    def __repr__(self) -> str:
        return (
            f"<DiscountCodeSettlement(code={self.discount_code_id}, "
            f"total={self.total_amount}, count={self.commissions_count})>"
        )
