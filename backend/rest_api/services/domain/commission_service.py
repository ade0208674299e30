"""
Commission Domain Service.

Creates the influencer commission for an order once it is paid. Runs inside
the caller's transaction and never commits.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import CommissionStatus
from shared.config.logging import get_logger
from shared.utils.money import ZERO, quantize_money, to_decimal
from rest_api.models import Commission, DiscountCode, Order

logger = get_logger(__name__)


class DiscountCodeNotFoundError(Exception):
    """Order references a discount code that does not exist."""

    def __init__(self, discount_code_id: str):
        self.discount_code_id = discount_code_id
        super().__init__(f"Discount code {discount_code_id} not found")


def commission_rate(discount: Decimal, subtotal: Decimal) -> Decimal:
    """Discount as a percentage of the subtotal; 0 when the subtotal is 0."""
    if subtotal <= ZERO:
        return ZERO
    return discount / subtotal * 100


class CommissionService:
    """
    Domain service for Commission creation.

    The commission mirrors the discount the customer received on the order.
    """

    def __init__(self, db: Session):
        self._db = db

    def get_for_order(self, order_id: str) -> Commission | None:
        return self._db.scalar(select(Commission).where(Commission.order_id == order_id))

    def create_from_order(self, order: Order) -> Commission | None:
        """
        Create the commission for a paid order.

        Returns the existing commission unchanged if the order already has
        one, and None when the order has no discount code or the code is not
        attributed to an influencer.
        """
        if not order.discount_code_id:
            return None

        existing = self.get_for_order(order.id)
        if existing is not None:
            return existing

        discount_code = self._db.get(DiscountCode, order.discount_code_id)
        if discount_code is None:
            raise DiscountCodeNotFoundError(order.discount_code_id)

        if not discount_code.influencer_id:
            logger.debug(
                "Discount code has no influencer, no commission",
                order_id=order.id,
                discount_code_id=discount_code.id,
            )
            return None

        discount = to_decimal(order.discount)
        subtotal = to_decimal(order.subtotal)

        commission = Commission(
            order_id=order.id,
            discount_code_id=discount_code.id,
            influencer_id=discount_code.influencer_id,
            order_total=quantize_money(to_decimal(order.total)),
            discount_amount=quantize_money(discount),
            commission_rate=quantize_money(commission_rate(discount, subtotal)),
            commission_amount=quantize_money(discount),
            status=CommissionStatus.PENDING,
        )
        self._db.add(commission)
        self._db.flush()

        logger.info(
            "Commission created",
            commission_id=commission.id,
            order_id=order.id,
            discount_code_id=discount_code.id,
            influencer_id=discount_code.influencer_id,
            amount=str(commission.commission_amount),
        )
        return commission
