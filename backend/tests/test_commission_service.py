"""
Tests for CommissionService.
"""

from decimal import Decimal

import pytest

from rest_api.services.domain import CommissionService, DiscountCodeNotFoundError
from rest_api.services.domain.commission_service import commission_rate
from shared.config.constants import CommissionStatus


class TestCommissionRate:

    def test_percentage_of_subtotal(self):
        assert commission_rate(Decimal("15"), Decimal("150")) == Decimal("10")

    def test_zero_subtotal(self):
        assert commission_rate(Decimal("5"), Decimal("0")) == Decimal("0")


class TestCreateFromOrder:

    def test_creates_pending_commission(
        self, db_session, make_order, make_influencer, make_discount_code
    ):
        influencer = make_influencer()
        code = make_discount_code(influencer=influencer)
        order, _ = make_order(subtotal="333.33", discount="33.33", discount_code=code)

        commission = CommissionService(db_session).create_from_order(order)

        assert commission.status == CommissionStatus.PENDING
        assert commission.influencer_id == influencer.id
        assert commission.discount_code_id == code.id
        assert commission.order_total == Decimal("300.00")
        assert commission.commission_amount == Decimal("33.33")
        assert commission.commission_rate == Decimal("10.00")

    def test_existing_commission_is_returned(
        self, db_session, make_order, make_influencer, make_discount_code
    ):
        code = make_discount_code(influencer=make_influencer())
        order, _ = make_order(discount="10.00", discount_code=code)
        service = CommissionService(db_session)

        first = service.create_from_order(order)
        second = service.create_from_order(order)

        assert second.id == first.id

    def test_no_discount_code(self, db_session, make_order):
        order, _ = make_order()
        assert CommissionService(db_session).create_from_order(order) is None

    def test_code_without_influencer(self, db_session, make_order, make_discount_code):
        code = make_discount_code()
        order, _ = make_order(discount="10.00", discount_code=code)
        assert CommissionService(db_session).create_from_order(order) is None

    def test_missing_discount_code(self, db_session, make_order):
        order, _ = make_order()
        order.discount_code_id = "does-not-exist"

        with pytest.raises(DiscountCodeNotFoundError):
            CommissionService(db_session).create_from_order(order)
