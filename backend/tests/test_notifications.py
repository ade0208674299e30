"""
Tests for notification body classification.
"""

from rest_api.services.payments.notifications import (
    MerchantOrderNotification,
    PaymentNotification,
    UnknownNotification,
    parse_notification,
)


class TestParseNotification:

    def test_feed_v2_payment(self):
        notification = parse_notification(
            {"type": "payment", "action": "payment.updated", "data": {"id": 123}}
        )
        assert isinstance(notification, PaymentNotification)
        assert notification.payment_id == "123"
        assert notification.action == "payment.updated"

    def test_external_reference_in_data(self):
        notification = parse_notification(
            {"type": "payment", "data": {"id": "MP1", "external_reference": "order-1"}}
        )
        assert notification.external_reference == "order-1"

    def test_legacy_topic_with_resource(self):
        notification = parse_notification({"topic": "payment", "resource": "456"})
        assert isinstance(notification, PaymentNotification)
        assert notification.payment_id == "456"

    def test_type_and_id_from_query(self):
        notification = parse_notification({}, {"type": "payment", "data.id": "789"})
        assert isinstance(notification, PaymentNotification)
        assert notification.payment_id == "789"

    def test_payment_without_id_is_unknown(self):
        notification = parse_notification({"type": "payment", "data": {}})
        assert isinstance(notification, UnknownNotification)
        assert notification.type == "payment"

    def test_merchant_order(self):
        notification = parse_notification(
            {
                "topic": "merchant_order",
                "resource": "https://api.mercadolibre.com/merchant_orders/9988",
            }
        )
        assert isinstance(notification, MerchantOrderNotification)
        assert notification.merchant_order_id == "9988"

    def test_merchant_order_webhook_topic(self):
        notification = parse_notification({"topic": "topic_merchant_order_wh", "data": {"id": "5"}})
        assert notification.kind == "merchant_order"
        assert notification.merchant_order_id == "5"

    def test_unsupported_type(self):
        notification = parse_notification({"type": "subscription_preapproval", "data": {"id": "1"}})
        assert isinstance(notification, UnknownNotification)
        assert notification.type == "subscription_preapproval"

    def test_non_dict_body(self):
        notification = parse_notification(["not", "a", "dict"])
        assert notification.kind == "unknown"
        assert notification.type is None
