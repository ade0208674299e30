"""
Configuration module: Settings, logging, status types.
"""

from shared.config.settings import settings, get_settings, Settings
from shared.config.logging import get_logger, setup_logging
from shared.config.constants import (
    OrderStatus,
    PaymentStatus,
    CommissionStatus,
    InfluencerPaymentStatus,
    InfluencerPaymentMethod,
    Jobs,
)

__all__ = [
    # settings
    "settings",
    "get_settings",
    "Settings",
    # logging
    "get_logger",
    "setup_logging",
    # status types
    "OrderStatus",
    "PaymentStatus",
    "CommissionStatus",
    "InfluencerPaymentStatus",
    "InfluencerPaymentMethod",
    "Jobs",
]
