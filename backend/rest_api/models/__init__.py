"""
SQLAlchemy ORM Models Package.

All models are organized into domain-specific modules:
- base: Base class, TimestampMixin, column helpers
- order: Order, Payment
- influencer: Influencer, DiscountCode, Commission, InfluencerPayment,
  DiscountCodeSettlement
"""

# Base classes
from .base import Base, TimestampMixin, as_utc, new_id, utcnow

# Orders and checkout payments
from .order import Order, Payment

# Influencer program
from .influencer import (
    Commission,
    DiscountCode,
    DiscountCodeSettlement,
    Influencer,
    InfluencerPayment,
)

__all__ = [
    # base
    "Base",
    "TimestampMixin",
    "as_utc",
    "new_id",
    "utcnow",
    # order
    "Order",
    "Payment",
    # influencer
    "Influencer",
    "DiscountCode",
    "Commission",
    "InfluencerPayment",
    "DiscountCodeSettlement",
]
