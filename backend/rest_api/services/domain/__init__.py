"""
Domain Services - application layer.

Services hold business rules and take the SQLAlchemy session in their
constructor. They flush but never commit; the caller owns the transaction.

Usage:
    from rest_api.services.domain import CommissionService

    service = CommissionService(db)
    commission = service.create_from_order(order)
"""

from .commission_service import CommissionService, DiscountCodeNotFoundError

__all__ = [
    "CommissionService",
    "DiscountCodeNotFoundError",
]
