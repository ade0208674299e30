"""
Services module for business logic.

- domain/: Application services (commission creation)
- payments/: Provider notifications, status resolution and reconciliation

Usage:
    from rest_api.services.domain import CommissionService
    commission = CommissionService(db).create_from_order(order)

    from rest_api.services.payments import ReconciliationEngine
"""
