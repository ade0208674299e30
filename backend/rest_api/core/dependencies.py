"""
FastAPI dependencies for the webhook pipeline.

Each component is built once by the lifespan and stored on ``app.state``;
tests replace them through ``app.dependency_overrides``.
"""

from fastapi import Request

from shared.infrastructure.locks import KeyedLockManager
from shared.security.webhook_signature import SignatureVerifier
from rest_api.services.payments.mercadopago import PaymentStatusResolver
from rest_api.services.payments.reconciliation import ReconciliationEngine


def get_signature_verifier(request: Request) -> SignatureVerifier:
    return request.app.state.signature_verifier


def get_payment_resolver(request: Request) -> PaymentStatusResolver:
    return request.app.state.payment_resolver


def get_payment_locks(request: Request) -> KeyedLockManager:
    return request.app.state.payment_locks


def get_reconciliation_engine(request: Request) -> ReconciliationEngine:
    return request.app.state.reconciliation_engine
