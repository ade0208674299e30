"""
Pytest configuration and fixtures for backend tests.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from rest_api.core.dependencies import (
    get_payment_locks,
    get_payment_resolver,
    get_reconciliation_engine,
    get_signature_verifier,
)
from rest_api.main import app
from rest_api.models import (
    Base,
    DiscountCode,
    Influencer,
    Order,
    Payment,
)
from rest_api.services.payments.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from rest_api.services.payments.mercadopago import MercadoPagoClient, PaymentStatusResolver
from rest_api.services.payments.reconciliation import ReconciliationEngine
from shared.config.constants import InfluencerPaymentMethod, OrderStatus, PaymentStatus
from shared.infrastructure.db import Database, get_db
from shared.infrastructure.locks import KeyedLockManager
from shared.security.webhook_signature import (
    SignatureVerifier,
    build_manifest,
    compute_signature,
)


WEBHOOK_SECRET = "test-webhook-secret"
FEED_USER_AGENT = "MercadoPago Feed v2.0 payment"


# =============================================================================
# Database
# =============================================================================

@pytest.fixture(scope="function")
def database():
    """
    SQLite in-memory Database shared by the test and the code under test.
    StaticPool keeps a single connection so every session sees the same data.
    """
    db = Database(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db.open()
    Base.metadata.create_all(bind=db.engine)
    try:
        yield db
    finally:
        Base.metadata.drop_all(bind=db.engine)
        db.close()


@pytest.fixture(scope="function")
def db_session(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# Seed factories
# =============================================================================

@pytest.fixture
def make_influencer(db_session):
    def _make(**overrides):
        values = {
            "name": "Ana Influencer",
            "email": "ana@example.com",
            "payment_method": InfluencerPaymentMethod.TRANSFER,
            "account_number": "0001-2345",
            "cvu": "0000003100012345678901",
            "bank_name": "Banco Test",
        }
        values.update(overrides)
        influencer = Influencer(**values)
        db_session.add(influencer)
        db_session.commit()
        return influencer

    return _make


@pytest.fixture
def make_discount_code(db_session):
    def _make(code="ANA10", influencer=None, valid_until=None, **overrides):
        discount_code = DiscountCode(
            code=code,
            discount_type="percentage",
            discount_value=Decimal("10"),
            valid_until=valid_until or datetime.now(timezone.utc) + timedelta(days=30),
            influencer_id=influencer.id if influencer else None,
            **overrides,
        )
        db_session.add(discount_code)
        db_session.commit()
        return discount_code

    return _make


@pytest.fixture
def make_order(db_session):
    """Create an order with one payment. Returns (order, payment)."""

    def _make(
        subtotal="100.00",
        discount="0.00",
        order_status=OrderStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        discount_code=None,
        mercadopago_payment_id=None,
    ):
        subtotal, discount = Decimal(subtotal), Decimal(discount)
        order = Order(
            subtotal=subtotal,
            discount=discount,
            shipping_cost=Decimal("0"),
            total=subtotal - discount,
            status=order_status,
            discount_code_id=discount_code.id if discount_code else None,
        )
        db_session.add(order)
        db_session.flush()

        payment = Payment(
            order_id=order.id,
            status=payment_status,
            amount=order.total,
            mercadopago_payment_id=mercadopago_payment_id,
        )
        db_session.add(payment)
        db_session.commit()
        return order, payment

    return _make


# =============================================================================
# Provider + webhook client
# =============================================================================

@pytest.fixture
def provider_payments():
    """Payments the fake provider API knows, keyed by provider payment id."""
    return {}


@pytest.fixture
def provider_transport(provider_payments):
    def handler(request: httpx.Request) -> httpx.Response:
        payment_id = request.url.path.rsplit("/", 1)[-1]
        payload = provider_payments.get(payment_id)
        if payload is None:
            return httpx.Response(404, json={"message": "payment not found"})
        if isinstance(payload, httpx.Response):
            return payload
        return httpx.Response(200, json={"id": payment_id, **payload})

    return httpx.MockTransport(handler)


@pytest.fixture
def breaker():
    return CircuitBreaker(
        CircuitBreakerConfig(name="test", failure_threshold=3, timeout_seconds=30.0)
    )


@pytest.fixture
def mp_client(provider_transport, breaker):
    return MercadoPagoClient(
        "TEST-ACCESS-TOKEN",
        base_url="https://api.mercadopago.test",
        breaker=breaker,
        transport=provider_transport,
    )


@pytest.fixture
def client(db_session, mp_client):
    """
    Test client with the webhook pipeline wired through dependency overrides.
    The lifespan is not run, so no Postgres or Redis is needed.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    verifier = SignatureVerifier(WEBHOOK_SECRET)
    resolver = PaymentStatusResolver(mp_client)
    locks = KeyedLockManager()
    engine = ReconciliationEngine()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_signature_verifier] = lambda: verifier
    app.dependency_overrides[get_payment_resolver] = lambda: resolver
    app.dependency_overrides[get_payment_locks] = lambda: locks
    app.dependency_overrides[get_reconciliation_engine] = lambda: engine

    yield TestClient(app)

    app.dependency_overrides.clear()


def signed_headers(data_id, secret=WEBHOOK_SECRET, request_id="req-abc-123", ts="1704067200"):
    """Headers for a correctly signed Feed v2 notification."""
    v1 = compute_signature(secret, build_manifest(data_id, request_id, ts))
    return {
        "x-signature": f"ts={ts},v1={v1}",
        "x-request-id": request_id,
        "user-agent": FEED_USER_AGENT,
    }


@pytest.fixture
def sign():
    return signed_headers
