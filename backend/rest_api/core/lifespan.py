"""
Application lifespan handler.
Opens the storage and provider resources at startup, stores them on
``app.state`` and releases them at shutdown.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from shared.config.settings import settings
from shared.config.logging import setup_logging, rest_api_logger as logger
from shared.infrastructure.db import Database
from shared.infrastructure.jobs import JobQueue
from shared.infrastructure.locks import KeyedLockManager
from shared.infrastructure.redis_pool import close_redis_pool, get_redis_pool
from shared.security.webhook_signature import SignatureVerifier
from rest_api.services.payments.mercadopago import MercadoPagoClient, PaymentStatusResolver
from rest_api.services.payments.reconciliation import ReconciliationEngine


def check_configuration() -> None:
    """Refuse to start in production with insecure configuration."""
    secret_errors = settings.validate_production_secrets()
    if not secret_errors:
        return

    for error in secret_errors:
        logger.error("Configuration error", error=error)
    if settings.environment == "production":
        raise RuntimeError(
            f"Production configuration errors: {'; '.join(secret_errors)}. "
            "Server will not start with insecure configuration."
        )
    logger.warning("Running with insecure defaults (acceptable for development only)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    setup_logging()
    check_configuration()

    logger.info("Starting REST API", port=settings.rest_api_port, env=settings.environment)

    database = Database.from_settings()
    database.open()

    mercadopago = MercadoPagoClient.from_settings()
    if not mercadopago.is_configured:
        logger.warning("MERCADOPAGO_ACCESS_TOKEN not set, payment notifications will fail")

    app.state.database = database
    app.state.signature_verifier = SignatureVerifier(settings.mercadopago_webhook_secret)
    app.state.payment_resolver = PaymentStatusResolver(mercadopago)
    app.state.payment_locks = KeyedLockManager()
    app.state.reconciliation_engine = ReconciliationEngine()
    app.state.job_queue = JobQueue(await get_redis_pool(), lease_seconds=settings.job_lease_seconds)

    try:
        yield
    finally:
        logger.info("Shutting down REST API")

        await mercadopago.aclose()
        database.close()
        await close_redis_pool()
        logger.info("Resources released")
