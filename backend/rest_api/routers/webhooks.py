"""
Payment provider webhook endpoint.

POST /api/webhooks/{provider}

Response contract (what the provider's retry logic sees):
- 200 {"received": true}: processed, ignored, idempotent, guarded, or
  rejected by signature verification. None of these benefit from a retry.
- 500 {"received": false, "error": "Processing error"}: a genuine failure
  (provider read API down, database error). The provider retries later.
"""

import json
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from shared.config.logging import webhook_logger as logger
from shared.infrastructure.db import get_db
from shared.infrastructure.locks import KeyedLockManager
from shared.security.webhook_signature import HMAC_MISMATCH, SignatureVerifier
from rest_api.core.dependencies import (
    get_payment_locks,
    get_payment_resolver,
    get_reconciliation_engine,
    get_signature_verifier,
)
from rest_api.services.payments.mercadopago import PaymentStatusResolver
from rest_api.services.payments.notifications import PaymentNotification, parse_notification
from rest_api.services.payments.reconciliation import ReconciliationEngine


router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

SUPPORTED_PROVIDERS = frozenset({"mercadopago"})


async def _read_body(request: Request) -> Any:
    """Parse the JSON body; malformed bodies become {} and fail verification."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        logger.warning("Webhook body is not valid JSON", size=len(raw))
        return {}


@router.post("/{provider}")
async def receive_webhook(
    provider: str,
    request: Request,
    db: Session = Depends(get_db),
    verifier: SignatureVerifier = Depends(get_signature_verifier),
    resolver: PaymentStatusResolver = Depends(get_payment_resolver),
    locks: KeyedLockManager = Depends(get_payment_locks),
    engine: ReconciliationEngine = Depends(get_reconciliation_engine),
):
    """
    Receive a payment notification.

    Signature verification runs before any side effect. Processing for one
    provider payment id is serialized in-process; the row lock taken by the
    engine covers other processes.
    """
    if provider not in SUPPORTED_PROVIDERS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown webhook provider: {provider}",
        )

    body = await _read_body(request)
    query = request.query_params

    logger.info(
        "Incoming webhook",
        provider=provider,
        type=body.get("type") if isinstance(body, dict) else None,
        action=body.get("action") if isinstance(body, dict) else None,
        query_data_id=query.get("data.id"),
    )

    signature = verifier.verify(request.headers, body, query)
    if not signature.valid:
        logger.warning("Webhook signature rejected", provider=provider, reason=signature.reason)
        return {"received": True}

    if signature.is_panel_test:
        return {"received": True, "panel_test": True}

    notification = parse_notification(body, query)
    if not isinstance(notification, PaymentNotification):
        logger.info(
            "Webhook ignored, not a payment notification",
            kind=notification.kind,
            data_id=signature.data_id,
        )
        return {"received": True, "ignored": notification.kind}

    # The signature covers one id; a body naming another payment was altered
    if notification.payment_id != signature.data_id:
        logger.warning(
            "Webhook signature rejected",
            provider=provider,
            reason=HMAC_MISMATCH,
            signed_data_id=signature.data_id,
            body_payment_id=notification.payment_id,
        )
        return {"received": True}

    try:
        async with locks.hold(notification.payment_id):
            resolved = await resolver.resolve(notification)
            if resolved is None:
                return {"received": True, "ignored": notification.kind}
            result = await run_in_threadpool(engine.reconcile, db, resolved)
    except Exception:
        logger.error(
            "Unhandled error processing webhook",
            provider=provider,
            payment_id=notification.payment_id,
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"received": False, "error": "Processing error"},
        )

    return {"received": True, "outcome": result.outcome.value}
