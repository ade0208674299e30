"""
Mercado Pago webhook signature verification.

Mercado Pago signs Feed v2 notifications with:
- x-signature header: "ts=<epoch>,v1=<hex hmac>"
- x-request-id header

The signed manifest is "id:{data_id};request-id:{x_request_id};ts:{ts};"
and v1 is its HMAC-SHA256 under the webhook secret.

Verification never raises and never touches storage: the caller decides what
to do with the returned SignatureResult.
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


# Rejection reasons
NO_SECRET_CONFIGURED = "no-secret-configured"
MISSING_HEADERS = "missing-headers"
INVALID_HEADERS_TYPE = "invalid-headers-type"
NOT_FEED_V2 = "not-feed-v2"
INVALID_SIGNATURE_FORMAT = "invalid-signature-format"
MISSING_DATA_ID = "missing-data-id"
HMAC_MISMATCH = "hmac-mismatch"


@dataclass(frozen=True)
class SignatureResult:
    valid: bool
    reason: str | None = None
    is_panel_test: bool = False
    data_id: str | None = None


def _get_header(headers: Mapping[str, Any], name: str) -> Any:
    """Case-insensitive header lookup for both starlette Headers and plain dicts."""
    value = headers.get(name)
    if value is not None:
        return value
    for key, candidate in headers.items():
        if isinstance(key, str) and key.lower() == name:
            return candidate
    return None


def parse_signature_header(x_signature: str) -> dict[str, str]:
    """Split "ts=...,v1=..." into a dict. Keys and values are trimmed."""
    parts: dict[str, str] = {}
    for part in x_signature.split(","):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        parts[key.strip()] = value.strip()
    return parts


def extract_data_id(body: Any, query: Mapping[str, Any]) -> str:
    """
    Resolve the id that was signed.

    merchant_order notifications carry a ``resource`` URL whose last segment
    is the id; payment notifications carry it in the ``data.id`` (or ``id``)
    query parameter.
    """
    if isinstance(body, dict):
        resource = body.get("resource")
        if isinstance(resource, str) and resource:
            segment = resource.rstrip("/").split("/")[-1]
            if segment:
                return segment

    for key in ("data.id", "id"):
        value = query.get(key)
        if value:
            return str(value)
    return ""


def build_manifest(data_id: str, request_id: str, ts: str) -> str:
    return f"id:{data_id};request-id:{request_id};ts:{ts};"


def compute_signature(secret: str, manifest: str) -> str:
    return hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()


def _is_panel_test(body: Any) -> bool:
    """The dashboard's manual test ping is unsigned but has this shape."""
    return (
        isinstance(body, dict)
        and body.get("api_version") == "v1"
        and bool(body.get("action"))
    )


class SignatureVerifier:
    """
    Verifies Mercado Pago Feed v2 webhook signatures.

    Usage:
        verifier = SignatureVerifier(settings.mercadopago_webhook_secret)
        result = verifier.verify(request.headers, body, request.query_params)
        if not result.valid:
            ...
    """

    def __init__(self, secret: str):
        self._secret = secret

    @property
    def is_configured(self) -> bool:
        return bool(self._secret)

    def verify(
        self,
        headers: Mapping[str, Any],
        body: Any,
        query: Mapping[str, Any] | None = None,
    ) -> SignatureResult:
        query = query or {}

        if not self._secret:
            logger.error("Webhook secret not configured, rejecting notification")
            return SignatureResult(valid=False, reason=NO_SECRET_CONFIGURED)

        x_signature = _get_header(headers, "x-signature")
        x_request_id = _get_header(headers, "x-request-id")

        if not x_signature or not x_request_id:
            if _is_panel_test(body):
                logger.info("Mercado Pago panel test detected")
                return SignatureResult(valid=True, is_panel_test=True)
            logger.warning("Webhook missing x-signature or x-request-id headers")
            return SignatureResult(valid=False, reason=MISSING_HEADERS)

        if not isinstance(x_signature, str) or not isinstance(x_request_id, str):
            return SignatureResult(valid=False, reason=INVALID_HEADERS_TYPE)

        user_agent = _get_header(headers, "user-agent") or ""
        if not isinstance(user_agent, str) or "Feed" not in user_agent:
            logger.warning("Unsupported notification type (not Feed v2)", user_agent=user_agent)
            return SignatureResult(valid=False, reason=NOT_FEED_V2)

        parts = parse_signature_header(x_signature)
        ts = parts.get("ts")
        received = parts.get("v1")
        if not ts or not received:
            logger.warning("Webhook signature malformed", x_signature=x_signature)
            return SignatureResult(valid=False, reason=INVALID_SIGNATURE_FORMAT)

        data_id = extract_data_id(body, query)
        if not data_id:
            return SignatureResult(valid=False, reason=MISSING_DATA_ID)

        manifest = build_manifest(data_id, x_request_id, ts)
        expected = compute_signature(self._secret, manifest)

        # compare_digest is constant-time and also false on length mismatch
        if not hmac.compare_digest(expected.encode(), received.encode()):
            logger.warning(
                "Webhook HMAC verification failed",
                data_id=data_id,
                expected=expected[:8],
                received=received[:8],
            )
            return SignatureResult(valid=False, reason=HMAC_MISMATCH, data_id=data_id)

        logger.debug("Webhook signature verified", data_id=data_id)
        return SignatureResult(valid=True, data_id=data_id)
