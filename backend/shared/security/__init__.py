"""
Security module: webhook signature verification.
"""

from shared.security.webhook_signature import (
    SignatureVerifier,
    SignatureResult,
    build_manifest,
    compute_signature,
)

__all__ = [
    "SignatureVerifier",
    "SignatureResult",
    "build_manifest",
    "compute_signature",
]
