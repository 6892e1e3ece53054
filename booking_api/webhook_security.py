"""
Signature verification for Razorpay payments and webhooks

Both checks are HMAC-SHA256 hex digests compared in constant time:
- checkout callback: HMAC(key_secret, "<order_id>|<payment_id>")
- webhook: HMAC(webhook_secret, raw request body), sent as X-Razorpay-Signature
"""

import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)

RAZORPAY_SIGNATURE_HEADER = "X-Razorpay-Signature"


def constant_time_compare(a: Optional[str], b: Optional[str]) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Empty values never match.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_payment_signature(
    order_id: str, payment_id: str, signature: Optional[str], key_secret: str
) -> bool:
    expected = compute_hmac_sha256(key_secret, f"{order_id}|{payment_id}".encode("utf-8"))
    return constant_time_compare(expected, signature)


def verify_razorpay_webhook(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """Signature is computed over the exact bytes received, never a re-serialisation"""
    if not signature:
        logger.warning("🚫 Razorpay webhook missing signature header")
        return False

    if not constant_time_compare(compute_hmac_sha256(secret, raw_body), signature):
        logger.warning("🚫 Razorpay webhook signature mismatch")
        return False

    logger.debug("✅ Razorpay webhook signature verified")
    return True
