"""Zoom webhook signature verification: constant-time HMAC.

Security contract:
- Signature is "v0=" + hex HMAC-SHA256(secret, "v0:{timestamp}:{raw_body}")
- All comparisons use hmac.compare_digest() (constant-time, no timing attacks)
- Missing secret -> verification always fails (fail-closed)
- Timestamp tolerance: 300s (5 min) either side of local time to prevent replay
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-zm-signature"
TIMESTAMP_HEADER = "x-zm-request-timestamp"

# Timestamp tolerance (seconds)
TIMESTAMP_TOLERANCE_SECONDS = 300


def compute_signature(secret: str, timestamp: str, body: bytes) -> str:
    """Expected x-zm-signature value for a delivery."""
    message = f"v0:{timestamp}:".encode("utf-8") + body
    digest = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()
    return f"v0={digest}"


def verify_signature(
    secret: str,
    body: bytes,
    signature: str | None,
    timestamp: str | None,
    now: float | None = None,
) -> bool:
    """Verify a Zoom webhook delivery.

    Args:
        secret: Webhook secret token configured for the app
        body: Raw request body bytes, exactly as received
        signature: Value of the x-zm-signature header
        timestamp: Value of the x-zm-request-timestamp header (epoch seconds)
        now: Current epoch seconds (defaults to time.time())

    Returns:
        True if the signature matches and the timestamp is within tolerance
    """
    if not secret:
        logger.warning("ZOOM_WEBHOOK_SECRET_TOKEN not set, rejecting webhook")
        return False
    if not signature or not timestamp:
        logger.debug("Missing signature or timestamp header")
        return False

    current = time.time() if now is None else now
    try:
        sent_at = int(timestamp)
        skew = abs(current - sent_at)
    except (ValueError, OverflowError):
        # OverflowError: digit strings too large to compare against a float clock
        logger.debug("Unparseable webhook timestamp: %.32r", timestamp)
        return False

    if skew > TIMESTAMP_TOLERANCE_SECONDS:
        logger.warning("Webhook timestamp outside tolerance: %s (now=%d)", sent_at, int(current))
        return False

    expected = compute_signature(secret, timestamp, body)
    if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
        logger.debug("Webhook signature mismatch")
        return False
    return True


def encrypt_plain_token(secret: str, plain_token: str) -> str:
    """Response token for endpoint.url_validation: hex HMAC-SHA256(secret, plainToken)."""
    return hmac.new(
        secret.encode("utf-8"),
        plain_token.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
