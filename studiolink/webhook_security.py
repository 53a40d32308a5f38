"""
Webhook Security Module

Signature verification for the mail relay's webhooks. Resend signs deliveries
with Svix (Standard Webhooks): base64 HMAC-SHA256 over "id.timestamp.body",
keyed by the base64 part of the whsec_ secret.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


def constant_time_compare(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def extract_svix_signing_key(secret: str) -> bytes:
    """
    Signing key bytes from a "whsec_BASE64KEY" secret.

    Unprefixed secrets are tried as base64 and fall back to their UTF-8 bytes.
    """
    try:
        if secret.startswith("whsec_"):
            return base64.b64decode(secret[6:])
        return base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError):
        return secret.encode("utf-8")


def verify_timestamp(
    timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS, now: Optional[float] = None
) -> bool:
    """Reject deliveries outside the replay window."""
    try:
        webhook_time = int(timestamp)
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    age = abs(int(now if now is not None else time.time()) - webhook_time)
    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


def sign_svix_payload(secret: str, webhook_id: str, timestamp: str, payload: bytes) -> str:
    """Base64 signature for ``payload``; also used by tests to sign fixtures."""
    signed_message = b".".join([webhook_id.encode("utf-8"), timestamp.encode("utf-8"), payload])
    digest = hmac.new(extract_svix_signing_key(secret), signed_message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_svix_signature(
    secret: str,
    webhook_id: str,
    timestamp: str,
    signature_header: str,
    payload: bytes,
    now: Optional[float] = None,
) -> bool:
    if not webhook_id or not timestamp or not signature_header:
        logger.error("❌ Missing svix-id, svix-timestamp or svix-signature header")
        return False
    if not verify_timestamp(timestamp, now=now):
        return False

    expected = sign_svix_payload(secret, webhook_id, timestamp, payload)
    # The header may carry several space separated "v1,<sig>" entries during key rotation
    for entry in signature_header.split():
        version, _, signature = entry.partition(",")
        if version == "v1" and constant_time_compare(expected, signature):
            return True

    logger.error(f"❌ Webhook signature mismatch for {webhook_id}")
    return False


async def verify_resend_webhook(request: Request, secret: Optional[str]) -> bytes:
    """
    Verify the Svix signature of a Resend webhook and return the raw body.

    With no secret configured the body is returned unverified.

    Raises:
        HTTPException: 401 when a configured secret does not verify the request
    """
    raw_body = await request.body()
    if not secret:
        logger.warning("⚠️ RESEND_WEBHOOK_SECRET not set - accepting unsigned webhook")
        return raw_body

    webhook_id = request.headers.get("svix-id", "")
    timestamp = request.headers.get("svix-timestamp", "")
    signature_header = request.headers.get("svix-signature", "")

    if not verify_svix_signature(secret, webhook_id, timestamp, signature_header, raw_body):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    logger.info(f"✅ Resend webhook signature verified: {webhook_id}")
    return raw_body
