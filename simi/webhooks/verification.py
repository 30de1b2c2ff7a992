"""Twilio webhook signature verification — constant-time HMAC-SHA1.

Security contract:
- Verification uses hmac.compare_digest() (constant-time)
- Missing TWILIO_AUTH_TOKEN -> verification always fails (fail-closed)
- Verification failure -> 401 immediately, no message processing
- The signed URL is TWILIO_WEBHOOK_URL when set (public URL behind a proxy),
  otherwise the URL the request arrived on
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import os

logger = logging.getLogger(__name__)

_TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN", "")
_TWILIO_WEBHOOK_URL = os.environ.get("TWILIO_WEBHOOK_URL", "")

SIGNATURE_HEADER = "x-twilio-signature"


def compute_signature(auth_token: str, url: str, params: list[tuple[str, str]]) -> str:
    """Twilio request signature: base64(HMAC-SHA1(url + sorted key/value pairs))."""
    payload = url + "".join(f"{key}{value}" for key, value in sorted(params))
    digest = hmac.new(auth_token.encode("utf-8"), payload.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_twilio(url: str, params: list[tuple[str, str]], signature_header: str | None) -> bool:
    """Verify the X-Twilio-Signature header for a form-encoded POST.

    Args:
        url: Full URL the webhook was requested on (ignored if TWILIO_WEBHOOK_URL is set)
        params: Decoded form fields, in any order
        signature_header: Value of X-Twilio-Signature

    Returns:
        True if the signature is valid
    """
    if not _TWILIO_AUTH_TOKEN:
        logger.warning("TWILIO_AUTH_TOKEN not set — rejecting webhook")
        return False
    if not signature_header:
        return False

    expected = compute_signature(_TWILIO_AUTH_TOKEN, _TWILIO_WEBHOOK_URL or url, params)
    return hmac.compare_digest(expected, signature_header)
