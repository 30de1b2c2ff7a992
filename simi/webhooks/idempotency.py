"""Inbound delivery deduplication — Redis-backed, keyed on Twilio MessageSid.

Twilio redelivers a message webhook when the ack is slow or fails; every
redelivery carries the same MessageSid. The first delivery of a SID is
marked in Redis and later deliveries are acknowledged without dispatch.

Security contract:
- Only well-formed message SIDs (SM/MM + 32 hex) are tracked; anything else
  is let through unmarked so a forged value cannot poison the key space
- Marks expire after 24h
- Key pattern: webhook:seen:twilio:{message_sid}
- If Redis is down, deliveries are allowed (fail-open for availability);
  same-sender ordering is still guaranteed by the dispatcher's lock
"""

from __future__ import annotations

import functools
import logging
import os
import re

logger = logging.getLogger(__name__)

_DEDUP_TTL_SECONDS = 86400  # 24 hours

_KEY_PREFIX = "webhook:seen:twilio"

# SM = SMS/WhatsApp text, MM = media message
_MESSAGE_SID_PATTERN = re.compile(r"^(SM|MM)[0-9a-fA-F]{32}$")


@functools.lru_cache(maxsize=1)
def _get_redis():
    """Shared Redis client (connection pool is reused across deliveries)."""
    import redis as redis_lib

    redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
    return redis_lib.from_url(redis_url, decode_responses=True, socket_timeout=2)


def is_message_sid(value: str) -> bool:
    return bool(_MESSAGE_SID_PATTERN.match(value))


def delivery_key(message_sid: str) -> str:
    """Redis key marking one Twilio message as seen.

    Raises:
        ValueError: message_sid is not a Twilio message SID
    """
    if not is_message_sid(message_sid):
        raise ValueError(f"Not a Twilio message SID: {message_sid[:40]!r}")
    return f"{_KEY_PREFIX}:{message_sid}"


def is_redelivery(message_sid: str) -> bool:
    """Check-and-mark a delivery in one atomic SET NX.

    Args:
        message_sid: MessageSid form field of the inbound webhook

    Returns:
        True if this MessageSid has already been seen
    """
    if not is_message_sid(message_sid):
        if message_sid:
            logger.warning("Malformed MessageSid, skipping dedup: %r", message_sid[:40])
        return False

    try:
        was_set = _get_redis().set(delivery_key(message_sid), "1", nx=True, ex=_DEDUP_TTL_SECONDS)
    except Exception:
        logger.warning(
            "Redis unavailable for webhook dedup — allowing %s",
            message_sid,
            exc_info=True,
        )
        return False

    if not was_set:
        logger.info("Twilio redelivery ignored: %s", message_sid)
        return True
    return False
