"""Backoff-and-retry for outbound provider calls.

Retries transient HTTP failures (429 and 5xx) and connection errors.
Honors Retry-After when the provider sends one. Outbound sends use a single
retry: a reply that arrives late is worse than one reported as failed.
"""

from __future__ import annotations

import functools
import logging
import random
import time
from typing import Any, Callable

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def is_retryable(error: Exception) -> bool:
    """Whether error is worth another attempt."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(error, (httpx.TransportError, ConnectionError))


def retry_with_backoff(
    max_retries: int = 1,
    base_delay: float = 0.5,
    max_delay: float = 5.0,
    jitter: float = 0.3,
) -> Callable:
    """Decorator: retry fn on retryable errors with exponential backoff + jitter.

    Args:
        max_retries: Attempts after the first one.
        base_delay: Delay before the first retry, in seconds.
        max_delay: Cap on any single delay (also caps Retry-After).
        jitter: Fraction of the delay randomized in either direction.
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return fn(*args, **kwargs)
                except Exception as e:
                    if attempt == max_retries or not is_retryable(e):
                        raise
                    response = e.response if isinstance(e, httpx.HTTPStatusError) else None
                    delay = compute_delay(attempt, base_delay, max_delay, jitter, response)
                    logger.warning(
                        "Retry %d/%d for %s (%s), waiting %.1fs",
                        attempt + 1,
                        max_retries,
                        fn.__name__,
                        type(e).__name__,
                        delay,
                    )
                    time.sleep(delay)
            raise RuntimeError("unreachable")  # pragma: no cover

        return wrapper

    return decorator


def compute_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    jitter: float,
    response: httpx.Response | None = None,
) -> float:
    """Exponential delay for attempt, or the provider's Retry-After."""
    if response is not None:
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return min(float(retry_after), max_delay)
            except ValueError:
                pass

    delay = min(base_delay * (2**attempt), max_delay)
    jitter_amount = delay * jitter
    delay += random.uniform(-jitter_amount, jitter_amount)
    return max(0.05, delay)
