"""Opt-in backoff for transient Gemini failures on idempotent calls.

Only calls that are safe to repeat go through ``with_retry``: content
generation (analysis, images) and video job status reads. Submitting a video
job is never retried, since a resubmit can start a second paid job.
``GEMINI_RETRY_MAX_ATTEMPTS`` defaults to 1, which disables retries.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
from google.genai import errors as genai_errors

from .config import get_config

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Rate limit, request timeout, and server-side unavailability.
_RETRYABLE_STATUS = frozenset({408, 429, 500, 502, 503, 504})

_sleep = asyncio.sleep


def is_transient(exc: BaseException) -> bool:
    """True when *exc* is worth retrying: a retryable API status or a dropped connection."""
    if isinstance(exc, genai_errors.APIError):
        return exc.code in _RETRYABLE_STATUS
    return isinstance(exc, (TimeoutError, httpx.TimeoutException, httpx.NetworkError))


def backoff_delay(retry: int, base: float, cap: float) -> float:
    """Seconds to wait before retry number *retry* (0-based), with up to *base* of jitter."""
    return min(base * (2 ** retry) + random.uniform(0, base), cap)


async def with_retry(call: Callable[[], Awaitable[T]], *, label: str = "Gemini call") -> T:
    """Await ``call()``, repeating it on transient failures up to the configured attempts.

    Args:
        call: Zero-arg callable returning a fresh awaitable per attempt.
        label: Name used in the retry log line.

    Raises:
        The failure of the last attempt, or the first non-transient failure.
    """
    cfg = get_config()
    attempt = 0
    while True:
        try:
            return await call()
        except Exception as exc:
            attempt += 1
            if attempt >= cfg.retry_max_attempts or not is_transient(exc):
                raise
            delay = backoff_delay(attempt - 1, cfg.retry_base_delay, cfg.retry_max_delay)
            logger.warning(
                "%s failed (%s), attempt %d/%d; retrying in %.1fs",
                label, exc, attempt, cfg.retry_max_attempts, delay,
            )
            await _sleep(delay)
