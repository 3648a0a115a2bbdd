"""Bounded, cancellable polling for long-running provider jobs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from .config import ServerConfig, get_config
from .errors import PollTimeoutError
from .tracing import annotate

logger = logging.getLogger(__name__)

T = TypeVar("T")

_sleep = asyncio.sleep


@dataclass(frozen=True)
class PollPolicy:
    """How often, and for how long, to wait on a job.

    The first wait is ``interval`` seconds; each later wait is multiplied by
    ``backoff`` and capped at ``max_interval``. Polling stops with
    ``PollTimeoutError`` after ``max_attempts`` refreshes or once ``timeout``
    seconds have elapsed, whichever comes first.
    """

    interval: float = 5.0
    backoff: float = 1.5
    max_interval: float = 30.0
    timeout: float = 900.0
    max_attempts: int = 240

    @classmethod
    def from_config(cls, cfg: ServerConfig | None = None) -> PollPolicy:
        cfg = cfg or get_config()
        return cls(
            interval=cfg.poll_interval,
            backoff=cfg.poll_backoff,
            max_interval=cfg.poll_max_interval,
            timeout=cfg.poll_timeout,
            max_attempts=cfg.poll_max_attempts,
        )

    def delay(self, attempt: int) -> float:
        """Seconds to wait before refresh number *attempt* (0-based)."""
        return min(self.interval * (self.backoff ** attempt), self.max_interval)


async def poll_until_done(
    handle: T,
    refresh: Callable[[T], Awaitable[T]],
    is_done: Callable[[T], bool],
    policy: PollPolicy,
    *,
    label: str = "job",
) -> T:
    """Refresh *handle* until *is_done* reports completion.

    Cancelling the awaiting task cancels the current sleep or refresh; no
    further provider calls are made afterwards.

    Args:
        handle: The handle returned when the job was submitted.
        refresh: Coroutine function returning the latest handle.
        is_done: Predicate on a handle.
        policy: Interval, backoff and limits.
        label: Name used in log lines and the timeout message.

    Returns:
        The first handle for which ``is_done`` is true.

    Raises:
        PollTimeoutError: If the attempt cap or the deadline is reached first.
    """
    loop = asyncio.get_running_loop()
    start = loop.time()
    deadline = start + policy.timeout
    attempt = 0

    while not is_done(handle):
        if attempt >= policy.max_attempts:
            raise PollTimeoutError(
                f"{label} still running after {attempt} polls ({loop.time() - start:.0f}s)"
            )
        delay = policy.delay(attempt)
        if loop.time() + delay > deadline:
            raise PollTimeoutError(
                f"{label} not done within {policy.timeout:.0f}s ({attempt} polls)"
            )
        logger.debug("Polling %s in %.1fs (attempt %d)", label, delay, attempt + 1)
        await _sleep(delay)
        handle = await refresh(handle)
        attempt += 1

    annotate(polls=attempt)
    if attempt:
        logger.info("%s done after %d poll(s), %.1fs", label, attempt, loop.time() - start)
    return handle
