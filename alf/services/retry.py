"""Exponential-backoff retry for single outbound calls."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from alf.config import settings

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryCancelledError(Exception):
    """Raised when a cancellation event fires during a backoff wait."""


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_ms: int = 400

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=max(int(settings.retry_max_attempts), 1),
            base_delay_ms=max(int(settings.retry_base_delay_ms), 0),
        )

    def delay_seconds(self, attempt_index: int) -> float:
        return (self.base_delay_ms * (2**attempt_index)) / 1000.0


async def _backoff(delay: float, cancel_event: asyncio.Event | None) -> None:
    if cancel_event is None:
        await asyncio.sleep(delay)
        return
    if cancel_event.is_set():
        raise RetryCancelledError("retry cancelled")
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise RetryCancelledError("retry cancelled")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay_ms: int = 400,
    *,
    cancel_event: asyncio.Event | None = None,
    label: str = "operation",
) -> T:
    """Run `operation`, retrying on exceptions with pure exponential backoff.

    The wait before retry `i` (0-based) is `base_delay_ms * 2**i`. After
    `max_attempts` failures the last exception propagates unchanged. Setting
    `cancel_event` (or cancelling the task) interrupts a pending wait.
    """
    policy = RetryPolicy(max_attempts=max(max_attempts, 1), base_delay_ms=max(base_delay_ms, 0))
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if attempt + 1 >= policy.max_attempts:
                raise
            delay = policy.delay_seconds(attempt)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                label,
                attempt + 1,
                policy.max_attempts,
                exc,
                delay,
            )
            await _backoff(delay, cancel_event)
            attempt += 1


async def retry_with_policy(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    cancel_event: asyncio.Event | None = None,
    label: str = "operation",
) -> T:
    return await with_retry(
        operation,
        policy.max_attempts,
        policy.base_delay_ms,
        cancel_event=cancel_event,
        label=label,
    )
