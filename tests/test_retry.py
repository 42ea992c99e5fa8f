"""Tests for the exponential-backoff retry wrapper."""
import asyncio

import pytest
from unittest.mock import AsyncMock, patch

from alf.services.retry import RetryCancelledError, RetryPolicy, retry_with_policy, with_retry


class Flaky:
    """Fails a fixed number of times, then returns a value."""

    def __init__(self, failures: int, value="ok"):
        self.failures = failures
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"boom {self.calls}")
        return self.value


def test_policy_delays_double_each_attempt():
    policy = RetryPolicy(max_attempts=4, base_delay_ms=400)
    assert [policy.delay_seconds(i) for i in range(3)] == [0.4, 0.8, 1.6]


@pytest.mark.asyncio
async def test_returns_first_success_without_waiting():
    op = Flaky(failures=0)
    with patch("alf.services.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        assert await with_retry(op, 3, 400) == "ok"
    assert op.calls == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_retries_with_exponential_backoff():
    op = Flaky(failures=2)
    with patch("alf.services.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        assert await with_retry(op, 3, 400) == "ok"
    assert op.calls == 3
    assert [c.args[0] for c in sleep.await_args_list] == [0.4, 0.8]


@pytest.mark.asyncio
async def test_final_failure_propagates_last_error():
    op = Flaky(failures=5)
    with patch("alf.services.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        with pytest.raises(RuntimeError, match="boom 3"):
            await with_retry(op, 3, 400)
    assert op.calls == 3
    # No wait after the last attempt.
    assert sleep.await_count == 2


@pytest.mark.asyncio
async def test_single_attempt_never_waits():
    op = Flaky(failures=1)
    with patch("alf.services.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        with pytest.raises(RuntimeError):
            await with_retry(op, 1, 400)
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_nonpositive_attempts_run_once_and_raise_original_error():
    op = Flaky(failures=1)
    with patch("alf.services.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        with pytest.raises(RuntimeError, match="boom 1") as exc_info:
            await with_retry(op, 0, 400)
    assert type(exc_info.value) is RuntimeError
    assert op.calls == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_cancel_event_interrupts_backoff():
    op = Flaky(failures=5)
    cancel = asyncio.Event()
    cancel.set()
    with pytest.raises(RetryCancelledError):
        await with_retry(op, 3, 10_000, cancel_event=cancel)
    assert op.calls == 1


@pytest.mark.asyncio
async def test_cancel_event_set_during_wait():
    op = Flaky(failures=5)
    cancel = asyncio.Event()

    async def cancel_soon():
        await asyncio.sleep(0.01)
        cancel.set()

    canceller = asyncio.create_task(cancel_soon())
    with pytest.raises(RetryCancelledError):
        await with_retry(op, 3, 10_000, cancel_event=cancel)
    await canceller
    assert op.calls == 1


@pytest.mark.asyncio
async def test_retry_with_policy_uses_policy_values():
    op = Flaky(failures=1)
    with patch("alf.services.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        result = await retry_with_policy(op, RetryPolicy(max_attempts=2, base_delay_ms=100))
    assert result == "ok"
    sleep.assert_awaited_once_with(0.1)
