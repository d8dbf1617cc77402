"""Tests for the retry policy (retry.py)."""

from __future__ import annotations

import asyncio
import time

import pytest

from signal_rank.errors import ScanTimeoutError
from signal_rank.retry import RetryPolicy


class TestDelays:
    def test_exponential_backoff(self) -> None:
        policy = RetryPolicy(base_delay=1.0)
        assert [policy.backoff_delay(n) for n in range(3)] == [1.0, 2.0, 4.0]

    def test_rate_limit_waits_for_reset(self) -> None:
        policy = RetryPolicy(base_delay=1.0)
        delay = policy.rate_limit_delay(0, time.time() + 20)
        assert 18 < delay <= 20

    def test_rate_limit_past_reset_uses_backoff_floor(self) -> None:
        policy = RetryPolicy(base_delay=1.0)
        assert policy.rate_limit_delay(1, time.time() - 100) == 2.0
        assert policy.rate_limit_delay(2, None) == 4.0


class TestDeadline:
    def test_no_deadline(self) -> None:
        policy = RetryPolicy()
        assert policy.remaining() is None
        policy.check()

    def test_expired_deadline_check_raises(self) -> None:
        policy = RetryPolicy(deadline=time.monotonic() - 0.1)
        with pytest.raises(ScanTimeoutError, match="deadline"):
            policy.check()

    def test_with_timeout_sets_deadline(self) -> None:
        policy = RetryPolicy.with_timeout(5.0, max_attempts=2, base_delay=0.5)
        remaining = policy.remaining()
        assert remaining is not None
        assert 4.0 < remaining <= 5.0
        assert policy.max_attempts == 2

    async def test_sleep_truncated_by_deadline(self) -> None:
        policy = RetryPolicy.with_timeout(0.05)
        started = time.monotonic()
        with pytest.raises(ScanTimeoutError):
            await policy.sleep(10.0)
        assert time.monotonic() - started < 1.0

    async def test_bounded_request_times_out(self) -> None:
        policy = RetryPolicy.with_timeout(0.05)
        with pytest.raises(ScanTimeoutError):
            await policy.bounded(asyncio.sleep(5))

    async def test_bounded_without_deadline_passes_result(self) -> None:
        async def answer() -> int:
            return 42

        assert await RetryPolicy().bounded(answer()) == 42


class TestCancellation:
    def test_set_event_check_raises(self) -> None:
        event = asyncio.Event()
        event.set()
        with pytest.raises(ScanTimeoutError, match="cancelled"):
            RetryPolicy(cancel_event=event).check()

    async def test_cancel_interrupts_sleep(self) -> None:
        event = asyncio.Event()
        policy = RetryPolicy(cancel_event=event)
        asyncio.get_running_loop().call_later(0.02, event.set)

        started = time.monotonic()
        with pytest.raises(ScanTimeoutError, match="cancelled"):
            await policy.sleep(10.0)
        assert time.monotonic() - started < 1.0

    async def test_unset_event_sleeps_full_duration(self) -> None:
        policy = RetryPolicy(cancel_event=asyncio.Event())
        await policy.sleep(0.01)

    async def test_cancel_interrupts_request(self) -> None:
        event = asyncio.Event()
        policy = RetryPolicy(cancel_event=event)
        asyncio.get_running_loop().call_later(0.02, event.set)

        started = time.monotonic()
        with pytest.raises(ScanTimeoutError, match="cancelled"):
            await policy.bounded(asyncio.sleep(5))
        assert time.monotonic() - started < 1.0

    async def test_request_result_returned_when_not_cancelled(self) -> None:
        async def answer() -> int:
            return 7

        policy = RetryPolicy.with_timeout(5.0, cancel_event=asyncio.Event())
        assert await policy.bounded(answer()) == 7

    async def test_deadline_still_applies_with_cancel_event(self) -> None:
        policy = RetryPolicy.with_timeout(0.05, cancel_event=asyncio.Event())
        with pytest.raises(ScanTimeoutError, match="deadline"):
            await policy.bounded(asyncio.sleep(5))

    async def test_request_errors_propagate_with_cancel_event(self) -> None:
        async def fail() -> None:
            raise ValueError("upstream")

        with pytest.raises(ValueError, match="upstream"):
            await RetryPolicy(cancel_event=asyncio.Event()).bounded(fail())
