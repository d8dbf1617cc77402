"""Stateless retry policy with deadline- and cancellation-aware backoff.

A policy is built once per top-level scan and threaded through every HTTP
call of that scan. It holds no counters: the attempt number is supplied by
the caller's loop, so concurrent scans never share retry state.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from signal_rank.config import DEFAULT_BASE_DELAY, DEFAULT_MAX_ATTEMPTS
from signal_rank.errors import ScanTimeoutError

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt ceiling, backoff base, and an optional absolute deadline.

    ``deadline`` is a ``time.monotonic()`` timestamp. ``cancel_event``, when
    set, aborts any in-progress backoff sleep or request.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    deadline: float | None = None
    cancel_event: asyncio.Event | None = None

    @classmethod
    def with_timeout(
        cls,
        timeout_seconds: float | None,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        cancel_event: asyncio.Event | None = None,
    ) -> RetryPolicy:
        deadline = None if timeout_seconds is None else time.monotonic() + timeout_seconds
        return cls(
            max_attempts=max_attempts,
            base_delay=base_delay,
            deadline=deadline,
            cancel_event=cancel_event,
        )

    def backoff_delay(self, attempt: int) -> float:
        """Exponential backoff for a zero-based attempt: base * 2^attempt."""
        return self.base_delay * (2 ** max(attempt, 0))

    def rate_limit_delay(self, attempt: int, reset_epoch: float | None) -> float:
        """Wait until the quota reset, never less than the backoff floor."""
        floor = self.backoff_delay(attempt)
        if reset_epoch is None:
            return floor
        return max(reset_epoch - time.time(), floor)

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def is_cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def check(self) -> None:
        """Raise ScanTimeoutError if cancelled or past the deadline."""
        if self.is_cancelled():
            raise ScanTimeoutError("Scan cancelled by caller")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise ScanTimeoutError("Scan deadline expired")

    async def sleep(self, seconds: float) -> None:
        """Back off for ``seconds``, aborting early on deadline or cancellation."""
        self.check()
        remaining = self.remaining()
        truncated = remaining is not None and remaining < seconds
        wait = remaining if truncated else seconds

        if self.cancel_event is None:
            await asyncio.sleep(wait)
        else:
            try:
                await asyncio.wait_for(self.cancel_event.wait(), timeout=wait)
            except TimeoutError:
                pass
            else:
                raise ScanTimeoutError("Scan cancelled by caller during backoff")

        if truncated:
            raise ScanTimeoutError(
                f"Scan deadline expired during a {seconds:.1f}s backoff"
            )

    async def bounded(self, awaitable: Awaitable[T]) -> T:
        """Await one request, failing with ScanTimeoutError past the deadline
        or as soon as the cancel event is set.

        Callers run ``check()`` before building the awaitable.
        """
        remaining = self.remaining()
        if self.cancel_event is None:
            if remaining is None:
                return await awaitable
            try:
                return await asyncio.wait_for(awaitable, timeout=remaining)
            except TimeoutError as exc:
                raise ScanTimeoutError("Scan deadline expired during a request") from exc

        request = asyncio.ensure_future(awaitable)
        cancelled = asyncio.ensure_future(self.cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {request, cancelled},
                timeout=remaining,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (request, cancelled):
                if not task.done():
                    task.cancel()

        if request in done:
            return request.result()
        if cancelled in done:
            raise ScanTimeoutError("Scan cancelled by caller during a request")
        raise ScanTimeoutError("Scan deadline expired during a request")
