"""Explicit cancellation token for the bounded portal fetch.

A ``CancellationToken`` carries a monotonic deadline and a manual cancel
flag. It is created by the caller and passed into every suspending call
so that the time budget is part of the call contract:

```python
token = CancellationToken.with_timeout(settings.FETCH_TIMEOUT_SECONDS)
html = await fetch_receipt_page(url, token)
```

``run`` awaits a coroutine for at most the remaining budget and raises
``OperationCancelled`` when the deadline passes or ``cancel()`` is called
while waiting.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


class OperationCancelled(Exception):
    """Raised by :meth:`CancellationToken.run` when the budget is exhausted."""

    def __init__(self, reason: str = "cancelled") -> None:
        super().__init__(reason)
        self.reason = reason


class CancellationToken:
    def __init__(self, deadline: Optional[float] = None) -> None:
        # ``deadline`` is a time.monotonic() value; None means unbounded
        self.deadline = deadline
        self._cancelled = asyncio.Event()
        self._reason: Optional[str] = None

    @classmethod
    def with_timeout(cls, seconds: Optional[float]) -> "CancellationToken":
        if seconds is None:
            return cls()
        return cls(time.monotonic() + max(float(seconds), 0.0))

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._cancelled.is_set():
            self._reason = reason
            self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def reason(self) -> Optional[str]:
        if self._reason:
            return self._reason
        if self.expired:
            return "timeout"
        return None

    def remaining(self) -> Optional[float]:
        """Seconds left in the budget (never negative), or None if unbounded."""
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` within the remaining budget.

        The awaitable is cancelled when the deadline passes or the token is
        cancelled, whichever happens first. Cancelling the calling task also
        cancels the awaitable before the cancellation propagates.
        """
        if self.expired:
            # Close un-awaited coroutines so they do not warn on collection
            close = getattr(awaitable, "close", None)
            if close is not None:
                close()
            raise OperationCancelled(self.reason or "timeout")

        work = asyncio.ensure_future(awaitable)
        watcher = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {work, watcher},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            # Also reached when the caller itself is cancelled: the work
            # must not outlive this call.
            watcher.cancel()
            if not work.done():
                work.cancel()
                await asyncio.gather(work, return_exceptions=True)

        if work in done:
            return work.result()
        raise OperationCancelled(self.reason or "timeout")
