"""Cooperative cancellation for retry and poll loops.

The retrier and poller check a CancellationToken before every attempt/probe
and before every sleep. Sleeping is done through ``interruptible_sleep`` so
that a cancel signalled mid-sleep wakes the waiter immediately instead of at
the end of the interval.

Cancellation surfaces as a Fault with category ``cancelled``, distinct from
the ``timed_out`` category used when a deadline elapses.
"""

from __future__ import annotations

import asyncio
import contextlib

from converge.core.errors import Fault, FaultCategory, ReasonCode


def cancelled_fault(reason: str | None = None) -> Fault:
    """Build the Fault raised when a caller cancels an operation."""
    message = "Operation cancelled by caller"
    if reason:
        message = f"{message}: {reason}"
    return Fault(
        message,
        code=ReasonCode.OPERATION_CANCELLED,
        category=FaultCategory.CANCELLED,
    )


class CancellationToken:
    """Handle a caller can signal to stop an in-flight retry or poll loop.

    Example:
        token = CancellationToken()
        task = asyncio.create_task(retrier.execute(op, cancel=token))
        ...
        token.cancel("shutting down")
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Signal cancellation. Later calls keep the first reason."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise cancelled_fault(self._reason)

    async def sleep(self, delay: float) -> None:
        """Sleep up to ``delay`` seconds, aborting early on cancellation.

        Raises:
            Fault: category ``cancelled`` if signalled before or during the sleep.
        """
        self.raise_if_cancelled()
        if delay <= 0:
            return
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        self.raise_if_cancelled()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled}, reason={self._reason!r})"


async def interruptible_sleep(delay: float, cancel: CancellationToken | None = None) -> None:
    """Sleep for ``delay`` seconds, honoring ``cancel`` if given."""
    if cancel is not None:
        await cancel.sleep(delay)
    elif delay > 0:
        await asyncio.sleep(delay)
