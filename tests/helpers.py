"""Shared test helpers for converge tests."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from converge.core.cancellation import CancellationToken
from converge.core.errors import Fault, FaultCategory, ReasonCode


class FakeClock:
    """Deterministic monotonic clock; ``sleep`` advances it instead of waiting."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float, cancel: CancellationToken | None = None) -> None:
        if cancel is not None:
            cancel.raise_if_cancelled()
        self.sleeps.append(delay)
        self.now += delay
        if cancel is not None:
            cancel.raise_if_cancelled()


class Scripted:
    """Async callable returning/raising the next scripted item on each call.

    Exceptions in the script are raised; anything else is returned. The last
    item repeats once the script runs out.
    """

    def __init__(self, items: Iterable[Any]) -> None:
        self._items = list(items)
        self.calls = 0

    async def __call__(self) -> Any:
        item = self._items[min(self.calls, len(self._items) - 1)]
        self.calls += 1
        if isinstance(item, BaseException):
            raise item
        return item


def network_fault(message: str = "connection refused") -> Fault:
    return Fault(message, code=ReasonCode.NETWORK, category=FaultCategory.NETWORK)


def session_fault(message: str = "The Service Session was not found") -> Fault:
    return Fault(
        message,
        code=ReasonCode.INVALID_SERVICE_SESSION,
        category=FaultCategory.AUTHENTICATION_FAILED,
    )


def terminal_fault(message: str = "volume name already in use") -> Fault:
    return Fault(message, code="ErrorVolumeNameConflict", category=FaultCategory.CONFLICT)
