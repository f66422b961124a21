"""Bounded, policy-driven retries for remote operations.

BackoffRetrier runs a caller-supplied coroutine function until it succeeds,
fails terminally, or the RetryPolicy's attempt budget is spent. After every
failure the ErrorClassifier decides what happens next:

- terminal: raise the fault immediately
- retryable_transient: sleep per the backoff schedule, try again
- retryable_after_refresh: ask the CredentialRefreshCoordinator for a new
  credential, then try again immediately without spending an attempt

Example usage:
    retrier = BackoffRetrier(RetryPolicy(max_attempts=5, base_interval=5, max_interval=10))

    volume = await retrier.execute(
        lambda: client.get_volume(volume_id),
        operation="get_volume",
    )

Each ``execute`` call keeps its own counters, so one retrier (and its policy)
may be shared by any number of concurrent tasks.
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from converge.core.cancellation import CancellationToken, interruptible_sleep
from converge.core.errors import (
    PROP_ATTEMPTS,
    PROP_REFRESH_EXHAUSTED,
    PROP_RETRIES_EXHAUSTED,
    Disposition,
    ErrorClassifier,
    Fault,
)
from converge.core.logging import ConvergeLogger, get_logger
from converge.execution.credentials import CredentialRefreshCoordinator
from converge.execution.policy import RetryPolicy

_logger = get_logger("retrier")

T = TypeVar("T")

SleepFn = Callable[[float, CancellationToken | None], Awaitable[None]]


class BackoffRetrier:
    """Executes remote operations with linear-capped backoff.

    Attributes:
        policy: Default RetryPolicy used when ``execute`` is not given one.
        coordinator: Optional credential refresh collaborator. Without one,
            credential faults are terminal.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        coordinator: CredentialRefreshCoordinator | None = None,
        classifier: ErrorClassifier | None = None,
        sleep: SleepFn = interruptible_sleep,
        name: str = "default",
    ) -> None:
        """Initialize the retrier.

        Args:
            policy: Default policy. Defaults to ``RetryPolicy()``.
            coordinator: Handles ``retryable_after_refresh`` failures.
            classifier: Maps failures to dispositions.
            sleep: Awaitable used between attempts; receives the delay and the
                cancellation token. Replaced in tests to avoid real waits.
            name: Name for this retrier (used in logging).
        """
        self._policy = policy or RetryPolicy()
        self._coordinator = coordinator
        self._classifier = classifier or ErrorClassifier()
        self._sleep = sleep
        self._name = name

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def coordinator(self) -> CredentialRefreshCoordinator | None:
        return self._coordinator

    @property
    def classifier(self) -> ErrorClassifier:
        return self._classifier

    @property
    def name(self) -> str:
        return self._name

    async def execute(
        self,
        op: Callable[[], Awaitable[T]],
        *,
        policy: RetryPolicy | None = None,
        cancel: CancellationToken | None = None,
        operation: str = "operation",
    ) -> T:
        """Run ``op`` until it succeeds or a terminal condition is reached.

        Args:
            op: Zero-argument coroutine function making one remote attempt.
            policy: Overrides the retrier's default policy for this call.
            cancel: Checked before every attempt and every sleep.
            operation: Name used in log entries.

        Returns:
            Whatever ``op`` returns on its first successful attempt.

        Raises:
            Fault: The terminal fault, the last transient fault marked as
                retries-exhausted, a refresh fault, or a ``cancelled`` fault.
        """
        policy = policy or self._policy
        log = _logger.bind(retrier=self._name, operation=operation)

        attempt = 1
        refresh_cycles = 0

        while True:
            if cancel is not None:
                cancel.raise_if_cancelled()

            generation = self._credential_generation()
            try:
                result = await op()
            except Exception as exc:
                fault = self._classifier.to_fault(exc)
            else:
                if attempt > 1 or refresh_cycles:
                    log.info(
                        "retrier.succeeded",
                        attempt=attempt,
                        refresh_cycles=refresh_cycles,
                    )
                return result

            disposition = self._classifier.classify(fault)

            if disposition is Disposition.TERMINAL:
                log.info(
                    "retrier.terminal_failure",
                    attempt=attempt,
                    code=fault.code,
                    category=fault.category.value,
                    error=fault.message,
                )
                raise fault

            if disposition is Disposition.RETRYABLE_AFTER_REFRESH:
                refresh_cycles = await self._refresh(
                    fault, generation, refresh_cycles, policy, cancel, log
                )
                continue

            if attempt >= policy.max_attempts:
                log.warning(
                    "retrier.exhausted",
                    attempts=attempt,
                    code=fault.code,
                    error=fault.message,
                )
                raise fault.wrap(
                    f"retry budget exhausted after {attempt} attempts"
                ).with_properties(
                    **{PROP_RETRIES_EXHAUSTED: "true", PROP_ATTEMPTS: str(attempt)}
                )

            attempt += 1
            delay = policy.delay_before(attempt)
            log.warning(
                "retrier.attempt_failed",
                attempt=attempt - 1,
                max_attempts=policy.max_attempts,
                code=fault.code,
                error=fault.message,
                delay_seconds=delay,
            )
            await self._sleep(delay, cancel)

    async def _refresh(
        self,
        fault: Fault,
        generation: int | None,
        refresh_cycles: int,
        policy: RetryPolicy,
        cancel: CancellationToken | None,
        log: ConvergeLogger,
    ) -> int:
        """Spend refresh cycles until the credential is replaced.

        Returns:
            The updated refresh cycle count.

        Raises:
            Fault: When no coordinator is configured, the budget is spent, or
                the exchange fails.
        """
        coordinator = self._coordinator
        budget = coordinator.max_refresh_cycles if coordinator is not None else 0

        if refresh_cycles >= budget:
            log.warning(
                "retrier.refresh_budget_exhausted",
                refresh_cycles=refresh_cycles,
                code=fault.code,
            )
            raise fault.wrap(
                f"credential refresh budget exhausted after {refresh_cycles} cycles"
            ).with_properties(**{PROP_REFRESH_EXHAUSTED: "true"})

        assert coordinator is not None
        while True:
            if cancel is not None:
                cancel.raise_if_cancelled()
            refresh_cycles += 1
            log.info("retrier.refreshing_credential", refresh_cycle=refresh_cycles)
            refresh_fault = await coordinator.refresh(fault, observed_generation=generation)
            if refresh_fault is None:
                return refresh_cycles

            retry_refresh = (
                self._classifier.classify(refresh_fault) is Disposition.RETRYABLE_TRANSIENT
                and refresh_cycles < budget
            )
            if not retry_refresh:
                log.error(
                    "retrier.refresh_failed",
                    refresh_cycles=refresh_cycles,
                    code=refresh_fault.code,
                    error=refresh_fault.message,
                )
                if refresh_cycles >= budget:
                    refresh_fault = refresh_fault.with_properties(
                        **{PROP_REFRESH_EXHAUSTED: "true"}
                    )
                raise refresh_fault

            await self._sleep(policy.base_interval, cancel)

    def _credential_generation(self) -> int | None:
        if self._coordinator is None:
            return None
        return self._coordinator.store.generation

    def retrying(
        self,
        operation: str | None = None,
        *,
        policy: RetryPolicy | None = None,
    ) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
        """Decorator routing every call of an async function through ``execute``.

        Example:
            @retrier.retrying("get_volume")
            async def get_volume(volume_id: str) -> Volume: ...
        """

        def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
            name = operation or fn.__name__

            @functools.wraps(fn)
            async def wrapper(*args: Any, **kwargs: Any) -> T:
                return await self.execute(
                    lambda: fn(*args, **kwargs), policy=policy, operation=name
                )

            return wrapper

        return decorator

    def __repr__(self) -> str:
        p = self._policy
        return (
            f"BackoffRetrier(name={self._name!r}, max_attempts={p.max_attempts}, "
            f"base_interval={p.base_interval}, max_interval={p.max_interval})"
        )
