"""Retry and poll parameters.

RetryPolicy and PollSpec are immutable value objects. A single instance may
be shared by any number of concurrent ``execute``/``wait_for`` calls; all
per-call counters live inside the call.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from converge.core.errors import ConfigurationError

NOT_FOUND = "<not-found>"
"""State label meaning the polled resource no longer exists."""


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded, linear-capped backoff schedule.

    The delay before attempt ``k`` (k >= 2) is
    ``min(base_interval * (k - 1), max_interval)``; attempt 1 runs
    immediately. With ``base_interval=5, max_interval=10`` the delays before
    attempts 2, 3, 4 are 5, 10, 10. The remote API enforces fixed-window rate
    limits, so the growth is linear rather than exponential.

    Attributes:
        max_attempts: Total attempts including the first (1 = no retry).
        base_interval: Step added per attempt, in seconds.
        max_interval: Upper bound on any single delay, in seconds.
    """

    max_attempts: int = 3
    base_interval: float = 5.0
    max_interval: float = 10.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError(
                f"max_attempts must be >= 1, got {self.max_attempts}"
            )
        if self.base_interval < 0 or self.max_interval < 0:
            raise ConfigurationError(
                f"intervals must be non-negative, got base_interval={self.base_interval}, "
                f"max_interval={self.max_interval}"
            )
        if self.base_interval > self.max_interval:
            raise ConfigurationError(
                f"base_interval ({self.base_interval}) must not exceed "
                f"max_interval ({self.max_interval})"
            )

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before ``attempt`` (1-indexed)."""
        if attempt <= 1:
            return 0.0
        return min(self.base_interval * (attempt - 1), self.max_interval)

    def schedule(self) -> list[float]:
        """Delays before attempts 2..max_attempts."""
        return [self.delay_before(k) for k in range(2, self.max_attempts + 1)]

    @property
    def max_total_delay(self) -> float:
        return sum(self.schedule())


@dataclass(frozen=True)
class PollSpec:
    """What a convergence wait is waiting for.

    Attributes:
        target_states: States that end the wait successfully. Include
            NOT_FOUND to treat disappearance of the resource as success.
        error_states: States the resource can never leave; reaching one fails.
        interval: Fixed seconds between probes.
        deadline: Seconds after the first probe at which the wait gives up.
    """

    target_states: frozenset[str]
    error_states: frozenset[str] = field(default_factory=frozenset)
    interval: float = 5.0
    deadline: float = 300.0

    def __init__(
        self,
        target_states: Iterable[str],
        error_states: Iterable[str] = (),
        interval: float = 5.0,
        deadline: float = 300.0,
    ) -> None:
        # Accept any iterable of labels; store frozensets
        object.__setattr__(self, "target_states", frozenset(target_states))
        object.__setattr__(self, "error_states", frozenset(error_states))
        object.__setattr__(self, "interval", interval)
        object.__setattr__(self, "deadline", deadline)
        self.__post_init__()

    def __post_init__(self) -> None:
        if not self.target_states:
            raise ConfigurationError("target_states must not be empty")
        overlap = self.target_states & self.error_states
        if overlap:
            raise ConfigurationError(
                f"target_states and error_states overlap: {sorted(overlap)}"
            )
        if self.interval <= 0:
            raise ConfigurationError(f"interval must be positive, got {self.interval}")
        if self.deadline < 0:
            raise ConfigurationError(f"deadline must be non-negative, got {self.deadline}")

    @property
    def accepts_not_found(self) -> bool:
        return NOT_FOUND in self.target_states
