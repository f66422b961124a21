"""Credential state and the refresh coordinator.

The Credential is the only shared mutable state in the resilience core. It
lives in a CredentialStore; operations read ``store.current`` freely, and the
only way to replace it is CredentialRefreshCoordinator.refresh(), which
serializes refreshes behind an asyncio.Lock and swaps the value in a single
assignment. Concurrent readers see either the old or the new Credential,
never a mixture.

Example usage:
    store = CredentialStore(Credential("initial-token"))
    coordinator = CredentialRefreshCoordinator(store, token_source.exchange)
    retrier = BackoffRetrier(policy, coordinator=coordinator)

    async def attach() -> Attachment:
        return await client.attach(volume_id, token=store.current.value)

    attachment = await retrier.execute(attach, operation="attach_volume")
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from converge.core.errors import (
    ConfigurationError,
    ErrorClassifier,
    Fault,
    FaultCategory,
    ReasonCode,
)
from converge.core.logging import get_logger

_logger = get_logger("credentials")


@dataclass(frozen=True)
class Credential:
    """An access credential; opaque to the core apart from its expiry."""

    value: str = field(repr=False)
    expiry: datetime | None = None

    def is_expired(self, now: datetime | None = None, skew: float = 0.0) -> bool:
        """True if ``expiry`` is set and has passed (minus ``skew`` seconds)."""
        if self.expiry is None:
            return False
        now = now or datetime.now(UTC)
        return now >= self.expiry - timedelta(seconds=skew)


CredentialSource = Callable[[], Awaitable[Credential]]
"""Performs the actual key/token exchange. Raises on failure."""


class CredentialStore:
    """Holds the current Credential and a generation counter.

    The generation increases on every replacement; the coordinator uses it to
    detect that another task already refreshed while it was waiting.
    """

    def __init__(self, credential: Credential | None = None) -> None:
        self._credential = credential
        self._generation = 0

    @property
    def current(self) -> Credential | None:
        return self._credential

    @property
    def generation(self) -> int:
        return self._generation

    def _replace(self, credential: Credential) -> None:
        # Single assignment; callers hold the coordinator lock
        self._credential = credential
        self._generation += 1


class CredentialRefreshCoordinator:
    """Replaces an invalid or expired Credential on behalf of the retrier.

    One ``refresh()`` call performs at most one exchange against the
    CredentialSource. The number of refresh cycles a single retried operation
    may spend is enforced by the retrier using ``max_refresh_cycles``.
    """

    def __init__(
        self,
        store: CredentialStore,
        source: CredentialSource,
        *,
        max_refresh_cycles: int = 1,
        expiry_skew_seconds: float = 30.0,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: Shared credential holder.
            source: Callable performing the exchange.
            max_refresh_cycles: Refresh cycles allowed per retried operation.
            expiry_skew_seconds: Treat credentials this close to expiry as expired.
            classifier: Used to recognize connection-level exchange failures.
        """
        if max_refresh_cycles < 0:
            raise ConfigurationError(
                f"max_refresh_cycles must be >= 0, got {max_refresh_cycles}"
            )
        self._store = store
        self._source = source
        self._classifier = classifier or ErrorClassifier()
        self._max_refresh_cycles = max_refresh_cycles
        self._expiry_skew = expiry_skew_seconds
        self._lock = asyncio.Lock()
        self._refresh_count = 0

    @property
    def store(self) -> CredentialStore:
        return self._store

    @property
    def max_refresh_cycles(self) -> int:
        return self._max_refresh_cycles

    @property
    def refresh_count(self) -> int:
        """Number of exchanges performed against the source so far."""
        return self._refresh_count

    async def refresh(
        self,
        trigger: Fault | None = None,
        *,
        observed_generation: int | None = None,
    ) -> Fault | None:
        """Re-derive the shared Credential.

        Args:
            trigger: The fault that made the caller request a refresh.
            observed_generation: Store generation the failing attempt ran
                with. If the store has moved on since, the credential was
                already replaced and no exchange is made.

        Returns:
            None on success, otherwise a Fault describing the failed exchange.
            The Fault is returned rather than raised so the retrier decides
            what happens next.
        """
        observed = (
            self._store.generation if observed_generation is None else observed_generation
        )
        async with self._lock:
            if self._store.generation != observed:
                # Another task replaced the credential while we waited
                _logger.debug(
                    "credentials.refresh_skipped",
                    generation=self._store.generation,
                )
                return None

            self._refresh_count += 1
            _logger.info(
                "credentials.refresh_started",
                trigger_code=trigger.code if trigger else None,
                generation=observed,
            )
            try:
                credential = await self._source()
            except Exception as exc:
                fault = self._refresh_fault(exc, trigger)
                _logger.warning(
                    "credentials.refresh_failed",
                    code=fault.code,
                    category=fault.category.value,
                    error=fault.message,
                )
                return fault

            self._store._replace(credential)
            _logger.info(
                "credentials.refreshed",
                generation=self._store.generation,
                expires=credential.expiry.isoformat() if credential.expiry else None,
            )
            return None

    async def ensure_fresh(self) -> Fault | None:
        """Refresh proactively when there is no credential or it has expired."""
        current = self._store.current
        if current is not None and not current.is_expired(skew=self._expiry_skew):
            return None
        return await self.refresh()

    def _refresh_fault(self, exc: Exception, trigger: Fault | None) -> Fault:
        if isinstance(exc, Fault):
            fault = exc
        else:
            # Connection-level failures keep their transient nature
            network = self._classifier.to_fault(exc).category is FaultCategory.NETWORK
            fault = Fault.from_exception(
                exc,
                message=f"Credential refresh failed: {exc}",
                code=ReasonCode.NETWORK if network else ReasonCode.FAILED_TOKEN_EXCHANGE,
                category=(
                    FaultCategory.NETWORK if network else FaultCategory.TOKEN_EXCHANGE_FAILED
                ),
            )
        if trigger is not None:
            fault = fault.wrap(f"refresh triggered by {trigger.code}: {trigger.message}")
        return fault
