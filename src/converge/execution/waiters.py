"""Wait operations for block-storage resources.

Each wait is a thin adapter over StateConvergencePoller: it validates the
identifiers it needs, picks the target and error states, and hands the
caller's probe to the poller. The probe is supplied by the transport layer
and returns the resource's status string, or None once the resource is gone.
"""

from __future__ import annotations

from converge.core.cancellation import CancellationToken
from converge.core.errors import Fault, FaultCategory, ReasonCode
from converge.core.logging import get_logger
from converge.execution.policy import NOT_FOUND, PollSpec
from converge.execution.poller import StateConvergencePoller, StateProbe

_logger = get_logger("waiters")

VOLUME_AVAILABLE = "available"
ATTACHMENT_ATTACHED = "attached"
ATTACHMENT_DETACHED = "detached"
SNAPSHOT_STABLE = "stable"

VOLUME_ERROR_STATES = frozenset({"failed", "unusable"})
ATTACHMENT_ERROR_STATES = frozenset({"failed", "unusable"})
SNAPSHOT_ERROR_STATES = frozenset({"failed"})


def _require(**fields: str | None) -> None:
    missing = [name for name, value in fields.items() if not value]
    if missing:
        raise Fault(
            f"Required field(s) missing: {', '.join(missing)}",
            code=ReasonCode.REQUIRED_FIELD_MISSING,
            category=FaultCategory.INVALID_REQUEST,
            properties={"MissingFields": ",".join(missing)},
        )


class ResourceWaiter:
    """Resource-specific convergence waits sharing one poller and cadence.

    Example:
        waiter = ResourceWaiter(interval=5, deadline=600)
        await waiter.wait_for_detach(probe, volume_id="vol-1", instance_id="i-1")
    """

    def __init__(
        self,
        poller: StateConvergencePoller | None = None,
        *,
        interval: float = 5.0,
        deadline: float = 300.0,
    ) -> None:
        self._poller = poller or StateConvergencePoller()
        self._interval = interval
        self._deadline = deadline

    @property
    def poller(self) -> StateConvergencePoller:
        return self._poller

    def spec(
        self, targets: set[str] | frozenset[str], errors: frozenset[str] = frozenset()
    ) -> PollSpec:
        return PollSpec(targets, errors, interval=self._interval, deadline=self._deadline)

    async def wait_for_volume_available(
        self,
        probe: StateProbe,
        volume_id: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Wait for a newly created or expanded volume to become available."""
        _require(volume_id=volume_id)
        _logger.debug("waiters.volume_available", volume_id=volume_id)
        await self._poller.wait_for(
            probe,
            self.spec({VOLUME_AVAILABLE}, VOLUME_ERROR_STATES),
            cancel=cancel,
            resource=volume_id,
        )

    async def wait_for_attach(
        self,
        probe: StateProbe,
        volume_id: str,
        instance_id: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Wait for a volume attachment to reach ``attached``."""
        _require(volume_id=volume_id, instance_id=instance_id)
        _logger.debug("waiters.attach", volume_id=volume_id, instance_id=instance_id)
        await self._poller.wait_for(
            probe,
            self.spec({ATTACHMENT_ATTACHED}, ATTACHMENT_ERROR_STATES),
            cancel=cancel,
            resource=f"{instance_id}/{volume_id}",
        )

    async def wait_for_detach(
        self,
        probe: StateProbe,
        volume_id: str,
        instance_id: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Wait for a volume attachment to disappear (or report ``detached``)."""
        _require(volume_id=volume_id, instance_id=instance_id)
        _logger.debug("waiters.detach", volume_id=volume_id, instance_id=instance_id)
        await self._poller.wait_for(
            probe,
            self.spec({NOT_FOUND, ATTACHMENT_DETACHED}),
            cancel=cancel,
            resource=f"{instance_id}/{volume_id}",
        )

    async def wait_for_snapshot_ready(
        self,
        probe: StateProbe,
        snapshot_id: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Wait for a snapshot to become ``stable``."""
        _require(snapshot_id=snapshot_id)
        await self._poller.wait_for(
            probe,
            self.spec({SNAPSHOT_STABLE}, SNAPSHOT_ERROR_STATES),
            cancel=cancel,
            resource=snapshot_id,
        )

    async def wait_for_volume_deleted(
        self,
        probe: StateProbe,
        volume_id: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Wait until a deleted volume is no longer returned by the service."""
        _require(volume_id=volume_id)
        await self._poller.wait_for(
            probe,
            self.spec({NOT_FOUND}, VOLUME_ERROR_STATES),
            cancel=cancel,
            resource=volume_id,
        )
