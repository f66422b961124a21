"""Generic convergence wait for asynchronous remote operations.

After an initiating call (create, attach, detach, delete) the control plane
reports the resource in some transitional state until it settles.
StateConvergencePoller probes that state on a fixed cadence until it reaches
a target state, hits an error state, or the deadline passes.

Per-invocation state machine:

    POLLING -> CONVERGED     probe returned a target state
    POLLING -> FAILED        probe returned an error state, or the resource
                             vanished and NOT_FOUND is not a target
    POLLING -> TIMED_OUT     deadline elapsed before convergence
    POLLING -> PROBE_ERROR   probe raised; transient faults go back to
                             POLLING, terminal faults end the wait

Example usage:
    poller = StateConvergencePoller()
    spec = PollSpec({"available"}, {"failed"}, interval=5, deadline=300)
    await poller.wait_for(lambda: client.volume_status(volume_id), spec,
                          resource=volume_id)
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from enum import Enum

from converge.core.cancellation import CancellationToken, interruptible_sleep
from converge.core.errors import (
    PROP_REFRESH_EXHAUSTED,
    PROP_STATE,
    Disposition,
    ErrorClassifier,
    Fault,
    FaultCategory,
    ReasonCode,
)
from converge.core.logging import ConvergeLogger, get_logger
from converge.execution.credentials import CredentialRefreshCoordinator
from converge.execution.policy import NOT_FOUND, PollSpec
from converge.execution.retrier import SleepFn

_logger = get_logger("poller")

StateProbe = Callable[[], Awaitable[str | None]]
"""Reads the current state once. Returns None or NOT_FOUND if the resource is absent."""

PROP_PROBES = "Probes"
PROP_RESOURCE = "Resource"


class PollState(str, Enum):
    """States of a single ``wait_for`` invocation."""

    POLLING = "polling"
    CONVERGED = "converged"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    PROBE_ERROR = "probe_error"


class StateConvergencePoller:
    """Polls a StateProbe until the resource converges.

    The cadence is fixed at ``spec.interval``; total latency is bounded by
    ``spec.deadline`` alone.
    """

    def __init__(
        self,
        *,
        classifier: ErrorClassifier | None = None,
        coordinator: CredentialRefreshCoordinator | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn = interruptible_sleep,
    ) -> None:
        """Initialize the poller.

        Args:
            classifier: Decides whether a probe failure aborts the wait.
            coordinator: If set, probe faults asking for a credential refresh
                trigger one (bounded by its max_refresh_cycles) instead of
                ending the wait.
            clock: Monotonic clock in seconds. Replaced in tests.
            sleep: Awaitable used between probes. Replaced in tests.
        """
        self._classifier = classifier or ErrorClassifier()
        self._coordinator = coordinator
        self._clock = clock
        self._sleep = sleep

    async def wait_for(
        self,
        probe: StateProbe,
        spec: PollSpec,
        *,
        cancel: CancellationToken | None = None,
        resource: str = "resource",
    ) -> None:
        """Wait until ``probe`` reports one of ``spec.target_states``.

        Args:
            probe: Zero-argument coroutine function reading the current state.
            spec: Target/error states, interval and deadline.
            cancel: Checked before every probe and every sleep.
            resource: Identifier used in log entries and fault properties.

        Raises:
            Fault: ``unexpected_state`` on an error state or unexpected
                disappearance, ``timed_out`` when the deadline passes,
                ``cancelled`` on cancellation, or the probe's own terminal fault.
        """
        log = _logger.bind(resource=resource)
        started = self._clock()
        probes = 0
        refresh_cycles = 0
        last_state: str | None = None

        log.debug(
            "poller.started",
            targets=sorted(spec.target_states),
            errors=sorted(spec.error_states),
            interval=spec.interval,
            deadline=spec.deadline,
        )

        while True:
            if cancel is not None:
                cancel.raise_if_cancelled()

            generation = self._credential_generation()
            probes += 1
            state, fault = await self._probe_once(probe)

            if fault is not None:
                disposition = self._classifier.classify(fault)
                if disposition is Disposition.RETRYABLE_AFTER_REFRESH:
                    refresh_cycles, refreshed = await self._refresh(
                        fault, generation, refresh_cycles, cancel, log
                    )
                    if refreshed:
                        # Re-probe with the new credential straight away
                        continue
                elif disposition is not Disposition.RETRYABLE_TRANSIENT:
                    log.info(
                        "poller.probe_failed",
                        poll_state=PollState.PROBE_ERROR.value,
                        probes=probes,
                        code=fault.code,
                        error=fault.message,
                    )
                    raise fault
                else:
                    # Momentarily unreachable; keep waiting
                    log.debug("poller.probe_transient_error", probes=probes, error=fault.message)
            else:
                last_state = state
                outcome = self._evaluate(state, spec)
                if outcome is PollState.CONVERGED:
                    log.info(
                        "poller.converged",
                        state=state,
                        probes=probes,
                        elapsed_seconds=round(self._clock() - started, 3),
                    )
                    return
                if outcome is PollState.FAILED:
                    log.warning("poller.unexpected_state", state=state, probes=probes)
                    raise self._unexpected_state_fault(resource, state, probes)

            elapsed = self._clock() - started
            if elapsed >= spec.deadline:
                log.warning(
                    "poller.timed_out",
                    state=last_state,
                    probes=probes,
                    deadline=spec.deadline,
                )
                raise self._timeout_fault(resource, last_state, probes, spec.deadline)

            await self._sleep(min(spec.interval, spec.deadline - elapsed), cancel)

    async def _refresh(
        self,
        fault: Fault,
        generation: int | None,
        refresh_cycles: int,
        cancel: CancellationToken | None,
        log: ConvergeLogger,
    ) -> tuple[int, bool]:
        """Spend one refresh cycle on a credential fault raised by the probe.

        Returns:
            The updated refresh cycle count, and whether the credential was
            replaced. False means the exchange failed transiently with budget
            left; the wait then carries on at its normal cadence.

        Raises:
            Fault: When no coordinator is configured, the budget is spent, or
                the exchange fails for good.
        """
        coordinator = self._coordinator
        budget = coordinator.max_refresh_cycles if coordinator is not None else 0

        if refresh_cycles >= budget:
            log.warning(
                "poller.refresh_budget_exhausted",
                refresh_cycles=refresh_cycles,
                code=fault.code,
            )
            raise fault.wrap(
                f"credential refresh budget exhausted after {refresh_cycles} cycles"
            ).with_properties(**{PROP_REFRESH_EXHAUSTED: "true"})

        assert coordinator is not None
        if cancel is not None:
            cancel.raise_if_cancelled()
        refresh_cycles += 1
        log.info("poller.refreshing_credential", refresh_cycle=refresh_cycles)
        refresh_fault = await coordinator.refresh(fault, observed_generation=generation)
        if refresh_fault is None:
            return refresh_cycles, True

        if (
            self._classifier.classify(refresh_fault) is Disposition.RETRYABLE_TRANSIENT
            and refresh_cycles < budget
        ):
            log.debug(
                "poller.refresh_transient_error",
                refresh_cycles=refresh_cycles,
                error=refresh_fault.message,
            )
            return refresh_cycles, False

        log.error(
            "poller.refresh_failed",
            refresh_cycles=refresh_cycles,
            code=refresh_fault.code,
            error=refresh_fault.message,
        )
        if refresh_cycles >= budget:
            refresh_fault = refresh_fault.with_properties(**{PROP_REFRESH_EXHAUSTED: "true"})
        raise refresh_fault

    def _credential_generation(self) -> int | None:
        if self._coordinator is None:
            return None
        return self._coordinator.store.generation

    async def _probe_once(self, probe: StateProbe) -> tuple[str, Fault | None]:
        try:
            state = await probe()
        except Exception as exc:
            fault = self._classifier.to_fault(exc)
            if fault.category is FaultCategory.NOT_FOUND:
                return NOT_FOUND, None
            return "", fault
        return (NOT_FOUND if state is None else state), None

    @staticmethod
    def _evaluate(state: str, spec: PollSpec) -> PollState:
        if state in spec.target_states:
            return PollState.CONVERGED
        if state in spec.error_states or state == NOT_FOUND:
            return PollState.FAILED
        return PollState.POLLING

    @staticmethod
    def _unexpected_state_fault(resource: str, state: str, probes: int) -> Fault:
        if state == NOT_FOUND:
            message = f"'{resource}' no longer exists"
        else:
            message = f"'{resource}' reached unexpected state '{state}'"
        return Fault(
            message,
            code=ReasonCode.UNEXPECTED_STATE,
            category=FaultCategory.UNEXPECTED_STATE,
            properties={PROP_STATE: state, PROP_PROBES: str(probes), PROP_RESOURCE: resource},
        )

    @staticmethod
    def _timeout_fault(
        resource: str, state: str | None, probes: int, deadline: float
    ) -> Fault:
        properties = {PROP_PROBES: str(probes), PROP_RESOURCE: resource}
        if state is not None:
            properties[PROP_STATE] = state
        return Fault(
            f"Timed out after {deadline:g}s waiting for '{resource}' "
            f"(last state: {state or 'unknown'})",
            code=ReasonCode.WAIT_TIMED_OUT,
            category=FaultCategory.TIMED_OUT,
            properties=properties,
        )
