"""Execution layer: retries, credential refresh, and convergence polling."""

from converge.execution.credentials import (
    Credential,
    CredentialRefreshCoordinator,
    CredentialSource,
    CredentialStore,
)
from converge.execution.policy import NOT_FOUND, PollSpec, RetryPolicy
from converge.execution.poller import PollState, StateConvergencePoller, StateProbe
from converge.execution.retrier import BackoffRetrier
from converge.execution.waiters import ResourceWaiter

__all__ = [
    "BackoffRetrier",
    "Credential",
    "CredentialRefreshCoordinator",
    "CredentialSource",
    "CredentialStore",
    "NOT_FOUND",
    "PollSpec",
    "PollState",
    "ResourceWaiter",
    "RetryPolicy",
    "StateConvergencePoller",
    "StateProbe",
]
