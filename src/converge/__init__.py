"""converge: retries, credential refresh and convergence waits for cloud control planes.

Typical wiring:

    config = ResilienceConfig.from_yaml(Path("resilience.yaml"))
    store = CredentialStore()
    coordinator = CredentialRefreshCoordinator(
        store, source, max_refresh_cycles=config.max_refresh_cycles_per_operation
    )
    retrier = BackoffRetrier(config.retry_policy(), coordinator=coordinator,
                             classifier=config.classifier())
    poller = StateConvergencePoller(classifier=config.classifier(), coordinator=coordinator)
"""

from converge.core.cancellation import CancellationToken
from converge.core.config import LogConfig, ResilienceConfig
from converge.core.errors import (
    ConfigurationError,
    Disposition,
    ErrorClassifier,
    Fault,
    FaultCategory,
    ReasonCode,
)
from converge.execution import (
    NOT_FOUND,
    BackoffRetrier,
    Credential,
    CredentialRefreshCoordinator,
    CredentialStore,
    PollSpec,
    ResourceWaiter,
    RetryPolicy,
    StateConvergencePoller,
)

__version__ = "0.1.0"

__all__ = [
    "BackoffRetrier",
    "CancellationToken",
    "ConfigurationError",
    "Credential",
    "CredentialRefreshCoordinator",
    "CredentialStore",
    "Disposition",
    "ErrorClassifier",
    "Fault",
    "FaultCategory",
    "LogConfig",
    "NOT_FOUND",
    "PollSpec",
    "ReasonCode",
    "ResilienceConfig",
    "ResourceWaiter",
    "RetryPolicy",
    "StateConvergencePoller",
    "__version__",
]
