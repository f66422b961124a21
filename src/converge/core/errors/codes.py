"""Fault categories, reason codes, and retry dispositions.

Contains the enums used throughout converge to describe what went wrong and
what the retry machinery should do about it.

This module provides:
- FaultCategory: Closed set of coarse categories (drives classification)
- Disposition: Classifier output (drives retry behavior)
- ReasonCode: Open namespace of reason code strings (diagnostics/logging)

Category vs Code
================

A Fault carries both a ``category`` and a ``code``. Only the category is
consulted when deciding whether to retry; the code is a free-form identifier
that travels with the error for logging and user-facing rendering.

    | Category              | Disposition             |
    |-----------------------|-------------------------|
    | network               | retryable_transient     |
    | authentication_failed | retryable_after_refresh |
    | everything else       | terminal                |

Callers may use reason codes that are not listed in ``ReasonCode``; unknown
codes fall back to ``FaultCategory.UNCLASSIFIED`` unless a category is given.
"""

from __future__ import annotations

from enum import Enum


class FaultCategory(str, Enum):
    """High-level category of a Fault.

    The ErrorClassifier switches on this enum only. Adding a member is a
    deliberate change to retry behavior and must be reflected in the
    classifier's category table.
    """

    UNCLASSIFIED = "unclassified"
    """No better category is known."""

    INVALID_REQUEST = "invalid_request"
    """Malformed request or missing required field."""

    NOT_FOUND = "not_found"
    """The addressed resource does not exist."""

    CONFLICT = "conflict"
    """The request conflicts with the current resource state."""

    RETRIEVAL_FAILED = "retrieval_failed"
    """A read of remote state failed for a non-transient reason."""

    PROVISIONING_FAILED = "provisioning_failed"
    """Creating or attaching a resource failed."""

    DEPROVISIONING_FAILED = "deprovisioning_failed"
    """Deleting or detaching a resource failed."""

    AUTHENTICATION_FAILED = "authentication_failed"
    """Service session or API key is invalid or expired."""

    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
    """Exchanging an API key for an access token failed."""

    PERMISSION_DENIED = "permission_denied"
    """Credential is valid but not allowed to perform the operation."""

    NETWORK = "network"
    """Connection-level failure (refused, reset, DNS, connect timeout)."""

    TIMED_OUT = "timed_out"
    """A convergence wait exceeded its deadline."""

    UNEXPECTED_STATE = "unexpected_state"
    """A polled resource reached a state it can never recover from."""

    CANCELLED = "cancelled"
    """The caller signalled cancellation."""

    CONFIGURATION = "configuration"
    """Invalid retry/poll configuration."""


class Disposition(str, Enum):
    """What the retry machinery should do with a failure."""

    TERMINAL = "terminal"
    RETRYABLE_TRANSIENT = "retryable_transient"
    RETRYABLE_AFTER_REFRESH = "retryable_after_refresh"


class ReasonCode:
    """Well-known reason codes carried in ``Fault.code``.

    Plain string constants rather than an enum: remote services and callers
    are free to introduce their own codes.
    """

    UNCLASSIFIED = "ErrorUnclassified"
    REQUIRED_FIELD_MISSING = "ErrorRequiredFieldMissing"
    RETRIEVAL_FAILED = "ErrorRetrievalFailed"
    PROVISIONING_FAILED = "ErrorProvisioningFailed"
    DEPROVISIONING_FAILED = "ErrorDeprovisioningFailed"
    INVALID_SERVICE_SESSION = "InvalidServiceSession"
    FAILED_TOKEN_EXCHANGE = "ErrorFailedTokenExchange"
    INSUFFICIENT_AUTHENTICATION = "ErrorInsufficientAuthentication"
    NETWORK = "ErrorNetwork"
    RESOURCE_NOT_FOUND = "ErrorResourceNotFound"
    WAIT_TIMED_OUT = "ErrorWaitTimedOut"
    UNEXPECTED_STATE = "ErrorUnexpectedState"
    OPERATION_CANCELLED = "ErrorOperationCancelled"
    INVALID_CONFIGURATION = "ErrorInvalidConfiguration"


_DEFAULT_CATEGORIES: dict[str, FaultCategory] = {
    ReasonCode.UNCLASSIFIED: FaultCategory.UNCLASSIFIED,
    ReasonCode.REQUIRED_FIELD_MISSING: FaultCategory.INVALID_REQUEST,
    ReasonCode.RETRIEVAL_FAILED: FaultCategory.RETRIEVAL_FAILED,
    ReasonCode.PROVISIONING_FAILED: FaultCategory.PROVISIONING_FAILED,
    ReasonCode.DEPROVISIONING_FAILED: FaultCategory.DEPROVISIONING_FAILED,
    ReasonCode.INVALID_SERVICE_SESSION: FaultCategory.AUTHENTICATION_FAILED,
    ReasonCode.FAILED_TOKEN_EXCHANGE: FaultCategory.TOKEN_EXCHANGE_FAILED,
    ReasonCode.INSUFFICIENT_AUTHENTICATION: FaultCategory.TOKEN_EXCHANGE_FAILED,
    ReasonCode.NETWORK: FaultCategory.NETWORK,
    ReasonCode.RESOURCE_NOT_FOUND: FaultCategory.NOT_FOUND,
    ReasonCode.WAIT_TIMED_OUT: FaultCategory.TIMED_OUT,
    ReasonCode.UNEXPECTED_STATE: FaultCategory.UNEXPECTED_STATE,
    ReasonCode.OPERATION_CANCELLED: FaultCategory.CANCELLED,
    ReasonCode.INVALID_CONFIGURATION: FaultCategory.CONFIGURATION,
}


def default_category(code: str) -> FaultCategory:
    """Get the category a reason code implies when none is given explicitly."""
    return _DEFAULT_CATEGORIES.get(code, FaultCategory.UNCLASSIFIED)
