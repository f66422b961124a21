"""ErrorClassifier: maps failures to retry dispositions.

The classifier is a pure function of its input. Faults are classified by
their closed ``FaultCategory``; raw exceptions coming straight out of a
transport library are inspected structurally first (exception types, HTTP
status) and only fall back to message signatures when nothing structural is
known about them.
"""

from __future__ import annotations

import asyncio
import re
import socket
from collections.abc import Iterable

import httpx

from converge.core.logging import get_logger

from .codes import Disposition, FaultCategory, ReasonCode
from .models import PROP_STATUS_CODE, Fault

# Module-level logger for error classification
_logger = get_logger("errors")


# =============================================================================
# Default signature strings for opaque transport errors.
# Only consulted for exceptions that carry no structure we understand.
# =============================================================================

DEFAULT_TRANSIENT_PATTERNS: list[str] = [
    r"connection.?reset",
    r"connection.?refused",
    r"connection.?aborted",
    r"broken pipe",
    r"\bEOF\b",
    r"i/o timeout",
    r"no such host",
    r"TLS handshake timeout",
    r"network.?unreachable",
    r"ECONNRESET",
    r"ECONNREFUSED",
    r"ETIMEDOUT",
]

_CATEGORY_DISPOSITIONS: dict[FaultCategory, Disposition] = {
    FaultCategory.NETWORK: Disposition.RETRYABLE_TRANSIENT,
    FaultCategory.AUTHENTICATION_FAILED: Disposition.RETRYABLE_AFTER_REFRESH,
}

# Transport exceptions that are connection-level by construction
_TRANSIENT_TYPES: tuple[type[BaseException], ...] = (
    httpx.NetworkError,
    httpx.TimeoutException,
    httpx.RemoteProtocolError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
    socket.gaierror,
)

_STATUS_CATEGORIES: dict[int, FaultCategory] = {
    401: FaultCategory.AUTHENTICATION_FAILED,
    403: FaultCategory.PERMISSION_DENIED,
    404: FaultCategory.NOT_FOUND,
    409: FaultCategory.CONFLICT,
}


class ErrorClassifier:
    """Classifies failures into Terminal / RetryableTransient / RetryableAfterRefresh.

    Example:
        classifier = ErrorClassifier()
        disposition = classifier.classify(fault)
        if disposition is Disposition.RETRYABLE_TRANSIENT:
            ...

    Thread-safe: holds only compiled patterns, never mutated after init.
    """

    def __init__(self, transient_patterns: Iterable[str] | None = None) -> None:
        """Initialize the classifier.

        Args:
            transient_patterns: Regex signatures for opaque errors that should
                be treated as transient. Defaults to DEFAULT_TRANSIENT_PATTERNS.
        """
        patterns = list(
            DEFAULT_TRANSIENT_PATTERNS if transient_patterns is None else transient_patterns
        )
        self._transient_re = (
            re.compile("|".join(f"(?:{p})" for p in patterns), re.IGNORECASE)
            if patterns
            else None
        )

    def classify(self, error: BaseException) -> Disposition:
        """Classify a Fault or raw exception.

        Args:
            error: The failure raised by an operation or probe.

        Returns:
            The retry disposition. Identical input always yields the same value.
        """
        if isinstance(error, Fault):
            return self.classify_category(error.category)
        return self.classify_category(self._category_for(error))

    @staticmethod
    def classify_category(category: FaultCategory) -> Disposition:
        """Map a closed category to its disposition."""
        return _CATEGORY_DISPOSITIONS.get(category, Disposition.TERMINAL)

    def to_fault(self, error: BaseException) -> Fault:
        """Normalize any exception into a Fault with a matching category."""
        if isinstance(error, Fault):
            return error

        category = self._category_for(error)
        properties: dict[str, str] = {}
        if isinstance(error, httpx.HTTPStatusError):
            properties[PROP_STATUS_CODE] = str(error.response.status_code)
            request_id = error.response.headers.get("X-Request-ID")
            if request_id:
                properties["RequestID"] = request_id

        code = ReasonCode.NETWORK if category is FaultCategory.NETWORK else ""
        fault = Fault.from_exception(
            error,
            code=code or ReasonCode.UNCLASSIFIED,
            category=category,
            properties=properties,
        )
        _logger.debug(
            "errors.normalized",
            error_type=type(error).__name__,
            category=category.value,
        )
        return fault

    def _category_for(self, error: BaseException) -> FaultCategory:
        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            if status in _STATUS_CATEGORIES:
                return _STATUS_CATEGORIES[status]
            if 400 <= status < 500:
                return FaultCategory.INVALID_REQUEST
            return FaultCategory.UNCLASSIFIED

        if isinstance(error, _TRANSIENT_TYPES):
            return FaultCategory.NETWORK

        if self._transient_re is not None and self._transient_re.search(str(error)):
            return FaultCategory.NETWORK

        return FaultCategory.UNCLASSIFIED
