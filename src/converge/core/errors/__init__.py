"""Fault type and error classification.

Re-exports all public symbols.
"""

from converge.core.errors.codes import (
    Disposition,
    FaultCategory,
    ReasonCode,
    default_category,
)
from converge.core.errors.models import (
    PROP_ATTEMPTS,
    PROP_REFRESH_EXHAUSTED,
    PROP_REQUEST_ID,
    PROP_RETRIES_EXHAUSTED,
    PROP_STATE,
    PROP_STATUS_CODE,
    ConfigurationError,
    Fault,
)
from converge.core.errors.classifier import DEFAULT_TRANSIENT_PATTERNS, ErrorClassifier

__all__ = [
    "Disposition",
    "FaultCategory",
    "ReasonCode",
    "default_category",
    "PROP_ATTEMPTS",
    "PROP_REFRESH_EXHAUSTED",
    "PROP_REQUEST_ID",
    "PROP_RETRIES_EXHAUSTED",
    "PROP_STATE",
    "PROP_STATUS_CODE",
    "ConfigurationError",
    "Fault",
    "DEFAULT_TRANSIENT_PATTERNS",
    "ErrorClassifier",
]
