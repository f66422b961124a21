"""The Fault error type.

A Fault is the structured, immutable error value that flows through the
retrier and poller and is ultimately raised to the caller. It behaves like
any other exception (``raise``/``except``) while carrying enough structure
for classification and diagnostics:

- code: open reason code string (see ReasonCode)
- category: closed FaultCategory used by the classifier
- message: human-readable description (``str(fault)``)
- wrapped: ordered tuple of underlying cause descriptions
- properties: read-only string mapping (RequestID, StatusCode, State, ...)

Wrapping and property stamping return new Faults; existing ones are never
modified.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from .codes import FaultCategory, ReasonCode, default_category

# Well-known property keys
PROP_REQUEST_ID = "RequestID"
PROP_STATUS_CODE = "StatusCode"
PROP_STATE = "State"
PROP_ATTEMPTS = "Attempts"
PROP_RETRIES_EXHAUSTED = "RetriesExhausted"
PROP_REFRESH_EXHAUSTED = "RefreshBudgetExhausted"

_FROZEN_FIELDS = frozenset({"code", "category", "message", "wrapped", "properties"})


class Fault(Exception):
    """Structured, immutable error value.

    Example:
        fault = Fault(
            "Failed to find 'vol-1' volume ID.",
            code=ReasonCode.RETRIEVAL_FAILED,
            wrapped=["StorageFindFailedWithVolumeId"],
            properties={"StatusCode": "404"},
        )
        raise fault.with_properties(RequestID="req-42")
    """

    def __init__(
        self,
        message: str = "",
        *,
        code: str = "",
        category: FaultCategory | None = None,
        wrapped: Iterable[str] = (),
        properties: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        code = code or ReasonCode.UNCLASSIFIED
        object.__setattr__(self, "_code", code)
        object.__setattr__(self, "_category", category or default_category(code))
        object.__setattr__(self, "_message", message)
        object.__setattr__(self, "_wrapped", tuple(str(w) for w in wrapped))
        object.__setattr__(
            self,
            "_properties",
            MappingProxyType({str(k): str(v) for k, v in (properties or {}).items()}),
        )

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _FROZEN_FIELDS or name.lstrip("_") in _FROZEN_FIELDS:
            raise AttributeError(f"Fault.{name.lstrip('_')} is read-only")
        # __traceback__, __cause__, __context__ are still managed by the interpreter
        super().__setattr__(name, value)

    @property
    def code(self) -> str:
        return self._code  # type: ignore[attr-defined, no-any-return]

    @property
    def category(self) -> FaultCategory:
        return self._category  # type: ignore[attr-defined, no-any-return]

    @property
    def message(self) -> str:
        return self._message  # type: ignore[attr-defined, no-any-return]

    @property
    def wrapped(self) -> tuple[str, ...]:
        return self._wrapped  # type: ignore[attr-defined, no-any-return]

    @property
    def properties(self) -> Mapping[str, str]:
        return self._properties  # type: ignore[attr-defined, no-any-return]

    @property
    def request_id(self) -> str | None:
        return self.properties.get(PROP_REQUEST_ID)

    @property
    def retries_exhausted(self) -> bool:
        """True if the retrier gave up after spending its attempt budget."""
        return self.properties.get(PROP_RETRIES_EXHAUSTED) == "true"

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, category={self.category.value!r}, "
            f"message={self.message!r})"
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return (
            _rebuild,
            (type(self), self.message, self.code, self.category, self.wrapped,
             dict(self.properties)),
        )

    def _replace(self, **changes: Any) -> Fault:
        fields: dict[str, Any] = {
            "code": self.code,
            "category": self.category,
            "wrapped": self.wrapped,
            "properties": self.properties,
        }
        fields.update(changes)
        new = _rebuild(type(self), self.message, **fields)
        new.__cause__ = self.__cause__
        return new

    def wrap(self, cause: str | BaseException) -> Fault:
        """Return a new Fault with ``cause`` appended to the wrapped chain."""
        return self._replace(wrapped=(*self.wrapped, str(cause)))

    def with_properties(self, **props: str) -> Fault:
        """Return a new Fault with ``props`` merged into its properties."""
        merged = dict(self.properties)
        merged.update({k: str(v) for k, v in props.items()})
        return self._replace(properties=merged)

    def describe(self) -> str:
        """Render the detailed one-line diagnostic form.

        Format: ``{Code:..., Type:..., Description:..., BackendError:..., RC:...}``
        """
        backend = "; ".join(self.wrapped)
        rc = self.properties.get(PROP_STATUS_CODE, "")
        return (
            f"{{Code:{self.code}, Type:{self.category.value}, "
            f"Description:{self.message}, BackendError:{backend}, RC:{rc}}}"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "wrapped": list(self.wrapped),
            "properties": dict(self.properties),
        }

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        *,
        message: str | None = None,
        code: str = "",
        category: FaultCategory | None = None,
        properties: Mapping[str, str] | None = None,
    ) -> Fault:
        """Build a Fault around an arbitrary exception.

        If ``exc`` already is a Fault and no overrides are given it is returned
        unchanged.
        """
        if isinstance(exc, Fault) and message is None and not code and category is None:
            return exc.with_properties(**properties) if properties else exc
        fault = cls(
            message if message is not None else (str(exc) or type(exc).__name__),
            code=code,
            category=category,
            wrapped=[f"{type(exc).__name__}: {exc}"],
            properties=properties,
        )
        fault.__cause__ = exc
        return fault


class ConfigurationError(Fault, ValueError):
    """Invalid retry, poll, or resilience configuration."""

    def __init__(
        self,
        message: str = "",
        *,
        code: str = "",
        category: FaultCategory | None = None,
        wrapped: Iterable[str] = (),
        properties: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message,
            code=code or ReasonCode.INVALID_CONFIGURATION,
            category=category or FaultCategory.CONFIGURATION,
            wrapped=wrapped,
            properties=properties,
        )


def _rebuild(
    cls: type[Fault],
    message: str,
    code: str = "",
    category: FaultCategory | None = None,
    wrapped: Iterable[str] = (),
    properties: Mapping[str, str] | None = None,
) -> Fault:
    return cls(message, code=code, category=category, wrapped=wrapped, properties=properties)
