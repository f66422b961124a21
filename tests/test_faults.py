"""Tests for converge.core.errors.models (Fault, ConfigurationError)."""

import copy
import pickle

import pytest

from converge.core.errors import (
    ConfigurationError,
    Fault,
    FaultCategory,
    ReasonCode,
    default_category,
)


class TestFaultConstruction:
    """Tests for building Faults."""

    def test_message_is_str(self):
        fault = Fault("volume not found", code=ReasonCode.RETRIEVAL_FAILED)
        assert str(fault) == "volume not found"
        assert fault.message == "volume not found"

    def test_empty_code_defaults_to_unclassified(self):
        fault = Fault("boom")
        assert fault.code == ReasonCode.UNCLASSIFIED
        assert fault.category == FaultCategory.UNCLASSIFIED

    def test_category_derived_from_known_code(self):
        fault = Fault("session gone", code=ReasonCode.INVALID_SERVICE_SESSION)
        assert fault.category == FaultCategory.AUTHENTICATION_FAILED

    def test_explicit_category_wins_over_code(self):
        fault = Fault(
            "session gone",
            code=ReasonCode.INVALID_SERVICE_SESSION,
            category=FaultCategory.RETRIEVAL_FAILED,
        )
        assert fault.category == FaultCategory.RETRIEVAL_FAILED

    def test_unknown_code_is_kept(self):
        fault = Fault("x", code="ErrorVolumeQuotaReached")
        assert fault.code == "ErrorVolumeQuotaReached"
        assert fault.category == FaultCategory.UNCLASSIFIED

    def test_wrapped_and_properties(self):
        fault = Fault(
            "failed",
            wrapped=["This is a wrapped exception", "This is another wrapped exception"],
            properties={"prop1": "val1", "prop2": "val2"},
        )
        assert fault.wrapped == (
            "This is a wrapped exception",
            "This is another wrapped exception",
        )
        assert dict(fault.properties) == {"prop1": "val1", "prop2": "val2"}

    def test_default_category_table(self):
        assert default_category(ReasonCode.NETWORK) == FaultCategory.NETWORK
        assert default_category(ReasonCode.REQUIRED_FIELD_MISSING) == FaultCategory.INVALID_REQUEST
        assert default_category("SomethingElse") == FaultCategory.UNCLASSIFIED


class TestFaultImmutability:
    """A Fault never changes after construction."""

    def test_fields_are_read_only(self):
        fault = Fault("boom", code="X")
        for name in ("code", "category", "message", "wrapped", "properties"):
            with pytest.raises(AttributeError):
                setattr(fault, name, "other")

    def test_private_fields_are_read_only(self):
        fault = Fault("boom")
        with pytest.raises(AttributeError):
            fault._code = "other"  # type: ignore[attr-defined]

    def test_properties_view_is_read_only(self):
        fault = Fault("boom", properties={"a": "1"})
        with pytest.raises(TypeError):
            fault.properties["b"] = "2"  # type: ignore[index]

    def test_source_mapping_mutation_does_not_leak(self):
        props = {"a": "1"}
        fault = Fault("boom", properties=props)
        props["a"] = "changed"
        assert fault.properties["a"] == "1"

    def test_wrap_returns_new_fault(self):
        original = Fault("boom", wrapped=["first"])
        wrapped = original.wrap("second")
        assert original.wrapped == ("first",)
        assert wrapped.wrapped == ("first", "second")
        assert wrapped.code == original.code
        assert wrapped.category == original.category

    def test_wrap_exception_uses_its_text(self):
        fault = Fault("boom").wrap(OSError("disk on fire"))
        assert fault.wrapped == ("disk on fire",)

    def test_with_properties_merges(self):
        original = Fault("boom", properties={"a": "1"})
        stamped = original.with_properties(RequestID="req-1")
        assert dict(original.properties) == {"a": "1"}
        assert dict(stamped.properties) == {"a": "1", "RequestID": "req-1"}
        assert stamped.request_id == "req-1"

    def test_interpreter_can_still_attach_traceback(self):
        with pytest.raises(Fault) as exc_info:
            raise Fault("boom")
        assert exc_info.value.__traceback__ is not None


class TestFaultRendering:
    """Tests for describe() and to_dict()."""

    def test_describe_format(self):
        fault = Fault(
            "The Service Session was not found due to error while generating IAM token.",
            code=ReasonCode.INVALID_SERVICE_SESSION,
            category=FaultCategory.RETRIEVAL_FAILED,
            wrapped=["IAM token exchange request failed"],
            properties={"StatusCode": "500"},
        )
        assert fault.describe() == (
            "{Code:InvalidServiceSession, Type:retrieval_failed, "
            "Description:The Service Session was not found due to error while generating "
            "IAM token., BackendError:IAM token exchange request failed, RC:500}"
        )

    def test_to_dict(self):
        fault = Fault("boom", code="X", wrapped=["w"], properties={"k": "v"})
        assert fault.to_dict() == {
            "code": "X",
            "category": "unclassified",
            "message": "boom",
            "wrapped": ["w"],
            "properties": {"k": "v"},
        }

    def test_repr_mentions_code(self):
        assert "ErrorNetwork" in repr(Fault("x", code=ReasonCode.NETWORK))


class TestFromException:
    """Tests for Fault.from_exception."""

    def test_wraps_exception_text_and_sets_cause(self):
        exc = OSError("connection reset by peer")
        fault = Fault.from_exception(exc, code=ReasonCode.NETWORK)
        assert fault.message == "connection reset by peer"
        assert fault.category == FaultCategory.NETWORK
        assert fault.wrapped == ("OSError: connection reset by peer",)
        assert fault.__cause__ is exc

    def test_fault_without_overrides_is_returned_as_is(self):
        fault = Fault("boom")
        assert Fault.from_exception(fault) is fault

    def test_message_override(self):
        fault = Fault.from_exception(ValueError("bad"), message="request invalid")
        assert fault.message == "request invalid"


class TestCopying:
    """Faults survive copy and pickle with all fields."""

    def test_copy(self):
        fault = Fault("boom", code="X", wrapped=["w"], properties={"k": "v"})
        clone = copy.copy(fault)
        assert clone.to_dict() == fault.to_dict()

    def test_pickle(self):
        fault = Fault("boom", code="X", wrapped=["w"], properties={"k": "v"})
        clone = pickle.loads(pickle.dumps(fault))
        assert clone.to_dict() == fault.to_dict()


class TestConfigurationError:
    """Tests for ConfigurationError."""

    def test_is_fault_and_value_error(self):
        err = ConfigurationError("max_attempts must be >= 1")
        assert isinstance(err, Fault)
        assert isinstance(err, ValueError)
        assert err.category == FaultCategory.CONFIGURATION
        assert err.code == ReasonCode.INVALID_CONFIGURATION

    def test_wrap_keeps_type(self):
        err = ConfigurationError("bad").wrap("detail")
        assert isinstance(err, ConfigurationError)
        assert err.wrapped == ("detail",)
