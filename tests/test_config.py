"""Tests for converge.core.config."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from converge.core.config import LogConfig, ResilienceConfig
from converge.core.errors import ConfigurationError, Disposition, FaultCategory
from converge.execution.policy import NOT_FOUND


class TestResilienceConfigDefaults:
    def test_defaults(self):
        config = ResilienceConfig()
        assert config.max_attempts == 3
        assert config.base_interval_seconds == 5.0
        assert config.max_interval_seconds == 10.0
        assert config.poll_interval_seconds == 5.0
        assert config.poll_deadline_seconds == 300.0
        assert config.max_refresh_cycles_per_operation == 1
        assert config.logging.level == "INFO"

    def test_empty_mapping_gives_defaults(self):
        assert ResilienceConfig.from_dict(None) == ResilienceConfig()


class TestResilienceConfigLoading:
    """Loading from dicts and YAML."""

    def test_from_dict(self, sample_config_dict: dict):
        config = ResilienceConfig.from_dict(sample_config_dict)
        assert config.max_attempts == 4
        assert config.poll_deadline_seconds == 60
        assert config.logging.format == "json"

    def test_from_yaml_string(self):
        config = ResilienceConfig.from_yaml_string(
            """
max_attempts: 5
base_interval_seconds: 2
max_interval_seconds: 8
transient_error_patterns:
  - "try again"
"""
        )
        assert config.max_attempts == 5
        assert config.transient_error_patterns == ["try again"]

    def test_from_yaml_file(self, tmp_path: Path):
        path = tmp_path / "resilience.yaml"
        path.write_text("max_attempts: 7\npoll_interval_seconds: 1\n")

        config = ResilienceConfig.from_yaml(path)

        assert config.max_attempts == 7
        assert config.poll_interval_seconds == 1


class TestResilienceConfigValidation:
    """Invalid values surface as ConfigurationError."""

    @pytest.mark.parametrize(
        "data",
        [
            {"max_attempts": 0},
            {"base_interval_seconds": -1},
            {"poll_interval_seconds": 0},
            {"poll_deadline_seconds": -5},
            {"max_refresh_cycles_per_operation": -1},
            {"base_interval_seconds": 20, "max_interval_seconds": 10},
            {"unknown_key": 1},
        ],
    )
    def test_invalid_values(self, data: dict):
        with pytest.raises(ConfigurationError) as exc_info:
            ResilienceConfig.from_dict(data)

        fault = exc_info.value
        assert fault.category is FaultCategory.CONFIGURATION
        assert fault.wrapped

    def test_error_names_field(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ResilienceConfig.from_dict({"max_attempts": 0})
        assert exc_info.value.wrapped[0].startswith("max_attempts:")

    def test_config_is_frozen(self):
        config = ResilienceConfig()
        with pytest.raises(ValidationError):
            config.max_attempts = 9  # type: ignore[misc]


class TestResilienceConfigFactories:
    """Building runtime objects from config."""

    def test_retry_policy(self, sample_config_dict: dict):
        policy = ResilienceConfig.from_dict(sample_config_dict).retry_policy()
        assert policy.max_attempts == 4
        assert policy.schedule() == [5, 10, 10]

    def test_poll_spec(self, sample_config_dict: dict):
        spec = ResilienceConfig.from_dict(sample_config_dict).poll_spec({NOT_FOUND})
        assert spec.interval == 2
        assert spec.deadline == 60
        assert spec.accepts_not_found

    def test_poll_spec_rejects_overlap(self):
        with pytest.raises(ConfigurationError):
            ResilienceConfig().poll_spec({"stable"}, {"stable"})

    def test_classifier_uses_patterns(self):
        classifier = ResilienceConfig(transient_error_patterns=["try again"]).classifier()
        assert classifier.classify(RuntimeError("please try again")) is (
            Disposition.RETRYABLE_TRANSIENT
        )
        assert classifier.classify(RuntimeError("connection reset")) is Disposition.TERMINAL


class TestLogConfig:
    def test_both_requires_file_path(self):
        with pytest.raises(ValueError, match="file_path"):
            LogConfig(format="both")

    def test_both_with_file_path(self, tmp_path: Path):
        config = LogConfig(format="both", file_path=tmp_path / "converge.log")
        assert config.file_path == tmp_path / "converge.log"

    def test_apply_configures_logging(self, tmp_path: Path):
        log_file = tmp_path / "converge.log"
        LogConfig(level="DEBUG", format="json", file_path=log_file).apply()

        from converge.core.logging import get_logger

        get_logger("test").info("config.applied", answer=42)
        assert log_file.exists()
        assert "config.applied" in log_file.read_text()
