"""Configuration models for converge.

Pydantic models for the resilience settings consumed by the retrier, the
credential coordinator and the poller, loadable from YAML:

    max_attempts: 5
    base_interval_seconds: 5
    max_interval_seconds: 10
    poll_interval_seconds: 5
    poll_deadline_seconds: 600
    max_refresh_cycles_per_operation: 1
    logging:
      level: DEBUG
      format: json

Persisting these settings is the caller's business; converge only reads them.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from converge.core.errors import DEFAULT_TRANSIENT_PATTERNS, ConfigurationError, ErrorClassifier
from converge.core.logging import configure_logging
from converge.execution.policy import PollSpec, RetryPolicy


class LogConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level to capture",
    )
    format: Literal["json", "console", "both"] = Field(
        default="console",
        description="Output format: json for structured, console for human-readable, "
        "both for console to stderr and JSON to file",
    )
    file_path: Path | None = Field(
        default=None,
        description="Path for log file output (required if format='both')",
    )
    max_file_size_mb: int = Field(default=50, gt=0, le=1000)
    backup_count: int = Field(default=5, ge=0, le=100)
    include_timestamps: bool = Field(default=True)
    include_context: bool = Field(
        default=True,
        description="Include operation context (operation, request_id) in log entries",
    )

    @model_validator(mode="after")
    def _validate_file_path(self) -> LogConfig:
        if self.format == "both" and self.file_path is None:
            raise ValueError("file_path is required when format='both'")
        return self

    def apply(self) -> None:
        """Configure structlog/stdlib logging from this model."""
        configure_logging(
            level=self.level,
            format=self.format,
            file_path=self.file_path,
            max_file_size_mb=self.max_file_size_mb,
            backup_count=self.backup_count,
            include_timestamps=self.include_timestamps,
            include_context=self.include_context,
        )


class ResilienceConfig(BaseModel):
    """Retry, refresh, and polling parameters."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_attempts: int = Field(default=3, ge=1, description="Attempts per operation (1 = no retry)")
    base_interval_seconds: float = Field(
        default=5.0, ge=0, description="Backoff step added per attempt"
    )
    max_interval_seconds: float = Field(
        default=10.0, ge=0, description="Upper bound on a single backoff delay"
    )
    poll_interval_seconds: float = Field(default=5.0, gt=0, description="Time between probes")
    poll_deadline_seconds: float = Field(
        default=300.0, ge=0, description="Give up a convergence wait after this long"
    )
    max_refresh_cycles_per_operation: int = Field(
        default=1, ge=0, description="Credential refreshes one operation may trigger"
    )
    transient_error_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TRANSIENT_PATTERNS),
        description="Regex signatures of opaque errors treated as transient",
    )
    logging: LogConfig = Field(default_factory=LogConfig)

    @model_validator(mode="after")
    def _validate_interval_range(self) -> ResilienceConfig:
        if self.base_interval_seconds > self.max_interval_seconds:
            raise ValueError(
                f"base_interval_seconds ({self.base_interval_seconds}) must not exceed "
                f"max_interval_seconds ({self.max_interval_seconds})"
            )
        return self

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ResilienceConfig:
        """Validate a mapping, raising ConfigurationError on bad values."""
        try:
            return cls.model_validate(data or {})
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid resilience configuration: {exc.error_count()} error(s)",
                wrapped=[
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                ],
            ) from exc

    @classmethod
    def from_yaml(cls, path: Path) -> ResilienceConfig:
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> ResilienceConfig:
        """Load configuration from a YAML string."""
        return cls.from_dict(yaml.safe_load(yaml_str))

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_interval=self.base_interval_seconds,
            max_interval=self.max_interval_seconds,
        )

    def poll_spec(self, target_states: Iterable[str], error_states: Iterable[str] = ()) -> PollSpec:
        return PollSpec(
            target_states,
            error_states,
            interval=self.poll_interval_seconds,
            deadline=self.poll_deadline_seconds,
        )

    def classifier(self) -> ErrorClassifier:
        return ErrorClassifier(self.transient_error_patterns)

