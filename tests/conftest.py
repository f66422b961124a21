"""Pytest fixtures for converge tests."""

import logging
from typing import Generator

import pytest
import structlog

from tests.helpers import FakeClock


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset structlog and root handlers around each test for isolation."""
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def clock() -> FakeClock:
    """A fake monotonic clock whose sleep advances time instantly."""
    return FakeClock()


@pytest.fixture
def sample_config_dict() -> dict:
    """Return a sample resilience configuration dictionary."""
    return {
        "max_attempts": 4,
        "base_interval_seconds": 5,
        "max_interval_seconds": 10,
        "poll_interval_seconds": 2,
        "poll_deadline_seconds": 60,
        "max_refresh_cycles_per_operation": 2,
        "logging": {"level": "DEBUG", "format": "json"},
    }
