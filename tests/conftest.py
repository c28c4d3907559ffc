"""
Pytest configuration and fixtures for all tests.

Provides shared setup/teardown for logging and small database builders.

License: MIT
"""

import csv
import gzip
from pathlib import Path
from typing import List

import pytest

from sqlkg_core.logging_service import LoggingService


def pytest_configure(config):
    """Configure logging before any tests are collected."""
    LoggingService.configure_logging(level="DEBUG", format="json")


@pytest.fixture(autouse=True)
def reset_logging_service():
    """Reset LoggingService state before each test."""
    # Reset class-level state
    LoggingService._configured = False
    LoggingService._log_level = "INFO"
    LoggingService._config = None
    LoggingService._loggers = {}
    LoggingService._sensitive_keys = set()

    # Configure for tests
    LoggingService.configure_logging(level="DEBUG", format="json")

    yield

    # Cleanup after test
    LoggingService._configured = False
    LoggingService._loggers = {}


def read_artifact(path: Path) -> List[List[str]]:
    """Read a plain or gzip CSV artifact into rows, header included."""
    path = Path(path)
    if path.suffix == ".gz":
        with gzip.open(path, "rt", encoding="utf-8", newline="") as f:
            return list(csv.reader(f))
    with path.open("r", encoding="utf-8", newline="") as f:
        return list(csv.reader(f))
