"""Pytest configuration and shared fixtures for scrobble-sync.

This module configures the test environment by ensuring the project root
is added to sys.path, allowing imports of the ``tests`` helpers next to the
``core``/``services``/``app`` packages.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Ensure project root is on sys.path for `import tests.*`
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tests.mocks.logger_mock import MockLogger  # noqa: E402


@pytest.fixture
def mock_console_logger() -> MagicMock:
    """Mock console logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def mock_error_logger() -> MagicMock:
    """Mock error logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def console_logger() -> MockLogger:
    """Message-capturing console logger."""
    return MockLogger("console")


@pytest.fixture
def error_logger() -> MockLogger:
    """Message-capturing error logger."""
    return MockLogger("error")
