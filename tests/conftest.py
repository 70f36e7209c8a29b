"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for cloud_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from cloud_mock import MockClock, MockTransport  # noqa: E402

from provisioner.config import Config  # noqa: E402

PROJECT_ID = "proj123456"


@pytest.fixture
def config() -> Config:
    """Configuration with default retry and poll settings."""
    return Config(project_id=PROJECT_ID)


@pytest.fixture
def clock() -> MockClock:
    return MockClock()


@pytest.fixture
def transport() -> MockTransport:
    return MockTransport()
