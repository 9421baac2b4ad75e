"""
Pytest configuration for AID orchestrator tests.
"""

import os
import sys
import tempfile

import pytest

# Add the src directory to the Python path
src_path = os.path.join(os.path.dirname(__file__), '..', 'src')
sys.path.insert(0, os.path.abspath(src_path))

os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "aid-orchestrator-tests.log"))

# Import test fixtures
from tests.fixtures.lifecycle_fixtures import *


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Setup test environment before running tests."""
    os.environ["LOG_LEVEL"] = "INFO"

    # configure handlers once, outside any per-test capture
    from aid_orchestrator.utils.logger import get_logger
    get_logger()

    yield


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running"
    )
    config.addinivalue_line(
        "markers", "requires_docker: marks tests that require Docker to be running"
    )
