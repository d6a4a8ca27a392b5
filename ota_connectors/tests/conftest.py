"""
Pytest configuration for connector tests
"""

import pytest

# Import shared fixtures
from .fixtures import *  # noqa: F401, F403


# Markers for different test types
def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line(
        "markers", "integration: mark test as requiring external services"
    )
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line(
        "markers", "golden: mark test as part of golden contract suite"
    )


@pytest.fixture(autouse=True)
def _reset_correlation_id():
    """Correlation ids must not leak between tests"""
    from ota_connectors.utils.logging import correlation_id

    token = correlation_id.set(None)
    yield
    correlation_id.reset(token)
