"""Test configuration and fixtures."""

import os

import pytest

from acr_purge.core.types import RegistryConfig
from tests.helpers import FakeRegistry, RecordingSink


@pytest.fixture
def registry():
    """Empty in-memory registry."""
    return FakeRegistry()


@pytest.fixture
def sink():
    """Collects reported identifiers."""
    return RecordingSink()


@pytest.fixture(scope="session")
def live_registry_config():
    """Configuration of a real registry, for integration tests."""
    name = os.getenv("ACR_REGISTRY")
    if not name:
        pytest.skip("ACR_REGISTRY not set")

    from acr_purge.core.auth import basic_auth, bearer_auth, login_url

    username = os.getenv("ACR_USERNAME", "")
    password = os.getenv("ACR_PASSWORD", "")
    token = os.getenv("ACR_TOKEN", "")
    auth = ""
    if token:
        auth = bearer_auth(token)
    elif username:
        auth = basic_auth(username, password)
    return RegistryConfig(login_url=login_url(name), auth=auth)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring registry"
    )
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Modify test collection."""
    # Skip integration tests if no registry
    skip_integration = pytest.mark.skip(reason="Registry not available")

    for item in items:
        if (
            "integration" in item.keywords
            and os.getenv("REGISTRY_AVAILABLE", "false").lower() != "true"
        ):
            item.add_marker(skip_integration)
