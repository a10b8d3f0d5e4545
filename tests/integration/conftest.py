"""
Pytest configuration for integration tests.
"""

import pytest


def pytest_configure(config):
    """Register the integration marker."""
    config.addinivalue_line(
        "markers",
        "integration: End-to-end tests driving the full signal pipeline"
    )


def pytest_collection_modifyitems(config, items):
    """
    Mark every test under the integration directory.

    Run only the fast unit suite with `pytest -m "not integration"`.
    """
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
