"""
Pytest configuration and fixtures for textbook catalog tests.
"""

import pytest
from hypothesis import settings, Verbosity
import os

# Configure Hypothesis for faster test runs
settings.register_profile("fast", max_examples=25, deadline=5000, verbosity=Verbosity.quiet)
settings.register_profile("thorough", max_examples=200, deadline=30000, verbosity=Verbosity.normal)

settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "fast"))


@pytest.fixture
def error_log_path(tmp_path):
    """Side-log path inside the test's temp directory."""
    return tmp_path / "error_logs.txt"


@pytest.fixture
def error_reporter(error_log_path):
    """Error reporter writing to a temp side log."""
    from textbook_catalog.utils.logging import ErrorReporter
    return ErrorReporter(str(error_log_path))


def pytest_configure(config):
    """Configure pytest with custom settings."""
    import logging
    logging.getLogger("textbook_catalog").setLevel(logging.WARNING)
    logging.getLogger("hypothesis").setLevel(logging.WARNING)


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers."""
    for item in items:
        # Mark property-based tests
        if "properties" in item.fspath.basename:
            item.add_marker(pytest.mark.property)
        
        if "integration" in item.fspath.basename:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
