"""Shared test configuration for xero_client tests."""

import pytest

from xero_client.core.logging import setup_logging


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom settings."""
    # Ensure async tests work properly
    config.option.asyncio_mode = "auto"

    # Run the library logging pipeline so processors execute under test
    setup_logging(json_logs=False, log_level_name="DEBUG")
