"""Pytest configuration and shared fixtures."""

import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: integration tests (may use external services)")
    config.addinivalue_line("markers", "slow: tests that exercise long wait loops with a fake clock")
