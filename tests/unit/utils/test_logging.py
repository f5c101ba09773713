"""Unit tests for structlog configuration."""

import logging

import pytest
import structlog

from cicd_agents.config.settings import LoggingSettings
from cicd_agents.utils.logging import configure_logging


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


class TestConfigureLogging:
    def test_json_renderer_by_default(self) -> None:
        configure_logging(LoggingSettings(log_level="INFO", log_format="json"))
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_console_renderer(self) -> None:
        configure_logging(LoggingSettings(log_level="INFO", log_format="console"))
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_level_applies_to_stdlib_root(self) -> None:
        configure_logging(LoggingSettings(log_level="warning", log_format="json"))
        assert logging.getLogger().level == logging.WARNING
