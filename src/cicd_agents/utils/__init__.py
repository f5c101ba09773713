"""Shared utilities and helpers for the cicd-agents package."""

from cicd_agents.utils.json_extract import extract_json_from_response, parse_json_object
from cicd_agents.utils.logging import configure_logging

__all__ = ["configure_logging", "extract_json_from_response", "parse_json_object"]
