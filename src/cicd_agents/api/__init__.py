"""FastAPI service exposing each agent and the pipeline."""

from cicd_agents.api.app import build_agents, create_app

__all__ = ["build_agents", "create_app"]
