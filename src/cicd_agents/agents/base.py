"""
Base Agent for CI/CD Agents.

Common plumbing for the pipeline agents: settings access, a structlog logger
bound to the agent name, repository-name parsing, and the exception types the
HTTP layer maps to status codes.
"""

from typing import Any, Dict, Optional, Tuple

import structlog

from cicd_agents.config.settings import Settings, get_settings
from cicd_agents.errors import AgentError, InvalidRequestError


_PARAM_LABELS = {
    "repository": "Repository",
    "commit_sha": "Commit SHA",
    "cluster_name": "Cluster name",
    "deployment_name": "Deployment name",
}


def require(params: Dict[str, Any], name: str) -> Any:
    """Return params[name] or raise InvalidRequestError when it is missing or empty."""
    value = params.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        label = _PARAM_LABELS.get(name, name)
        raise InvalidRequestError(f"{label} parameter is required")
    return value


def parse_repository(repository: str) -> Tuple[str, str]:
    """Split 'owner/repo'. Raises InvalidRequestError on any other shape."""
    if not repository:
        raise InvalidRequestError("Repository parameter is required")
    parts = repository.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidRequestError("Repository must be in format owner/repo")
    return parts[0], parts[1]


class BaseAgent:
    """
    Shared base for pipeline agents.

    Subclasses set ``name``; ``self.log`` is bound with ``agent=name`` so every
    event an agent emits can be filtered by stage.
    """

    name: str = "agent"

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.log = structlog.get_logger(type(self).__module__).bind(agent=self.name)

    def health_check(self) -> Dict[str, Any]:
        """Report which external capabilities this agent can reach. Subclasses extend."""
        return {"agent": self.name, "status": "ok"}
