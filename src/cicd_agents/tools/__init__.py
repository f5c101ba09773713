"""External system clients and generators used by the agents."""

from cicd_agents.tools.github import GitHubClient, GitHubError
from cicd_agents.tools.llm import LLMError, complete_chat

__all__ = ["GitHubClient", "GitHubError", "LLMError", "complete_chat"]
