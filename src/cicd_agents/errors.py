"""Exception types shared by agents, provisioning and the HTTP layer."""


class AgentError(Exception):
    """An agent could not complete its task."""


class InvalidRequestError(AgentError):
    """Missing or malformed request parameters."""
