"""Pipeline agents: code review, build prediction, image build, provisioning, deploy, monitor."""

from cicd_agents.agents.base import AgentError, BaseAgent, InvalidRequestError, parse_repository
from cicd_agents.agents.build_predictor import BuildPredictorAgent
from cicd_agents.agents.code_review import CodeReviewAgent
from cicd_agents.agents.deploy import DeployAgent
from cicd_agents.agents.docker_handler import DockerHandlerAgent
from cicd_agents.agents.monitor import MonitorAgent
from cicd_agents.agents.provisioner import ProvisionerAgent, ProvisionOutcome

__all__ = [
    "AgentError",
    "BaseAgent",
    "BuildPredictorAgent",
    "CodeReviewAgent",
    "DeployAgent",
    "DockerHandlerAgent",
    "InvalidRequestError",
    "MonitorAgent",
    "ProvisionerAgent",
    "ProvisionOutcome",
    "parse_repository",
]
