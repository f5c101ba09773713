"""
Docker handler agent.

Turns a build prediction into a container image: renders a Dockerfile for the
predicted language and strategy, builds it, and pushes it to the registry.
Also renders Kubernetes manifests for the image, or hands deployment off to
the deploy agent.
"""

from typing import Any, Dict, Optional, Union

from cicd_agents.agents.base import AgentError, BaseAgent, InvalidRequestError, parse_repository
from cicd_agents.agents.deploy import DeployAgent
from cicd_agents.config.settings import Settings
from cicd_agents.models.outputs import DeploymentResult, ImageBuildResult, ManifestBundle
from cicd_agents.tools.container import ImageBuilder, ImageBuildError, get_image_builder
from cicd_agents.tools.infrastructure import build_k8s_manifests, image_name, render_dockerfile

ACTIONS = ("build_and_push", "generate_k8s_manifests", "deploy_to_k8s")


class DockerHandlerAgent(BaseAgent):
    """Build, push and describe container images."""

    name = "docker_handler"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        builder: Optional[ImageBuilder] = None,
        deploy_agent: Optional[DeployAgent] = None,
    ) -> None:
        super().__init__(settings)
        self._builder = builder
        self._deploy_agent = deploy_agent

    @property
    def builder(self) -> ImageBuilder:
        if self._builder is None:
            self._builder = get_image_builder(self.settings.docker)
        return self._builder

    @property
    def deploy_agent(self) -> DeployAgent:
        if self._deploy_agent is None:
            self._deploy_agent = DeployAgent(self.settings)
        return self._deploy_agent

    def handle(
        self,
        repository: Optional[str],
        commit_sha: Optional[str] = None,
        build_prediction: Optional[Dict[str, Any]] = None,
        action: str = "build_and_push",
        **params: Any,
    ) -> Union[ImageBuildResult, ManifestBundle, DeploymentResult]:
        prediction = build_prediction or {}
        commit_sha = commit_sha or prediction.get("commit_sha")
        if not repository:
            raise InvalidRequestError("Repository parameter is required")
        if not commit_sha:
            raise InvalidRequestError("Commit SHA parameter is required")
        owner, repo = parse_repository(repository)
        image = image_name(owner, repo, commit_sha)

        self.log.info("docker_handler_started", repository=repository, action=action, image=image)
        if action == "build_and_push":
            return self._build_and_push(repository, commit_sha, image, prediction)
        if action == "generate_k8s_manifests":
            resources = (prediction.get("resource_requirements") or {}) if isinstance(prediction, dict) else {}
            k8s = self.settings.kubernetes
            return build_k8s_manifests(
                repository,
                self.builder.reference_for(image),
                environment=params.get("environment") or "staging",
                namespace=params.get("namespace") or k8s.default_namespace,
                port=k8s.container_port,
                replicas=k8s.replicas,
                resources=resources,
                domain=k8s.domain,
            )
        if action == "deploy_to_k8s":
            return self.deploy_agent.deploy(
                {
                    **params,
                    "repository": repository,
                    "commit_sha": commit_sha,
                    "image": self.builder.reference_for(image),
                }
            )
        raise InvalidRequestError(f"Unknown action: {action}. Expected one of {', '.join(ACTIONS)}")

    def _build_and_push(
        self,
        repository: str,
        commit_sha: str,
        image: str,
        prediction: Dict[str, Any],
    ) -> ImageBuildResult:
        builder = self.builder
        builder.login()
        dockerfile = render_dockerfile(
            language=prediction.get("language") or "javascript",
            strategy=prediction.get("build_strategy") or "standard",
            port=self.settings.kubernetes.container_port,
        )
        try:
            build_output = builder.build(dockerfile, image)
        except ImageBuildError as e:
            self.log.error("docker_build_failed", image=image, error=str(e))
            raise AgentError(str(e)) from e

        push_output: Optional[str] = None
        push_error: Optional[str] = None
        try:
            push_output = builder.push(image)
        except ImageBuildError as e:
            self.log.warning("docker_push_failed", image=image, error=str(e))
            push_error = str(e)

        return ImageBuildResult(
            status="success",
            image=image,
            registry_image=builder.reference_for(image),
            build_output=build_output,
            push_output=push_output,
            push_error=push_error,
            dockerfile=dockerfile,
            original_repository=repository,
            commit_sha=commit_sha,
            mock=builder.simulated,
        )

    def health_check(self) -> Dict[str, Any]:
        return {**super().health_check(), "docker": not self.builder.simulated}
