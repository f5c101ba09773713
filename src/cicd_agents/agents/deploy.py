"""
Deploy agent.

Resolves the target cluster (request, K8S_DEFAULT_CLUSTER, or a local
kubeconfig), fetches its credentials through the provisioner, renders the
application manifests and applies them. Simulated cluster credentials yield a
simulated deployment.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from cicd_agents.agents.base import AgentError, BaseAgent, InvalidRequestError, parse_repository, require
from cicd_agents.config.settings import Settings
from cicd_agents.models.outputs import ClusterCredentials, DeploymentResult
from cicd_agents.provisioning.aks import AksProvisioner
from cicd_agents.tools.infrastructure import app_name_for, build_k8s_manifests, image_name
from cicd_agents.tools.k8s import ClusterDeployer, KubernetesDeployer, SimulatedDeployer

LOCAL_KUBECONFIG_CLUSTER = "kubeconfig"

DeployerFactory = Callable[[ClusterCredentials], ClusterDeployer]


def default_deployer_factory(credentials: ClusterCredentials) -> ClusterDeployer:
    if credentials.mock:
        return SimulatedDeployer()
    return KubernetesDeployer.from_kubeconfig_text(credentials.kubeconfig)


class ClusterTargetMixin:
    """Cluster resolution shared by the deploy and monitor agents."""

    settings: Settings

    def _init_targets(
        self,
        provisioner: Optional[AksProvisioner],
        deployer_factory: Optional[DeployerFactory],
    ) -> None:
        self._provisioner = provisioner
        self.deployer_factory = deployer_factory or default_deployer_factory

    @property
    def provisioner(self) -> AksProvisioner:
        if self._provisioner is None:
            self._provisioner = AksProvisioner(self.settings)
        return self._provisioner

    def resolve_deployer(self, cluster_name: Optional[str]) -> Tuple[ClusterDeployer, str]:
        """Return (deployer, cluster label). Raises InvalidRequestError when no target is known."""
        cluster = cluster_name or self.settings.kubernetes.default_cluster
        if cluster:
            credentials = self.provisioner.get_credentials(cluster)
            try:
                return self.deployer_factory(credentials), cluster
            except ConfigException as e:
                raise AgentError(f"Invalid kubeconfig for cluster {cluster}: {e}") from e
        if self.settings.kubernetes.kubeconfig:
            try:
                return KubernetesDeployer.from_kubeconfig_file(self.settings.kubernetes.kubeconfig), LOCAL_KUBECONFIG_CLUSTER
            except ConfigException as e:
                raise AgentError(f"Invalid kubeconfig {self.settings.kubernetes.kubeconfig}: {e}") from e
        raise InvalidRequestError("Cluster name parameter is required")


class DeployAgent(ClusterTargetMixin, BaseAgent):
    """Deploy an image to a Kubernetes cluster."""

    name = "deploy"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        provisioner: Optional[AksProvisioner] = None,
        deployer_factory: Optional[DeployerFactory] = None,
    ) -> None:
        super().__init__(settings)
        self._init_targets(provisioner, deployer_factory)

    def deploy(self, request: Dict[str, Any]) -> DeploymentResult:
        """
        Deploy ``repository`` to ``cluster_name`` / ``namespace``.

        The image comes from ``image``, else the docker handler result in
        ``docker_result``, else is derived from the repository and
        ``commit_sha``.
        """
        repository = require(request, "repository")
        owner, repo = parse_repository(repository)
        environment = request.get("environment") or "staging"
        namespace = request.get("namespace") or self.settings.kubernetes.default_namespace
        image = self._image_for(request, owner, repo)

        deployer, cluster = self.resolve_deployer(request.get("cluster_name"))
        k8s = self.settings.kubernetes
        bundle = build_k8s_manifests(
            repository,
            image,
            environment=environment,
            namespace=namespace,
            port=k8s.container_port,
            replicas=k8s.replicas,
            resources=request.get("resources"),
            domain=None if deployer.simulated else k8s.domain,
        )

        self.log.info(
            "deployment_started",
            repository=repository,
            cluster=cluster,
            namespace=namespace,
            image=image,
            simulated=deployer.simulated,
        )
        try:
            resources = deployer.apply(bundle, namespace)
        except ApiException as e:
            self.log.error("deployment_failed", repository=repository, cluster=cluster, status=e.status)
            raise AgentError(f"Kubernetes deployment failed: {e.reason}") from e

        deployment_name = app_name_for(repository)
        if deployer.simulated:
            url = f"https://{environment}-{owner}-{repo}.example.com".lower()
            message = "Simulated deployment (no cluster credentials)"
        else:
            url = f"https://{deployment_name}.{k8s.domain}" if k8s.domain else None
            message = None

        result = DeploymentResult(
            repository=repository,
            environment=environment,
            namespace=namespace,
            cluster_name=cluster,
            image=image,
            deployment_id=f"{repository}-{int(time.time() * 1000)}",
            deployment_name=deployment_name,
            deployed_resources=resources,
            deployment_url=url,
            deployment_time=datetime.now(timezone.utc).isoformat(),
            mock=deployer.simulated,
            message=message,
        )
        self.log.info("deployment_completed", deployment_id=result.deployment_id, resources=len(resources))
        return result

    @staticmethod
    def _image_for(request: Dict[str, Any], owner: str, repo: str) -> str:
        if request.get("image"):
            return request["image"]
        docker_result = request.get("docker_result") or {}
        if docker_result.get("registry_image") or docker_result.get("image"):
            return docker_result.get("registry_image") or docker_result["image"]
        return image_name(owner, repo, request.get("commit_sha") or "latest")
