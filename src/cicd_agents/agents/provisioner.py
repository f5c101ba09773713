"""
AKS provisioner agent.

Request-level wrapper over AksProvisioner: derives the cluster name from the
repository and environment, starts creation, and optionally waits for
readiness before fetching credentials.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from cicd_agents.agents.base import BaseAgent, InvalidRequestError, parse_repository, require
from cicd_agents.config.settings import Settings
from cicd_agents.models.outputs import ClusterCredentials, ClusterOperation
from cicd_agents.provisioning.aks import AksProvisioner
from cicd_agents.provisioning.readiness import ClusterReadinessTimeout
from cicd_agents.tools.infrastructure import cluster_name_for


class ProvisionOutcome(BaseModel):
    """Result of a provisioning request. ``ready`` decides 200 vs 202 at the HTTP layer."""

    status: str = Field(..., description="success | pending")
    message: str
    cluster_name: str
    deployment_ready: bool = False
    ready: bool = False
    operation: ClusterOperation
    credentials: Optional[ClusterCredentials] = None
    waited_seconds: Optional[float] = None


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _parse_timeout(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise InvalidRequestError("timeout_seconds must be a number") from e


class ProvisionerAgent(BaseAgent):
    """Provision an AKS cluster for a repository environment."""

    name = "aks_provisioner"

    def __init__(self, settings: Optional[Settings] = None, provisioner: Optional[AksProvisioner] = None) -> None:
        super().__init__(settings)
        self.provisioner = provisioner or AksProvisioner(self.settings)

    def provision(self, request: Dict[str, Any]) -> ProvisionOutcome:
        """
        Create ``{environment}-{repo}`` and, when ``wait_for_ready`` is set on a
        real backend, block until it is Succeeded (budget
        PROVISION_WAIT_TIMEOUT_SECONDS or ``timeout_seconds``).
        """
        repository = require(request, "repository")
        _, repo = parse_repository(repository)
        environment = request.get("environment") or "staging"
        cluster_name = request.get("cluster_name") or cluster_name_for(environment, repo)

        operation = self.provisioner.create_cluster(
            cluster_name,
            node_count=request.get("node_count"),
            vm_size=request.get("vm_size"),
        )
        simulated = self.provisioner.simulated

        if _truthy(request.get("wait_for_ready")) and not simulated:
            timeout = _parse_timeout(request.get("timeout_seconds"))
            try:
                session = self.provisioner.wait_for_cluster_ready(cluster_name, timeout)
            except ClusterReadinessTimeout as e:
                self.log.warning("provision_wait_timed_out", cluster=cluster_name, elapsed=e.elapsed_seconds)
                return ProvisionOutcome(
                    status="pending",
                    message=f"Cluster creation initiated but not yet ready: {e}",
                    cluster_name=cluster_name,
                    operation=operation,
                    waited_seconds=e.elapsed_seconds,
                )
            credentials = self.provisioner.get_credentials(cluster_name)
            return ProvisionOutcome(
                status="success",
                message=f"Cluster {cluster_name} is ready",
                cluster_name=cluster_name,
                deployment_ready=True,
                ready=True,
                operation=operation,
                credentials=credentials,
                waited_seconds=round(session.elapsed_seconds, 3),
            )

        return ProvisionOutcome(
            status="success" if simulated else "pending",
            message=(
                f"Simulated cluster {cluster_name} created"
                if simulated
                else f"Cluster {cluster_name} creation initiated ({operation.provisioning_state})"
            ),
            cluster_name=cluster_name,
            deployment_ready=simulated,
            operation=operation,
        )

    def health_check(self) -> Dict[str, Any]:
        return {**super().health_check(), "azure": not self.provisioner.simulated}
