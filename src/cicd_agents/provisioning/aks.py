"""
AKS cluster provisioning.

Two backends share one surface: AzureClusterBackend talks to the Azure
management API (azure-identity + azure-mgmt-containerservice),
SimulatedClusterBackend answers locally when no service principal is
configured. AksProvisioner adds request validation and wires the backend's
state query and reconcile into ClusterReadinessWaiter.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Protocol

import structlog
from azure.core.exceptions import AzureError
from azure.identity import ClientSecretCredential
from azure.mgmt.containerservice import ContainerServiceClient
from azure.mgmt.containerservice.models import (
    ManagedCluster,
    ManagedClusterAgentPoolProfile,
    ManagedClusterServicePrincipalProfile,
)

from cicd_agents.config.settings import AzureSettings, ProvisioningSettings, Settings, get_settings
from cicd_agents.errors import AgentError, InvalidRequestError
from cicd_agents.models.outputs import ClusterCredentials, ClusterOperation
from cicd_agents.provisioning.readiness import ClusterReadinessWaiter, WaitSession

logger = structlog.get_logger(__name__)

ESTIMATED_CREATE_MINUTES = 10


class ClusterBackend(Protocol):
    simulated: bool

    def create(self, name: str, node_count: int, vm_size: str) -> ClusterOperation: ...

    def get_state(self, name: str) -> str: ...

    def credentials(self, name: str) -> ClusterCredentials: ...

    def reconcile(self, name: str) -> ClusterOperation: ...

    def delete(self, name: str) -> ClusterOperation: ...


class AzureClusterBackend:
    """Managed cluster operations through ContainerServiceClient."""

    simulated = False

    def __init__(self, settings: AzureSettings, client: Optional[ContainerServiceClient] = None) -> None:
        self.settings = settings
        if client is None:
            credential = ClientSecretCredential(
                tenant_id=settings.tenant_id,
                client_id=settings.client_id,
                client_secret=settings.client_secret,
            )
            client = ContainerServiceClient(credential, settings.subscription_id)
        self.client = client

    def _cluster_model(self, name: str, node_count: int, vm_size: str) -> ManagedCluster:
        return ManagedCluster(
            location=self.settings.location,
            dns_prefix=f"{name}-dns",
            agent_pool_profiles=[
                ManagedClusterAgentPoolProfile(
                    name="agentpool",
                    count=node_count,
                    vm_size=vm_size,
                    mode="System",
                    os_type="Linux",
                )
            ],
            service_principal_profile=ManagedClusterServicePrincipalProfile(
                client_id=self.settings.client_id,
                secret=self.settings.client_secret,
            ),
            kubernetes_version=self.settings.kubernetes_version,
        )

    def create(self, name: str, node_count: int, vm_size: str) -> ClusterOperation:
        rg = self.settings.resource_group
        logger.info("aks_create_started", cluster=name, resource_group=rg, node_count=node_count, vm_size=vm_size)
        self.client.managed_clusters.begin_create_or_update(rg, name, self._cluster_model(name, node_count, vm_size))
        return ClusterOperation(
            status="creating",
            cluster_name=name,
            resource_group=rg,
            location=self.settings.location,
            provisioning_state="InProgress",
            kubernetes_version=self.settings.kubernetes_version,
            node_count=node_count,
            vm_size=vm_size,
            estimated_time_minutes=ESTIMATED_CREATE_MINUTES,
        )

    def get_state(self, name: str) -> str:
        cluster = self.client.managed_clusters.get(self.settings.resource_group, name)
        return cluster.provisioning_state

    def credentials(self, name: str) -> ClusterCredentials:
        rg = self.settings.resource_group
        result = self.client.managed_clusters.list_cluster_admin_credentials(rg, name)
        if not result.kubeconfigs:
            raise AgentError(f"No kubeconfig returned for cluster {name}")
        raw = result.kubeconfigs[0].value
        kubeconfig = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else str(raw)
        cluster = self.client.managed_clusters.get(rg, name)
        return ClusterCredentials(
            cluster_name=name,
            kubeconfig=kubeconfig,
            provisioning_state=cluster.provisioning_state,
            fqdn=cluster.fqdn,
        )

    def reconcile(self, name: str) -> ClusterOperation:
        """Re-submit the cluster's current model to drive it back to a converged state."""
        rg = self.settings.resource_group
        cluster = self.client.managed_clusters.get(rg, name)
        logger.info("aks_reconcile_submitted", cluster=name, state=cluster.provisioning_state)
        self.client.managed_clusters.begin_create_or_update(rg, name, cluster)
        return ClusterOperation(
            status="reconciling",
            cluster_name=name,
            resource_group=rg,
            provisioning_state=cluster.provisioning_state,
        )

    def delete(self, name: str) -> ClusterOperation:
        rg = self.settings.resource_group
        logger.info("aks_delete_started", cluster=name, resource_group=rg)
        self.client.managed_clusters.begin_delete(rg, name)
        return ClusterOperation(
            status="deleting",
            cluster_name=name,
            resource_group=rg,
            message=f"Cluster {name} deletion initiated",
        )


class SimulatedClusterBackend:
    """Local stand-in: every cluster is immediately Succeeded."""

    simulated = True

    def __init__(self, settings: AzureSettings) -> None:
        self.settings = settings

    def create(self, name: str, node_count: int, vm_size: str) -> ClusterOperation:
        logger.info("aks_create_simulated", cluster=name, node_count=node_count, vm_size=vm_size)
        return ClusterOperation(
            status="creating",
            cluster_name=name,
            resource_group=self.settings.resource_group,
            location=self.settings.location,
            provisioning_state="InProgress",
            kubernetes_version=self.settings.kubernetes_version,
            node_count=node_count,
            vm_size=vm_size,
            estimated_time_minutes=ESTIMATED_CREATE_MINUTES,
            mock=True,
        )

    def get_state(self, name: str) -> str:
        return "Succeeded"

    def credentials(self, name: str) -> ClusterCredentials:
        return ClusterCredentials(
            cluster_name=name,
            kubeconfig="mock-kubeconfig-content",
            provisioning_state="Succeeded",
            fqdn=f"{name}.azmk8s.io",
            mock=True,
        )

    def reconcile(self, name: str) -> ClusterOperation:
        return ClusterOperation(
            status="reconciling",
            cluster_name=name,
            resource_group=self.settings.resource_group,
            provisioning_state="Succeeded",
            mock=True,
        )

    def delete(self, name: str) -> ClusterOperation:
        return ClusterOperation(
            status="deleting",
            cluster_name=name,
            resource_group=self.settings.resource_group,
            message=f"Cluster {name} deletion initiated",
            mock=True,
        )


def get_cluster_backend(settings: Optional[AzureSettings] = None) -> ClusterBackend:
    """AzureClusterBackend when a service principal is configured, else simulated."""
    settings = settings or get_settings().azure
    if settings.is_configured:
        logger.info("azure_client_initialized", subscription=settings.subscription_id)
        return AzureClusterBackend(settings)
    logger.warning("azure_credentials_missing", fallback="simulated")
    return SimulatedClusterBackend(settings)


def _coerce_node_count(value: object) -> int:
    if isinstance(value, bool):
        raise InvalidRequestError("node_count must be a number")
    try:
        count = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise InvalidRequestError("node_count must be a number") from e
    if count < 1:
        raise InvalidRequestError("node_count must be at least 1")
    return count


class AksProvisioner:
    """Cluster lifecycle plus readiness waiting over one backend."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        backend: Optional[ClusterBackend] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        settings = settings or get_settings()
        self.provisioning: ProvisioningSettings = settings.provisioning
        self.backend = backend or get_cluster_backend(settings.azure)
        self._clock = clock
        self._sleep = sleep

    @property
    def simulated(self) -> bool:
        return self.backend.simulated

    def create_cluster(
        self,
        name: str,
        node_count: object = None,
        vm_size: Optional[str] = None,
    ) -> ClusterOperation:
        if not name:
            raise InvalidRequestError("Cluster name parameter is required")
        count = _coerce_node_count(self.provisioning.default_node_count if node_count is None else node_count)
        try:
            return self.backend.create(name, count, vm_size or self.provisioning.default_vm_size)
        except AzureError as e:
            logger.error("aks_create_failed", cluster=name, error=str(e))
            raise AgentError(f"Failed to create AKS cluster {name}: {e}") from e

    def get_credentials(self, name: str) -> ClusterCredentials:
        try:
            return self.backend.credentials(name)
        except AzureError as e:
            logger.error("aks_credentials_failed", cluster=name, error=str(e))
            raise AgentError(f"Failed to get credentials for cluster {name}: {e}") from e

    def delete_cluster(self, name: str) -> ClusterOperation:
        try:
            return self.backend.delete(name)
        except AzureError as e:
            logger.error("aks_delete_failed", cluster=name, error=str(e))
            raise AgentError(f"Failed to delete AKS cluster {name}: {e}") from e

    def get_cluster_state(self, name: str) -> str:
        return self.backend.get_state(name)

    def reconcile_cluster(self, name: str) -> ClusterOperation:
        return self.backend.reconcile(name)

    def wait_for_cluster_ready(
        self,
        name: str,
        timeout_seconds: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> WaitSession:
        """Block until the cluster is Succeeded. Raises ClusterReadinessTimeout."""
        if poll_interval is None:
            poll_interval = self.provisioning.poll_interval_seconds
        waiter = ClusterReadinessWaiter(
            self.get_cluster_state,
            self.reconcile_cluster,
            poll_interval=poll_interval,
            clock=self._clock,
            sleep=self._sleep,
        )
        budget = self.provisioning.wait_timeout_seconds if timeout_seconds is None else timeout_seconds
        return waiter.wait_until_ready(name, budget)
