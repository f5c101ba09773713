"""Unit tests for AKS provisioning backends and the provisioner wiring into the readiness waiter."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from azure.core.exceptions import HttpResponseError

from cicd_agents.errors import AgentError, InvalidRequestError
from cicd_agents.provisioning.aks import (
    AksProvisioner,
    AzureClusterBackend,
    SimulatedClusterBackend,
    get_cluster_backend,
)
from cicd_agents.provisioning.readiness import ClusterReadinessTimeout


@pytest.fixture
def container_client() -> MagicMock:
    client = MagicMock()
    cluster = MagicMock(provisioning_state="Succeeded", fqdn="c1-dns.hcp.westeurope.azmk8s.io")
    client.managed_clusters.get.return_value = cluster
    creds = MagicMock()
    creds.kubeconfigs = [MagicMock(value=b"apiVersion: v1\nkind: Config\n")]
    client.managed_clusters.list_cluster_admin_credentials.return_value = creds
    return client


@pytest.fixture
def azure_backend(azure_settings, container_client) -> AzureClusterBackend:
    return AzureClusterBackend(azure_settings, client=container_client)


# -----------------------------------------------------------------------------
# Backend selection
# -----------------------------------------------------------------------------


class TestGetClusterBackend:
    def test_simulated_without_credentials(self, settings) -> None:
        backend = get_cluster_backend(settings.azure)
        assert isinstance(backend, SimulatedClusterBackend)
        assert backend.simulated is True

    def test_azure_with_credentials(self, azure_settings) -> None:
        with patch("cicd_agents.provisioning.aks.ClientSecretCredential") as cred, patch(
            "cicd_agents.provisioning.aks.ContainerServiceClient"
        ) as client_cls:
            backend = get_cluster_backend(azure_settings)
        assert isinstance(backend, AzureClusterBackend)
        cred.assert_called_once_with(tenant_id="tenant", client_id="client", client_secret="secret")
        client_cls.assert_called_once_with(cred.return_value, "sub")


# -----------------------------------------------------------------------------
# Azure backend
# -----------------------------------------------------------------------------


class TestAzureClusterBackend:
    def test_create_submits_managed_cluster(self, azure_backend, container_client) -> None:
        op = azure_backend.create("staging-api", 3, "Standard_D4s_v3")
        rg, name, model = container_client.managed_clusters.begin_create_or_update.call_args.args
        assert (rg, name) == ("rg-test", "staging-api")
        assert model.location == "westeurope"
        assert model.dns_prefix == "staging-api-dns"
        assert model.kubernetes_version == "1.29.2"
        pool = model.agent_pool_profiles[0]
        assert (pool.name, pool.count, pool.vm_size, pool.mode, pool.os_type) == (
            "agentpool",
            3,
            "Standard_D4s_v3",
            "System",
            "Linux",
        )
        assert model.service_principal_profile.client_id == "client"
        assert op.status == "creating"
        assert op.provisioning_state == "InProgress"
        assert op.estimated_time_minutes == 10
        assert op.mock is False

    def test_get_state(self, azure_backend, container_client) -> None:
        assert azure_backend.get_state("c1") == "Succeeded"
        container_client.managed_clusters.get.assert_called_with("rg-test", "c1")

    def test_credentials_decode_kubeconfig(self, azure_backend) -> None:
        creds = azure_backend.credentials("c1")
        assert creds.kubeconfig.startswith("apiVersion: v1")
        assert creds.fqdn == "c1-dns.hcp.westeurope.azmk8s.io"
        assert creds.provisioning_state == "Succeeded"

    def test_credentials_without_kubeconfig(self, azure_backend, container_client) -> None:
        container_client.managed_clusters.list_cluster_admin_credentials.return_value.kubeconfigs = []
        with pytest.raises(AgentError, match="No kubeconfig"):
            azure_backend.credentials("c1")

    def test_reconcile_resubmits_current_model(self, azure_backend, container_client) -> None:
        current = container_client.managed_clusters.get.return_value
        op = azure_backend.reconcile("c1")
        container_client.managed_clusters.begin_create_or_update.assert_called_once_with("rg-test", "c1", current)
        assert op.status == "reconciling"

    def test_delete(self, azure_backend, container_client) -> None:
        op = azure_backend.delete("c1")
        container_client.managed_clusters.begin_delete.assert_called_once_with("rg-test", "c1")
        assert op.status == "deleting"


# -----------------------------------------------------------------------------
# Simulated backend
# -----------------------------------------------------------------------------


class TestSimulatedClusterBackend:
    def test_results_are_marked_mock(self, settings) -> None:
        backend = SimulatedClusterBackend(settings.azure)
        assert backend.create("c1", 1, "Standard_D2s_v3").mock is True
        assert backend.get_state("c1") == "Succeeded"
        creds = backend.credentials("c1")
        assert creds.kubeconfig == "mock-kubeconfig-content"
        assert creds.fqdn == "c1.azmk8s.io"


# -----------------------------------------------------------------------------
# Provisioner
# -----------------------------------------------------------------------------


class TestAksProvisioner:
    def test_create_uses_defaults(self, settings) -> None:
        backend = MagicMock(simulated=False)
        AksProvisioner(settings, backend=backend).create_cluster("c1")
        backend.create.assert_called_once_with("c1", 1, "Standard_D2s_v3")

    def test_node_count_string_is_coerced(self, settings) -> None:
        backend = MagicMock(simulated=False)
        AksProvisioner(settings, backend=backend).create_cluster("c1", node_count="3")
        assert backend.create.call_args.args[1] == 3

    @pytest.mark.parametrize("bad", ["three", 0, True, [1]])
    def test_invalid_node_count(self, settings, bad) -> None:
        with pytest.raises(InvalidRequestError):
            AksProvisioner(settings, backend=MagicMock()).create_cluster("c1", node_count=bad)

    def test_missing_name(self, settings) -> None:
        with pytest.raises(InvalidRequestError, match="Cluster name"):
            AksProvisioner(settings, backend=MagicMock()).create_cluster("")

    def test_azure_error_wrapped(self, settings) -> None:
        backend = MagicMock()
        backend.create.side_effect = HttpResponseError(message="quota exceeded")
        with pytest.raises(AgentError, match="Failed to create AKS cluster c1"):
            AksProvisioner(settings, backend=backend).create_cluster("c1")

    def test_wait_uses_backend_state_and_reconcile(self, settings, fake_clock) -> None:
        backend = MagicMock(simulated=False)
        backend.get_state.side_effect = ["Failed", "Updating", "Succeeded"]
        provisioner = AksProvisioner(settings, backend=backend, clock=fake_clock, sleep=fake_clock.sleep)
        session = provisioner.wait_for_cluster_ready("c1", 300)
        assert session.polls == 3
        backend.reconcile.assert_called_once_with("c1")
        assert fake_clock.sleeps == [30, 30]

    def test_wait_defaults_to_configured_budget(self, settings, fake_clock) -> None:
        backend = MagicMock(simulated=False)
        backend.get_state.return_value = "Creating"
        provisioner = AksProvisioner(settings, backend=backend, clock=fake_clock, sleep=fake_clock.sleep)
        with pytest.raises(ClusterReadinessTimeout) as exc_info:
            provisioner.wait_for_cluster_ready("c1")
        assert exc_info.value.timeout_seconds == 300
        assert fake_clock.now == pytest.approx(300)

    def test_explicit_zero_interval_is_rejected(self, settings, fake_clock) -> None:
        backend = MagicMock(simulated=False)
        provisioner = AksProvisioner(settings, backend=backend, clock=fake_clock, sleep=fake_clock.sleep)
        with pytest.raises(ValueError):
            provisioner.wait_for_cluster_ready("c1", 300, poll_interval=0)
        backend.get_state.assert_not_called()

    def test_explicit_interval_overrides_settings(self, settings, fake_clock) -> None:
        backend = MagicMock(simulated=False)
        backend.get_state.side_effect = ["Creating", "Succeeded"]
        provisioner = AksProvisioner(settings, backend=backend, clock=fake_clock, sleep=fake_clock.sleep)
        provisioner.wait_for_cluster_ready("c1", 300, poll_interval=5)
        assert fake_clock.sleeps == [5]

    def test_simulated_flag(self, settings) -> None:
        assert AksProvisioner(settings).simulated is True
