"""
Kubernetes apply and status backends.

KubernetesDeployer wraps the official Python client: create-or-replace a
Deployment, create-if-absent a Service/Ingress, and read rollout status.
SimulatedDeployer mirrors the same surface without a cluster.
"""

from __future__ import annotations

import os
import tempfile
from typing import Any, Dict, List, Optional, Protocol

import structlog
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from cicd_agents.models.outputs import DeployedResource, ManifestBundle

logger = structlog.get_logger(__name__)

HTTP_CONFLICT = 409


class ClusterDeployer(Protocol):
    simulated: bool

    def apply(self, bundle: ManifestBundle, namespace: str) -> List[DeployedResource]: ...

    def deployment_status(self, name: str, namespace: str) -> Dict[str, int]: ...


def write_kubeconfig(kubeconfig: str) -> str:
    """Write kubeconfig text to a private temp file and return its path."""
    fd, path = tempfile.mkstemp(prefix="kubeconfig-", text=True)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(kubeconfig)
    return path


class KubernetesDeployer:
    """Apply manifests and read deployment status through the Kubernetes API."""

    simulated = False

    def __init__(self, api_client: client.ApiClient) -> None:
        self.apps = client.AppsV1Api(api_client)
        self.core = client.CoreV1Api(api_client)
        self.networking = client.NetworkingV1Api(api_client)

    @classmethod
    def from_kubeconfig_file(cls, path: Optional[str] = None) -> "KubernetesDeployer":
        return cls(config.new_client_from_config(config_file=path))

    @classmethod
    def from_kubeconfig_text(cls, kubeconfig: str) -> "KubernetesDeployer":
        path = write_kubeconfig(kubeconfig)
        try:
            return cls.from_kubeconfig_file(path)
        finally:
            os.unlink(path)

    def apply(self, bundle: ManifestBundle, namespace: str) -> List[DeployedResource]:
        """
        Create the Deployment (replace on 409), then the Service and Ingress
        (left as-is on 409). Other API errors propagate.
        """
        results: List[DeployedResource] = []
        name = bundle.deployment["metadata"]["name"]
        try:
            logger.info("k8s_deployment_create", name=name, namespace=namespace)
            self.apps.create_namespaced_deployment(namespace, bundle.deployment)
            results.append(DeployedResource(type="deployment", status="created"))
        except ApiException as e:
            if e.status != HTTP_CONFLICT:
                logger.error("k8s_deployment_failed", name=name, status=e.status, body=e.body)
                raise
            logger.info("k8s_deployment_replace", name=name, namespace=namespace)
            self.apps.replace_namespaced_deployment(name, namespace, bundle.deployment)
            results.append(DeployedResource(type="deployment", status="updated"))

        results.append(
            self._create_if_absent("service", self.core.create_namespaced_service, namespace, bundle.service)
        )
        if bundle.ingress:
            results.append(
                self._create_if_absent(
                    "ingress", self.networking.create_namespaced_ingress, namespace, bundle.ingress
                )
            )
        return results

    def _create_if_absent(self, kind: str, create: Any, namespace: str, body: Dict[str, Any]) -> DeployedResource:
        try:
            create(namespace, body)
        except ApiException as e:
            if e.status != HTTP_CONFLICT:
                raise
            return DeployedResource(type=kind, status="exists")
        return DeployedResource(type=kind, status="created")

    def deployment_status(self, name: str, namespace: str) -> Dict[str, int]:
        dep = self.apps.read_namespaced_deployment_status(name, namespace)
        status = dep.status
        return {
            "desired": dep.spec.replicas or 0,
            "ready": status.ready_replicas or 0,
            "available": status.available_replicas or 0,
        }


class SimulatedDeployer:
    """In-memory stand-in: every apply creates, every deployment is fully ready."""

    simulated = True

    def __init__(self) -> None:
        self.applied: Dict[str, ManifestBundle] = {}

    def apply(self, bundle: ManifestBundle, namespace: str) -> List[DeployedResource]:
        name = bundle.deployment["metadata"]["name"]
        status = "updated" if f"{namespace}/{name}" in self.applied else "created"
        self.applied[f"{namespace}/{name}"] = bundle
        logger.info("k8s_apply_simulated", name=name, namespace=namespace)
        results = [DeployedResource(type="deployment", status=status), DeployedResource(type="service", status="created")]
        if bundle.ingress:
            results.append(DeployedResource(type="ingress", status="created"))
        return results

    def deployment_status(self, name: str, namespace: str) -> Dict[str, int]:
        bundle = self.applied.get(f"{namespace}/{name}")
        replicas = bundle.deployment["spec"]["replicas"] if bundle else 2
        return {"desired": replicas, "ready": replicas, "available": replicas}
