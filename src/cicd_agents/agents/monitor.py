"""Monitor agent: replica status of a deployment plus an optional HTTP health probe."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from kubernetes.client.rest import ApiException

from cicd_agents.agents.base import BaseAgent, InvalidRequestError
from cicd_agents.agents.deploy import ClusterTargetMixin, DeployerFactory
from cicd_agents.config.settings import Settings
from cicd_agents.models.outputs import MonitorReport
from cicd_agents.provisioning.aks import AksProvisioner
from cicd_agents.tools.infrastructure import app_name_for

HEALTH_TIMEOUT_SECONDS = 10.0


class MonitorAgent(ClusterTargetMixin, BaseAgent):
    """Report healthy / degraded / unreachable for one deployment."""

    name = "monitor"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        provisioner: Optional[AksProvisioner] = None,
        deployer_factory: Optional[DeployerFactory] = None,
        http: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(settings)
        self._init_targets(provisioner, deployer_factory)
        self._http = http

    def monitor(self, request: Dict[str, Any]) -> MonitorReport:
        name = request.get("deployment_name")
        if not name and request.get("repository"):
            name = app_name_for(request["repository"])
        if not name:
            raise InvalidRequestError("Deployment name parameter is required")
        namespace = request.get("namespace") or self.settings.kubernetes.default_namespace
        health_url = request.get("health_url")

        deployer, cluster = self.resolve_deployer(request.get("cluster_name"))
        report: Dict[str, Any] = {
            "deployment_name": name,
            "namespace": namespace,
            "cluster_name": cluster,
            "health_url": health_url,
            "checked_at": datetime.now(timezone.utc).isoformat(),
            "mock": deployer.simulated,
        }

        try:
            replicas = deployer.deployment_status(name, namespace)
        except ApiException as e:
            self.log.warning("monitor_status_unavailable", deployment=name, namespace=namespace, status=e.status)
            return MonitorReport(status="unreachable", health_error=f"Deployment status unavailable: {e.reason}", **report)

        report.update(
            desired_replicas=replicas["desired"],
            ready_replicas=replicas["ready"],
            available_replicas=replicas["available"],
        )
        healthy = replicas["desired"] > 0 and replicas["ready"] >= replicas["desired"]

        if health_url and not deployer.simulated:
            code, error = self._probe(health_url)
            report.update(health_status_code=code, health_error=error)
            healthy = healthy and error is None and code is not None and code < 400

        status = "healthy" if healthy else "degraded"
        self.log.info("monitor_completed", deployment=name, status=status, ready=replicas["ready"])
        return MonitorReport(status=status, **report)

    def _probe(self, url: str) -> tuple[Optional[int], Optional[str]]:
        try:
            if self._http is not None:
                r = self._http.get(url)
            else:
                with httpx.Client(timeout=HEALTH_TIMEOUT_SECONDS) as http:
                    r = http.get(url)
        except httpx.HTTPError as e:
            self.log.warning("monitor_health_probe_failed", url=url, error=str(e))
            return None, str(e)
        return r.status_code, None if r.status_code < 400 else f"HTTP {r.status_code}"
