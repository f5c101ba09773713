"""End-to-end pipeline over simulated backends, through the runner and the HTTP API."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from cicd_agents.api.app import build_agents, create_app
from cicd_agents.flows.error_handling import load_state_from_file
from cicd_agents.flows.pipeline import PipelineRunner
from cicd_agents.flows.state import PipelineStage

pytestmark = pytest.mark.integration


class TestSimulatedPipeline:
    def test_every_stage_runs(self, simulated_settings) -> None:
        state = PipelineRunner(simulated_settings).run(
            {"repository": "acme/web", "commit_sha": "0123456789abcdef", "environment": "staging"}
        )
        assert state.current_stage is PipelineStage.COMPLETE
        assert state.skipped == ["review"]

        prediction = state.results["prediction"]
        assert prediction["llm_based"] is False
        assert prediction["prediction"] == "warning"

        assert state.results["build"]["mock"] is True
        assert state.results["provisioning"]["cluster_name"] == "staging-web"
        assert state.results["deploy"]["deployment_url"] == "https://staging-acme-web.example.com"
        assert state.results["deploy"]["image"] == "mock-registry.example.com/acme/web:0123456"
        assert state.results["monitor"]["status"] == "healthy"

        persisted = Path(simulated_settings.pipeline.output_dir) / f"{state.run_id}_state.json"
        assert load_state_from_file(persisted).succeeded


class TestSimulatedApi:
    @pytest.fixture
    def client(self, simulated_settings) -> TestClient:
        return TestClient(create_app(simulated_settings, agents=build_agents(simulated_settings)))

    def test_provision_without_wait_is_accepted(self, client) -> None:
        r = client.post("/agent/provision-aks", json={"repository": "acme/web", "environment": "dev"})
        assert r.status_code == 202
        body = r.json()
        assert body["cluster_name"] == "dev-web"
        assert body["deployment_ready"] is True

    def test_deploy_and_monitor(self, client) -> None:
        r = client.post("/agent/deploy", json={"repository": "acme/web", "cluster_name": "dev-web", "commit_sha": "abc1234"})
        assert r.status_code == 200
        assert r.json()["mock"] is True
        r = client.post("/agent/monitor", json={"repository": "acme/web", "cluster_name": "dev-web"})
        assert r.json()["status"] == "healthy"

    def test_pipeline_route(self, client) -> None:
        r = client.post("/pipeline/run", json={"repository": "acme/web", "commit_sha": "abc1234"})
        assert r.status_code == 200
        assert r.json()["current_stage"] == "complete"

    def test_code_review_without_llm_is_500(self, client) -> None:
        r = client.post("/agent/code-review", json={"repository": "acme/web", "diff_url": "https://x.test/1.diff"})
        assert r.status_code == 500
        assert r.json()["error"] == "Code review failed"
