"""
HTTP service for the CI/CD agents.

One POST route per agent plus a full pipeline run. Request bodies are plain
JSON objects forwarded to the agent; InvalidRequestError maps to 400 and any
other failure to 500, both with body {"error", "message"}.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import structlog
from fastapi import Body, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from cicd_agents import __version__
from cicd_agents.agents import (
    BuildPredictorAgent,
    CodeReviewAgent,
    DeployAgent,
    DockerHandlerAgent,
    InvalidRequestError,
    MonitorAgent,
    ProvisionerAgent,
)
from cicd_agents.config.settings import Settings, get_settings
from cicd_agents.flows.pipeline import PipelineRunner
from cicd_agents.provisioning.aks import AksProvisioner
from cicd_agents.utils.logging import configure_logging

logger = structlog.get_logger(__name__)

HTTP_OK = 200
HTTP_ACCEPTED = 202
HTTP_BAD_REQUEST = 400
HTTP_SERVER_ERROR = 500


def build_agents(settings: Settings) -> Dict[str, Any]:
    """Default agent set; deploy, monitor and provisioning share one AksProvisioner."""
    provisioner = AksProvisioner(settings)
    deploy = DeployAgent(settings, provisioner=provisioner)
    agents: Dict[str, Any] = {
        "code_review": CodeReviewAgent(settings),
        "build_predictor": BuildPredictorAgent(settings),
        "docker_handler": DockerHandlerAgent(settings, deploy_agent=deploy),
        "deploy": deploy,
        "monitor": MonitorAgent(settings, provisioner=provisioner),
        "aks_provisioner": ProvisionerAgent(settings, provisioner=provisioner),
    }
    agents["pipeline"] = PipelineRunner(
        settings,
        code_review=agents["code_review"],
        build_predictor=agents["build_predictor"],
        docker_handler=agents["docker_handler"],
        provisioner=agents["aks_provisioner"],
        deploy=deploy,
        monitor=agents["monitor"],
    )
    return agents


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def _respond(
    label: str,
    fn: Callable[[], Any],
    status_for: Optional[Callable[[Any], int]] = None,
) -> JSONResponse:
    """Run an agent call and map its outcome (or failure) to a JSON response."""
    try:
        result = fn()
    except InvalidRequestError as e:
        error = "Missing required parameter" if "required" in str(e) else "Invalid request"
        logger.warning("request_rejected", agent=label, error=str(e))
        return _error(HTTP_BAD_REQUEST, error, str(e))
    except ValidationError as e:
        logger.warning("request_rejected", agent=label, error=str(e))
        return _error(HTTP_BAD_REQUEST, "Invalid request", str(e))
    except Exception as e:
        logger.exception("request_failed", agent=label)
        return _error(HTTP_SERVER_ERROR, f"{label} failed", str(e))
    content = result.model_dump(mode="json") if isinstance(result, BaseModel) else result
    return JSONResponse(status_code=status_for(result) if status_for else HTTP_OK, content=content)


def create_app(settings: Optional[Settings] = None, agents: Optional[Dict[str, Any]] = None) -> FastAPI:
    """
    Build the FastAPI application.

    :param settings: Settings; global settings when None.
    :param agents: Agent instances keyed by name (see build_agents); tests inject mocks.
    """
    settings = settings or get_settings()
    configure_logging(settings.logging)
    agents = agents or build_agents(settings)

    app = FastAPI(
        title="CI/CD Agents",
        description="Code review, build prediction, image build, AKS provisioning, deploy and monitor agents",
        version=__version__,
    )
    app.state.settings = settings
    app.state.agents = agents

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {
            "status": "ok",
            "service": "cicd-agents",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.post("/agent/code-review")
    def code_review(body: Dict[str, Any] = Body(...)) -> JSONResponse:
        return _respond("Code review", lambda: agents["code_review"].analyze(body))

    @app.post("/agent/build-predictor")
    def build_predictor(body: Dict[str, Any] = Body(...)) -> JSONResponse:
        return _respond(
            "Build prediction",
            lambda: agents["build_predictor"].predict(
                body.get("repository"),
                body.get("commit_sha"),
                branch=body.get("branch") or "main",
                changed_files=body.get("changed_files"),
                code_review_result=body.get("code_review_result"),
                llm_model=body.get("llm_model"),
            ),
        )

    @app.post("/agent/docker-handler")
    def docker_handler(body: Dict[str, Any] = Body(...)) -> JSONResponse:
        params = {
            k: v for k, v in body.items() if k not in ("repository", "commit_sha", "build_prediction", "action")
        }
        return _respond(
            "Docker handler",
            lambda: agents["docker_handler"].handle(
                body.get("repository"),
                body.get("commit_sha"),
                build_prediction=body.get("build_prediction"),
                action=body.get("action") or "build_and_push",
                **params,
            ),
        )

    @app.post("/agent/deploy")
    def deploy(body: Dict[str, Any] = Body(...)) -> JSONResponse:
        return _respond("Deployment", lambda: agents["deploy"].deploy(body))

    @app.post("/agent/monitor")
    def monitor(body: Dict[str, Any] = Body(...)) -> JSONResponse:
        return _respond("Monitoring", lambda: agents["monitor"].monitor(body))

    @app.post("/agent/provision-aks")
    def provision_aks(body: Dict[str, Any] = Body(...)) -> JSONResponse:
        # 200 once the cluster is ready, 202 while creation is still pending
        return _respond(
            "AKS provisioning",
            lambda: agents["aks_provisioner"].provision(body),
            status_for=lambda outcome: HTTP_OK if outcome.ready else HTTP_ACCEPTED,
        )

    @app.post("/pipeline/run")
    def pipeline_run(body: Dict[str, Any] = Body(...)) -> JSONResponse:
        return _respond("Pipeline", lambda: agents["pipeline"].run(body))

    logger.info("app_created", agents=sorted(agents))
    return app
