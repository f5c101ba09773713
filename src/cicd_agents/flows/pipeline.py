"""
CI/CD pipeline orchestration.

Runs the agents in sequence for one event: code review, build prediction,
image build, optional cluster provisioning with readiness wait, deploy and
monitor. Each stage's output is recorded in PipelineState and forwarded to
the next stage. Gates can halt the run after a rejected review or a predicted
build failure; a stage exception ends the run as failed. State is persisted
to the output directory when the run ends.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, NoReturn, Optional, TypeVar

import structlog

from cicd_agents.agents import (
    BuildPredictorAgent,
    CodeReviewAgent,
    DeployAgent,
    DockerHandlerAgent,
    InvalidRequestError,
    MonitorAgent,
    ProvisionerAgent,
    ProvisionOutcome,
)
from cicd_agents.agents.base import AgentError
from cicd_agents.config.settings import Settings, get_settings
from cicd_agents.flows.error_handling import (
    ErrorCategory,
    build_error_summary_report,
    persist_state,
    record_structured_error,
)
from cicd_agents.flows.state import PipelineEvent, PipelineStage, PipelineState
from cicd_agents.provisioning.aks import AksProvisioner

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class StageFailed(Exception):
    """Internal signal: a stage raised and the run has been marked failed."""


class PipelineRunner:
    """
    Sequential pipeline over the six agents.

    Agents may be injected (tests pass mocks); otherwise they are built from
    the settings and share one AksProvisioner.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        code_review: Optional[CodeReviewAgent] = None,
        build_predictor: Optional[BuildPredictorAgent] = None,
        docker_handler: Optional[DockerHandlerAgent] = None,
        provisioner: Optional[ProvisionerAgent] = None,
        deploy: Optional[DeployAgent] = None,
        monitor: Optional[MonitorAgent] = None,
        persist: bool = True,
    ) -> None:
        self.settings = settings or get_settings()
        shared: Optional[AksProvisioner] = None
        if not (provisioner and deploy and monitor):
            shared = AksProvisioner(self.settings)
        self.code_review = code_review or CodeReviewAgent(self.settings)
        self.build_predictor = build_predictor or BuildPredictorAgent(self.settings)
        self.deploy = deploy or DeployAgent(self.settings, provisioner=shared)
        self.docker_handler = docker_handler or DockerHandlerAgent(self.settings, deploy_agent=self.deploy)
        self.provisioner = provisioner or ProvisionerAgent(self.settings, provisioner=shared)
        self.monitor = monitor or MonitorAgent(self.settings, provisioner=shared)
        self.persist = persist

    def run(self, event: PipelineEvent | Dict[str, Any]) -> PipelineState:
        """Run every stage for ``event`` and return the final state."""
        if not isinstance(event, PipelineEvent):
            event = PipelineEvent.model_validate(event)
        state = PipelineState(event=event)
        structlog.contextvars.bind_contextvars(run_id=state.run_id, repository=event.repository)
        logger.info("pipeline_started", commit_sha=event.commit_sha, pull_request=event.pull_request)
        try:
            self._run_stages(state)
        except StageFailed:
            logger.error("pipeline_failed", stage=state.stage_history[-1].from_stage.value)
            logger.debug("pipeline_error_summary", report=build_error_summary_report(state))
        finally:
            if self.persist:
                persist_state(state, self.settings.pipeline.output_dir)
            structlog.contextvars.unbind_contextvars("run_id", "repository")
        logger.info("pipeline_finished", stage=state.current_stage.value, duration=str(state.get_duration()))
        return state

    def _run_stages(self, state: PipelineState) -> None:
        event = state.event
        gates = self.settings.pipeline

        # Review
        review: Dict[str, Any] = {}
        if event.pull_request is not None or event.diff_url:
            state.advance(PipelineStage.REVIEW)
            result = self._stage(
                state,
                PipelineStage.REVIEW,
                self.code_review.name,
                self.code_review.analyze,
                {
                    "repository": event.repository,
                    "pull_request": event.pull_request,
                    "diff_url": event.diff_url,
                    "head_sha": event.commit_sha,
                    "branch": event.branch,
                    "llm_model": event.llm_model,
                },
            )
            review = result.model_dump(mode="json")
            if gates.require_review_approval and not result.approved:
                self._halt(state, f"Code review requested changes (score {result.score})")
                return
        else:
            state.skip(PipelineStage.REVIEW)

        # Prediction
        state.advance(PipelineStage.PREDICTION)
        commit_sha = event.commit_sha or review.get("commit_sha")
        if not commit_sha:
            self._fail(
                state,
                PipelineStage.PREDICTION,
                self.build_predictor.name,
                InvalidRequestError("Commit SHA parameter is required"),
            )
        prediction = self._stage(
            state,
            PipelineStage.PREDICTION,
            self.build_predictor.name,
            self.build_predictor.predict,
            event.repository,
            commit_sha,
            branch=event.branch,
            changed_files=event.changed_files,
            code_review_result=review,
            llm_model=event.llm_model,
        )
        if gates.halt_on_predicted_failure and prediction.prediction == "failure":
            self._halt(state, f"Build predicted to fail (confidence {prediction.confidence})")
            return

        # Build
        state.advance(PipelineStage.BUILD)
        image = self._stage(
            state,
            PipelineStage.BUILD,
            self.docker_handler.name,
            self.docker_handler.handle,
            event.repository,
            commit_sha,
            build_prediction=prediction.model_dump(mode="json"),
            action="build_and_push",
        )

        # Provisioning
        cluster_name = event.cluster_name
        if gates.provision_cluster:
            state.advance(PipelineStage.PROVISIONING)
            outcome = self._stage(state, PipelineStage.PROVISIONING, self.provisioner.name, self._provision, event)
            cluster_name = outcome.cluster_name
        else:
            state.skip(PipelineStage.PROVISIONING)

        if not self._has_deploy_target(cluster_name):
            logger.warning("pipeline_deploy_skipped", reason="no cluster configured")
            state.skip(PipelineStage.DEPLOY)
            state.skip(PipelineStage.MONITOR)
            state.advance(PipelineStage.COMPLETE, "built; no deploy target")
            return

        # Deploy
        state.advance(PipelineStage.DEPLOY)
        deployment = self._stage(
            state,
            PipelineStage.DEPLOY,
            self.deploy.name,
            self.deploy.deploy,
            {
                "repository": event.repository,
                "commit_sha": commit_sha,
                "environment": event.environment,
                "namespace": event.namespace,
                "cluster_name": cluster_name,
                "docker_result": image.model_dump(mode="json"),
            },
        )

        # Monitor
        state.advance(PipelineStage.MONITOR)
        self._stage(
            state,
            PipelineStage.MONITOR,
            self.monitor.name,
            self.monitor.monitor,
            {
                "deployment_name": deployment.deployment_name,
                "namespace": deployment.namespace,
                "cluster_name": cluster_name,
                "health_url": event.health_url,
            },
        )
        state.advance(PipelineStage.COMPLETE)

    def _provision(self, event: PipelineEvent) -> ProvisionOutcome:
        outcome = self.provisioner.provision(
            {
                "repository": event.repository,
                "environment": event.environment,
                "cluster_name": event.cluster_name,
                "wait_for_ready": True,
            }
        )
        if not outcome.deployment_ready:
            raise AgentError(outcome.message)
        return outcome

    def _has_deploy_target(self, cluster_name: Optional[str]) -> bool:
        k8s = self.settings.kubernetes
        return bool(cluster_name or k8s.default_cluster or k8s.kubeconfig)

    def _stage(
        self,
        state: PipelineState,
        stage: PipelineStage,
        agent: str,
        fn: Callable[..., T],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        logger.info("pipeline_stage_started", stage=stage.value, agent=agent)
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            self._fail(state, stage, agent, e)
        state.record_result(stage, result)
        logger.info("pipeline_stage_completed", stage=stage.value)
        return result

    def _fail(self, state: PipelineState, stage: PipelineStage, agent: str, error: Exception) -> NoReturn:
        entry = record_structured_error(stage, error, agent=agent)
        state.add_error(stage, entry.category.value, str(error), recoverable=entry.category is not ErrorCategory.FATAL)
        state.advance(PipelineStage.FAILED, f"{type(error).__name__}: {error}")
        raise StageFailed(str(error)) from error

    def _halt(self, state: PipelineState, reason: str) -> None:
        logger.warning("pipeline_halted", stage=state.current_stage.value, reason=reason)
        state.halt_reason = reason
        state.advance(PipelineStage.HALTED, reason)


def run_pipeline(event: PipelineEvent | Dict[str, Any], settings: Optional[Settings] = None) -> PipelineState:
    """Convenience entry point: run one event with default agents."""
    return PipelineRunner(settings).run(event)
