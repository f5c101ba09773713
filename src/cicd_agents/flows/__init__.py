"""Pipeline flow: state, orchestration and error handling."""

from cicd_agents.flows.pipeline import PipelineRunner, run_pipeline
from cicd_agents.flows.state import PipelineEvent, PipelineStage, PipelineState

__all__ = ["PipelineEvent", "PipelineRunner", "PipelineStage", "PipelineState", "run_pipeline"]
