"""
Pydantic models for pipeline state.

PipelineState tracks the current stage, every stage result (as the JSON the
next stage consumes), stage transitions, and errors for one pipeline run.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


class PipelineStage(str, Enum):
    """Stages of one pipeline run, in execution order."""

    INTAKE = "intake"
    REVIEW = "review"
    PREDICTION = "prediction"
    BUILD = "build"
    PROVISIONING = "provisioning"
    DEPLOY = "deploy"
    MONITOR = "monitor"
    COMPLETE = "complete"
    FAILED = "failed"
    HALTED = "halted"


_STAGE_ORDER: List[PipelineStage] = [
    PipelineStage.INTAKE,
    PipelineStage.REVIEW,
    PipelineStage.PREDICTION,
    PipelineStage.BUILD,
    PipelineStage.PROVISIONING,
    PipelineStage.DEPLOY,
    PipelineStage.MONITOR,
    PipelineStage.COMPLETE,
]
TERMINAL_STAGES = (PipelineStage.COMPLETE, PipelineStage.FAILED, PipelineStage.HALTED)


class StageTransition(BaseModel):
    """Record of a single stage transition."""

    from_stage: PipelineStage
    to_stage: PipelineStage
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reason: str = Field(default="")


class StageError(BaseModel):
    """Error recorded against a stage."""

    stage: PipelineStage
    error_type: str = Field(..., description="Error category")
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    recoverable: bool = Field(default=False)


class PipelineEvent(BaseModel):
    """Input that starts a pipeline run (typically a pull request event)."""

    repository: str = Field(..., description="owner/repo")
    commit_sha: Optional[str] = Field(default=None, description="Falls back to the reviewed PR head SHA")
    branch: str = Field(default="main")
    pull_request: Optional[int] = Field(default=None)
    diff_url: Optional[str] = Field(default=None)
    changed_files: Union[List[str], str] = Field(default_factory=list)
    environment: str = Field(default="staging")
    namespace: Optional[str] = Field(default=None)
    cluster_name: Optional[str] = Field(default=None)
    health_url: Optional[str] = Field(default=None)
    llm_model: Optional[str] = Field(default=None)

    @field_validator("repository")
    @classmethod
    def _repository_format(cls, v: str) -> str:
        parts = v.split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError("Repository must be in format owner/repo")
        return v

    @model_validator(mode="after")
    def _has_source(self) -> "PipelineEvent":
        if not self.commit_sha and self.pull_request is None and not self.diff_url:
            raise ValueError("commit_sha, pull_request or diff_url is required")
        return self


class PipelineState(BaseModel):
    """
    State of one pipeline run.

    ``results`` maps stage name to that stage's output (model_dump of the
    agent result). Transitions only move forward; FAILED and HALTED are
    reachable from any stage. Skipped stages are recorded in ``skipped``.
    """

    run_id: str = Field(default_factory=lambda: str(uuid4()))
    event: PipelineEvent
    current_stage: PipelineStage = Field(default=PipelineStage.INTAKE)
    results: Dict[str, Any] = Field(default_factory=dict)
    skipped: List[str] = Field(default_factory=list)
    stage_history: List[StageTransition] = Field(default_factory=list)
    errors: List[StageError] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = Field(default=None)
    halt_reason: Optional[str] = Field(default=None)

    def advance(self, to_stage: PipelineStage, reason: str = "") -> None:
        """Move to ``to_stage``. Raises ValueError on a backwards move or out of a terminal stage."""
        _validate_transition(self.current_stage, to_stage)
        self.stage_history.append(StageTransition(from_stage=self.current_stage, to_stage=to_stage, reason=reason))
        self.current_stage = to_stage
        if to_stage in TERMINAL_STAGES:
            self.completed_at = datetime.now(timezone.utc)

    def record_result(self, stage: PipelineStage, result: Any) -> None:
        self.results[stage.value] = result.model_dump(mode="json") if isinstance(result, BaseModel) else result

    def skip(self, stage: PipelineStage) -> None:
        self.skipped.append(stage.value)

    def add_error(self, stage: PipelineStage, error_type: str, message: str, recoverable: bool = False) -> None:
        self.errors.append(StageError(stage=stage, error_type=error_type, message=message, recoverable=recoverable))

    @property
    def succeeded(self) -> bool:
        return self.current_stage is PipelineStage.COMPLETE

    def get_duration(self) -> timedelta:
        end = self.completed_at or datetime.now(timezone.utc)
        return end - self.started_at

    def to_summary(self) -> str:
        parts = [
            f"Run {self.run_id[:8]}",
            f"Repository: {self.event.repository}",
            f"Stage: {self.current_stage.value}",
            f"Duration: {self.get_duration()}",
        ]
        if self.errors:
            parts.append(f"Errors: {len(self.errors)}")
        if self.halt_reason:
            parts.append(f"Halted: {self.halt_reason}")
        return " | ".join(parts)


def _validate_transition(from_stage: PipelineStage, to_stage: PipelineStage) -> None:
    if from_stage in TERMINAL_STAGES:
        raise ValueError(f"Pipeline already finished ({from_stage.value})")
    if to_stage in (PipelineStage.FAILED, PipelineStage.HALTED):
        return
    if _STAGE_ORDER.index(to_stage) <= _STAGE_ORDER.index(from_stage):
        raise ValueError(f"Invalid stage transition: {from_stage.value} -> {to_stage.value}")
