"""
Pipeline error handling.

Classifies stage failures (retryable, recoverable, fatal) by message
indicators, records structured error entries via structlog, summarises errors
per stage, and persists state when a run fails.
"""

from __future__ import annotations

import json
import traceback
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from pydantic import BaseModel, Field

from cicd_agents.config.settings import get_settings
from cicd_agents.flows.state import PipelineStage, PipelineState

logger = structlog.get_logger(__name__)


class ErrorCategory(str, Enum):
    """Classification of stage errors."""

    RETRYABLE = "retryable"  # timeouts, rate limits, API unavailable
    RECOVERABLE = "recoverable"  # bad LLM output, invalid request data
    FATAL = "fatal"  # auth failures, missing resources


# Substrings that indicate each category (case-insensitive)
RETRYABLE_INDICATORS = [
    "timeout",
    "timed out",
    "not yet ready",
    "rate limit",
    "connection refused",
    "connection reset",
    "temporarily",
    "503",
    "429",
    "try again",
]
FATAL_INDICATORS = [
    "unauthorized",
    "forbidden",
    "401",
    "403",
    "authentication",
    "credentials",
    "not found",
    "no kubeconfig",
]


def classify_error(error: BaseException | Dict[str, Any] | str) -> ErrorCategory:
    """
    Classify an error by its message. Fatal is checked first, then retryable;
    anything else is recoverable.
    """
    if isinstance(error, TimeoutError):
        return ErrorCategory.RETRYABLE
    if isinstance(error, dict):
        msg = error.get("error") or error.get("message") or str(error)
    else:
        msg = str(error)
    msg = msg.lower()
    for indicator in FATAL_INDICATORS:
        if indicator in msg:
            return ErrorCategory.FATAL
    for indicator in RETRYABLE_INDICATORS:
        if indicator in msg:
            return ErrorCategory.RETRYABLE
    return ErrorCategory.RECOVERABLE


class StructuredErrorLog(BaseModel):
    """Structured error entry: stage, agent, category, message, stack trace."""

    stage: str
    agent: Optional[str] = None
    error_type: str
    category: ErrorCategory
    message: str
    stack_trace: Optional[str] = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def record_structured_error(
    stage: PipelineStage,
    error: BaseException,
    agent: Optional[str] = None,
) -> StructuredErrorLog:
    """Build a structured error entry and log it."""
    entry = StructuredErrorLog(
        stage=stage.value,
        agent=agent,
        error_type=type(error).__name__,
        category=classify_error(error),
        message=str(error),
        stack_trace="".join(traceback.format_exception(type(error), error, error.__traceback__)),
    )
    logger.error(
        "pipeline_stage_error",
        stage=entry.stage,
        agent=entry.agent,
        error_type=entry.error_type,
        category=entry.category.value,
        message=entry.message[:200],
    )
    return entry


def build_error_summary_report(state: PipelineState) -> str:
    """Human-readable summary of a run's errors."""
    lines = [
        f"Run: {state.run_id}",
        f"Repository: {state.event.repository}",
        f"Stage: {state.current_stage.value}",
        f"Total errors: {len(state.errors)}",
    ]
    for i, err in enumerate(state.errors, 1):
        suffix = "..." if len(err.message) > 200 else ""
        lines.append(f"  {i}. [{err.stage.value}] {err.error_type}: {err.message[:200]}{suffix}")
    return "\n".join(lines)


def get_error_metrics(state: PipelineState) -> Dict[str, Any]:
    by_stage: Dict[str, int] = {}
    for err in state.errors:
        by_stage[err.stage.value] = by_stage.get(err.stage.value, 0) + 1
    return {"error_count_by_stage": by_stage, "total_errors": len(state.errors)}


def persist_state(state: PipelineState, output_dir: Optional[str | Path] = None) -> Path:
    """Write the state JSON to ``{output_dir}/{run_id}_state.json`` and return the path."""
    out_dir = Path(output_dir or get_settings().pipeline.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"{state.run_id}_state.json"
    path.write_text(json.dumps(state.model_dump(mode="json"), indent=2), encoding="utf-8")
    logger.info("pipeline_state_persisted", path=str(path), stage=state.current_stage.value)
    return path


def load_state_from_file(path: Path) -> PipelineState:
    return PipelineState.model_validate(json.loads(path.read_text(encoding="utf-8")))
