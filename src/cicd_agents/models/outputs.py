"""
Pydantic models for agent outputs.

Each agent returns one of these; model_dump() is the JSON blob forwarded to the
next pipeline stage and returned by the HTTP routes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# -----------------------------------------------------------------------------
# Code review
# -----------------------------------------------------------------------------


class Severity(str, Enum):
    """Review issue severity."""

    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class ReviewIssue(BaseModel):
    """Single issue raised by the reviewer."""

    type: str = Field(default="general", description="Issue category (bug, style, security, ...)")
    severity: Severity = Field(default=Severity.MINOR, description="critical | major | minor")
    message: str = Field(..., description="What is wrong")
    line: Optional[int] = Field(default=None, description="Line in the diff, if known")
    file: Optional[str] = Field(default=None, description="File path, if known")

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            if v not in {s.value for s in Severity}:
                return Severity.MINOR
        return v


class CodeReviewResult(BaseModel):
    """Output of the code review agent."""

    status: str = Field(..., description="approved | changes_requested")
    score: int = Field(..., ge=0, le=100, description="Overall quality score")
    approved: bool = Field(..., description="score >= 80 and no critical issues")
    issues_found: int = Field(default=0, ge=0)
    issues: List[ReviewIssue] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    security_concerns: List[str] = Field(default_factory=list)
    performance_issues: List[str] = Field(default_factory=list)
    repository: Optional[str] = Field(default=None)
    commit_sha: Optional[str] = Field(default=None, description="PR head SHA, consumed by the build predictor")
    branch: str = Field(default="main")


# -----------------------------------------------------------------------------
# Build prediction
# -----------------------------------------------------------------------------


class ResourceRequirements(BaseModel):
    """Predicted build resources."""

    cpu: str = Field(default="2 cores")
    memory: str = Field(default="4GB")
    disk: str = Field(default="20GB")


class BuildPrediction(BaseModel):
    """Output of the build predictor agent."""

    repository: str
    branch: str = Field(default="main")
    commit_sha: str
    prediction: str = Field(..., description="success | failure | warning")
    confidence: int = Field(..., ge=0, le=100)
    estimated_duration: float = Field(..., ge=0, description="Minutes")
    potential_issues: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    build_strategy: str = Field(default="standard")
    resource_requirements: ResourceRequirements = Field(default_factory=ResourceRequirements)
    language: Optional[str] = Field(default=None, description="Primary repository language, if known")
    llm_based: bool = Field(default=True, description="False when the history fallback was used")
    github_data_available: bool = Field(default=False)


# -----------------------------------------------------------------------------
# Image build
# -----------------------------------------------------------------------------


class ImageBuildResult(BaseModel):
    """Output of the docker handler's build_and_push action."""

    status: str = Field(default="success")
    image: str
    registry_image: Optional[str] = None
    build_output: str = Field(default="")
    push_output: Optional[str] = None
    push_error: Optional[str] = None
    dockerfile: Optional[str] = None
    original_repository: str
    commit_sha: str
    mock: bool = False


class ManifestBundle(BaseModel):
    """Kubernetes manifests as plain dicts (API-ready bodies)."""

    image: str
    deployment: Dict[str, Any]
    service: Dict[str, Any]
    ingress: Optional[Dict[str, Any]] = None


# -----------------------------------------------------------------------------
# Cluster provisioning
# -----------------------------------------------------------------------------


class ClusterOperation(BaseModel):
    """Result of a create / delete / reconcile request against the cluster API."""

    status: str
    cluster_name: str
    resource_group: str
    location: Optional[str] = None
    provisioning_state: Optional[str] = None
    kubernetes_version: Optional[str] = None
    node_count: Optional[int] = None
    vm_size: Optional[str] = None
    estimated_time_minutes: Optional[int] = None
    mock: bool = False
    message: Optional[str] = None


class ClusterCredentials(BaseModel):
    """Admin kubeconfig for a cluster."""

    status: str = Field(default="success")
    cluster_name: str
    kubeconfig: str
    provisioning_state: Optional[str] = None
    fqdn: Optional[str] = None
    mock: bool = False


# -----------------------------------------------------------------------------
# Deploy and monitor
# -----------------------------------------------------------------------------


class DeployedResource(BaseModel):
    type: str
    status: str = Field(..., description="created | updated | exists")


class DeploymentResult(BaseModel):
    """Output of the deploy agent."""

    status: str = Field(default="success")
    repository: str
    environment: str
    namespace: str
    cluster_name: str
    image: Optional[str] = None
    deployment_id: str
    deployment_name: Optional[str] = None
    deployed_resources: List[DeployedResource] = Field(default_factory=list)
    deployment_url: Optional[str] = None
    deployment_time: Optional[str] = None
    mock: bool = False
    message: Optional[str] = None


class MonitorReport(BaseModel):
    """Output of the monitor agent."""

    status: str = Field(..., description="healthy | degraded | unreachable")
    deployment_name: str
    namespace: str
    cluster_name: Optional[str] = None
    desired_replicas: int = 0
    ready_replicas: int = 0
    available_replicas: int = 0
    health_url: Optional[str] = None
    health_status_code: Optional[int] = None
    health_error: Optional[str] = None
    checked_at: str
    mock: bool = False
