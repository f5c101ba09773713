"""Pydantic models for agent outputs."""

from cicd_agents.models.outputs import (
    BuildPrediction,
    ClusterCredentials,
    ClusterOperation,
    CodeReviewResult,
    DeployedResource,
    DeploymentResult,
    ImageBuildResult,
    ManifestBundle,
    MonitorReport,
    ResourceRequirements,
    ReviewIssue,
    Severity,
)

__all__ = [
    "BuildPrediction",
    "ClusterCredentials",
    "ClusterOperation",
    "CodeReviewResult",
    "DeployedResource",
    "DeploymentResult",
    "ImageBuildResult",
    "ManifestBundle",
    "MonitorReport",
    "ResourceRequirements",
    "ReviewIssue",
    "Severity",
]
