"""Cluster provisioning and readiness waiting."""

from cicd_agents.provisioning.readiness import (
    ClusterReadinessTimeout,
    ClusterReadinessWaiter,
    ClusterState,
    ReconciliationError,
    TransientQueryError,
    WaitPhase,
    WaitSession,
    is_infrastructure_error,
    wait_until_ready,
)

__all__ = [
    "ClusterReadinessTimeout",
    "ClusterReadinessWaiter",
    "ClusterState",
    "ReconciliationError",
    "TransientQueryError",
    "WaitPhase",
    "WaitSession",
    "is_infrastructure_error",
    "wait_until_ready",
]
