"""
Cluster readiness waiter.

Polls a cluster's provisioning state until it reports Succeeded, attempting at
most one reconciliation per wait session when the cluster is observed Failed
(or when a state query fails with a control-plane error), and raising
ClusterReadinessTimeout once the wall-clock budget is exhausted.

The two external operations (state query and reconcile) are injected as
callables so any backend, or a deterministic test double, can drive the loop.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 30.0

# Substrings (case-insensitive) marking a query failure as an infrastructure-layer problem
INFRASTRUCTURE_ERROR_INDICATORS = [
    "control plane",
    "controlplane",
]

StateQuery = Callable[[str], str]
ReconcileAction = Callable[[str], Any]


class ClusterState(str, Enum):
    """Provisioning labels the waiter acts on. Any other label means still in progress."""

    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    IN_PROGRESS = "InProgress"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "ClusterState":
        if label == cls.SUCCEEDED.value:
            return cls.SUCCEEDED
        if label == cls.FAILED.value:
            return cls.FAILED
        return cls.IN_PROGRESS


class WaitPhase(str, Enum):
    """Phases of one wait session."""

    POLLING = "polling"
    RECONCILE_ATTEMPTED = "reconcile_attempted"
    READY = "ready"
    TIMED_OUT = "timed_out"


class TransientQueryError(Exception):
    """A single state query failed; the wait keeps polling."""


class ReconciliationError(Exception):
    """The best-effort reconcile action failed; logged and never propagated."""


class ClusterReadinessTimeout(TimeoutError):
    """No Succeeded observation within the budget."""

    def __init__(self, cluster_id: str, elapsed_seconds: float, timeout_seconds: float) -> None:
        self.cluster_id = cluster_id
        self.elapsed_seconds = elapsed_seconds
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timeout waiting for cluster {cluster_id} to be ready after "
            f"{elapsed_seconds:.1f}s (budget {timeout_seconds:.1f}s)"
        )


@dataclass
class WaitSession:
    """Stack-local state for one wait call."""

    cluster_id: str
    timeout_seconds: float
    started_at: float
    phase: WaitPhase = WaitPhase.POLLING
    reconcile_attempted: bool = False
    polls: int = 0
    last_state: Optional[str] = None
    last_error: Optional[str] = None
    reconcile_error: Optional[ReconciliationError] = None
    elapsed_seconds: float = 0.0
    history: list[str] = field(default_factory=list)

    def elapsed(self, now: float) -> float:
        return now - self.started_at


def is_infrastructure_error(error: BaseException) -> bool:
    """True when the error message points at the cluster control plane."""
    msg = str(error).lower()
    return any(indicator in msg for indicator in INFRASTRUCTURE_ERROR_INDICATORS)


class ClusterReadinessWaiter:
    """
    Wait-and-reconcile loop over two injected capabilities.

    :param get_state: callable(cluster_id) -> provisioning state label; may raise.
    :param reconcile: callable(cluster_id); best-effort, result ignored.
    :param poll_interval: seconds between polls.
    :param clock: monotonic clock, injectable for tests.
    :param sleep: sleep function, injectable for tests.
    """

    def __init__(
        self,
        get_state: StateQuery,
        reconcile: ReconcileAction,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self._get_state = get_state
        self._reconcile = reconcile
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    def wait_until_ready(self, cluster_id: str, timeout_seconds: float) -> WaitSession:
        """
        Poll until the cluster reports Succeeded.

        Returns the finished WaitSession (phase READY). Raises
        ClusterReadinessTimeout when the budget runs out, including immediately
        for a zero or negative budget.
        """
        if not cluster_id:
            raise ValueError("cluster_id must be a non-empty string")

        session = WaitSession(
            cluster_id=cluster_id,
            timeout_seconds=float(timeout_seconds),
            started_at=self._clock(),
        )
        logger.info("cluster_wait_started", cluster=cluster_id, timeout_seconds=session.timeout_seconds)

        while session.elapsed(self._clock()) < session.timeout_seconds:
            session.polls += 1
            try:
                label = self._query(cluster_id)
            except TransientQueryError as e:
                session.last_error = str(e)
                logger.warning("cluster_state_query_failed", cluster=cluster_id, poll=session.polls, error=str(e))
                if not session.reconcile_attempted and is_infrastructure_error(e):
                    logger.info("cluster_control_plane_issue", cluster=cluster_id)
                    self._reconcile_once(session)
            else:
                session.last_state = label
                session.history.append(label)
                state = ClusterState.from_label(label)
                if state is ClusterState.SUCCEEDED:
                    session.phase = WaitPhase.READY
                    session.elapsed_seconds = session.elapsed(self._clock())
                    logger.info(
                        "cluster_ready",
                        cluster=cluster_id,
                        polls=session.polls,
                        elapsed_seconds=round(session.elapsed_seconds, 3),
                    )
                    return session
                logger.info("cluster_not_ready", cluster=cluster_id, state=label, poll=session.polls)
                if state is ClusterState.FAILED and not session.reconcile_attempted:
                    logger.info("cluster_failed_reconciling", cluster=cluster_id)
                    self._reconcile_once(session)

            remaining = session.timeout_seconds - session.elapsed(self._clock())
            if remaining <= 0:
                break
            self._sleep(min(self.poll_interval, remaining))

        session.phase = WaitPhase.TIMED_OUT
        elapsed = session.elapsed_seconds = session.elapsed(self._clock())
        logger.error(
            "cluster_wait_timed_out",
            cluster=cluster_id,
            polls=session.polls,
            elapsed_seconds=round(elapsed, 3),
            last_state=session.last_state,
            last_error=session.last_error,
        )
        raise ClusterReadinessTimeout(cluster_id, elapsed, session.timeout_seconds)

    def _query(self, cluster_id: str) -> str:
        try:
            return self._get_state(cluster_id)
        except TransientQueryError:
            raise
        except Exception as e:
            raise TransientQueryError(str(e)) from e

    def _request_reconcile(self, cluster_id: str) -> None:
        try:
            self._reconcile(cluster_id)
        except Exception as e:
            raise ReconciliationError(f"Reconcile of cluster {cluster_id} failed: {e}") from e

    def _reconcile_once(self, session: WaitSession) -> None:
        # Guard is set before the call so a failing reconcile is never retried.
        session.reconcile_attempted = True
        session.phase = WaitPhase.RECONCILE_ATTEMPTED
        try:
            self._request_reconcile(session.cluster_id)
        except ReconciliationError as e:
            session.reconcile_error = e
            logger.error(
                "cluster_reconcile_failed",
                cluster=session.cluster_id,
                error=str(e),
                error_type=type(e.__cause__).__name__,
            )
        else:
            logger.info("cluster_reconcile_requested", cluster=session.cluster_id)
        session.phase = WaitPhase.POLLING


def wait_until_ready(
    cluster_id: str,
    timeout_seconds: float,
    get_state: StateQuery,
    reconcile: ReconcileAction,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> WaitSession:
    """Convenience wrapper: build a waiter and run one session."""
    waiter = ClusterReadinessWaiter(get_state, reconcile, poll_interval=poll_interval)
    return waiter.wait_until_ready(cluster_id, timeout_seconds)
