"""
CLI entry point for cicd-agents.

Subcommands: serve (HTTP service), wait-cluster (block until an AKS cluster
is Succeeded), provision (start cluster creation), run-pipeline (one
end-to-end run with a stage table).
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Optional, Sequence

import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from cicd_agents.agents import AgentError
from cicd_agents.config.settings import Settings, get_settings
from cicd_agents.flows.pipeline import PipelineRunner
from cicd_agents.flows.state import PipelineStage, PipelineState
from cicd_agents.provisioning.aks import AksProvisioner
from cicd_agents.provisioning.readiness import ClusterReadinessTimeout
from cicd_agents.utils.logging import configure_logging

logger = structlog.get_logger(__name__)

_STAGE_ROWS = [
    PipelineStage.REVIEW,
    PipelineStage.PREDICTION,
    PipelineStage.BUILD,
    PipelineStage.PROVISIONING,
    PipelineStage.DEPLOY,
    PipelineStage.MONITOR,
]


def _cmd_serve(settings: Settings, host: Optional[str], port: Optional[int]) -> int:
    import uvicorn

    from cicd_agents.api.app import create_app

    uvicorn.run(create_app(settings), host=host or settings.server.host, port=port or settings.server.port)
    return 0


def _cmd_wait_cluster(settings: Settings, name: str, timeout: Optional[float], interval: Optional[float]) -> int:
    """Wait for a cluster; 0 when ready, 1 on timeout."""
    provisioner = AksProvisioner(settings)
    try:
        session = provisioner.wait_for_cluster_ready(name, timeout, poll_interval=interval)
    except ClusterReadinessTimeout as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(
        json.dumps(
            {
                "cluster_name": name,
                "state": session.last_state,
                "polls": session.polls,
                "reconcile_attempted": session.reconcile_attempted,
                "elapsed_seconds": round(session.elapsed_seconds, 3),
            },
            indent=2,
        )
    )
    return 0


def _cmd_provision(settings: Settings, name: str, node_count: Optional[int], vm_size: Optional[str]) -> int:
    try:
        operation = AksProvisioner(settings).create_cluster(name, node_count=node_count, vm_size=vm_size)
    except AgentError as e:
        logger.error("provision_failed", cluster=name, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(operation.model_dump_json(indent=2))
    return 0


def display_pipeline_state(state: PipelineState, console: Optional[Console] = None) -> None:
    """Print one row per stage (ok / skipped / failed / not run) and a summary panel."""
    console = console or Console()
    failed_at = {err.stage.value for err in state.errors}
    table = Table(title=f"Pipeline {state.run_id[:8]} ({state.event.repository})", show_header=True)
    table.add_column("Stage", style="cyan")
    table.add_column("Status")
    table.add_column("Detail", style="dim")
    for stage in _STAGE_ROWS:
        if stage.value in state.results:
            status, detail = "[green]ok[/green]", _stage_detail(stage, state.results[stage.value])
        elif stage.value in state.skipped:
            status, detail = "[yellow]skipped[/yellow]", ""
        elif stage.value in failed_at:
            status = "[red]failed[/red]"
            detail = next(e.message for e in state.errors if e.stage.value == stage.value)[:80]
        else:
            status, detail = "not run", ""
        table.add_row(stage.value, status, detail)
    console.print(table)
    style = "green" if state.succeeded else "red" if state.current_stage is PipelineStage.FAILED else "yellow"
    console.print(Panel(state.to_summary(), title="Run summary", border_style=style))


def _stage_detail(stage: PipelineStage, result: dict) -> str:
    if stage is PipelineStage.REVIEW:
        return f"score {result.get('score')} ({result.get('status')})"
    if stage is PipelineStage.PREDICTION:
        return f"{result.get('prediction')} ({result.get('confidence')}%)"
    if stage is PipelineStage.BUILD:
        return str(result.get("registry_image") or result.get("image"))
    if stage is PipelineStage.PROVISIONING:
        return str(result.get("cluster_name"))
    if stage is PipelineStage.DEPLOY:
        return str(result.get("deployment_url") or result.get("deployment_id"))
    return str(result.get("status"))


def _cmd_run_pipeline(settings: Settings, args: argparse.Namespace) -> int:
    event = {
        "repository": args.repository,
        "commit_sha": args.commit_sha,
        "branch": args.branch,
        "pull_request": args.pull_request,
        "changed_files": args.changed_files or [],
        "environment": args.environment,
        "cluster_name": args.cluster,
        "health_url": args.health_url,
    }
    state = PipelineRunner(settings).run(event)
    display_pipeline_state(state)
    if args.json:
        print(state.model_dump_json(indent=2))
    return 0 if state.current_stage is not PipelineStage.FAILED else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cicd-agents",
        description="CI/CD agents: serve the HTTP API, provision clusters, or run the pipeline.",
    )
    parser.add_argument("--config", default=None, help="YAML settings file (default: environment / .env).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_p = subparsers.add_parser("serve", help="Run the HTTP service.")
    serve_p.add_argument("--host", default=None, help="Bind address (default: SERVER_HOST).")
    serve_p.add_argument("--port", type=int, default=None, help="Bind port (default: SERVER_PORT).")

    wait_p = subparsers.add_parser("wait-cluster", help="Wait until an AKS cluster reports Succeeded.")
    wait_p.add_argument("name", help="Cluster name.")
    wait_p.add_argument("--timeout", type=float, default=None, help="Budget in seconds (default: 300).")
    wait_p.add_argument("--interval", type=float, default=None, help="Poll interval in seconds (default: 30).")

    prov_p = subparsers.add_parser("provision", help="Start creating an AKS cluster.")
    prov_p.add_argument("name", help="Cluster name.")
    prov_p.add_argument("--node-count", type=int, default=None, help="Agent pool size.")
    prov_p.add_argument("--vm-size", default=None, help="Agent pool VM size.")

    run_p = subparsers.add_parser("run-pipeline", help="Run review, prediction, build, deploy and monitor.")
    run_p.add_argument("--repository", required=True, help="owner/repo")
    run_p.add_argument("--commit-sha", default=None, help="Commit to build (default: PR head SHA).")
    run_p.add_argument("--branch", default="main")
    run_p.add_argument("--pull-request", type=int, default=None, help="Pull request number to review.")
    run_p.add_argument("--changed-files", nargs="*", default=None)
    run_p.add_argument("--environment", default="staging")
    run_p.add_argument("--cluster", default=None, help="Target cluster (default: K8S_DEFAULT_CLUSTER).")
    run_p.add_argument("--health-url", default=None, help="URL probed by the monitor stage.")
    run_p.add_argument("--json", action="store_true", help="Also print the final state as JSON.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse CLI args and dispatch to subcommands. Returns 0 on success, 1 on failure."""
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = Settings.from_yaml(args.config) if args.config else get_settings()
    configure_logging(settings.logging)

    if args.command == "serve":
        return _cmd_serve(settings, args.host, args.port)
    if args.command == "wait-cluster":
        return _cmd_wait_cluster(settings, args.name, args.timeout, args.interval)
    if args.command == "provision":
        return _cmd_provision(settings, args.name, args.node_count, args.vm_size)
    if args.command == "run-pipeline":
        if args.commit_sha is None and args.pull_request is None:
            parser.error("run-pipeline needs --commit-sha or --pull-request")
        return _cmd_run_pipeline(settings, args)
    return 1


if __name__ == "__main__":
    sys.exit(main())
