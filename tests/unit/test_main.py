"""Unit tests for the CLI (main.py): argument parsing, subcommand exit codes, stage table."""

from __future__ import annotations

import json
from io import StringIO
from unittest.mock import patch

import pytest
from rich.console import Console

from cicd_agents.errors import AgentError
from cicd_agents.flows.state import PipelineEvent, PipelineStage, PipelineState
from cicd_agents.main import build_parser, display_pipeline_state, main
from cicd_agents.provisioning.readiness import ClusterReadinessTimeout, WaitPhase, WaitSession


@pytest.fixture(autouse=True)
def _settings(settings):
    with patch("cicd_agents.main.get_settings", return_value=settings), patch("cicd_agents.main.configure_logging"):
        yield settings


class TestParser:
    def test_wait_cluster_args(self) -> None:
        args = build_parser().parse_args(["wait-cluster", "c1", "--timeout", "90", "--interval", "10"])
        assert (args.name, args.timeout, args.interval) == ("c1", 90.0, 10.0)

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestWaitCluster:
    def test_ready_prints_session(self, capsys) -> None:
        session = WaitSession(
            cluster_id="c1",
            timeout_seconds=60,
            started_at=0.0,
            phase=WaitPhase.READY,
            polls=2,
            last_state="Succeeded",
            elapsed_seconds=30,
        )
        with patch("cicd_agents.main.AksProvisioner") as provisioner_cls:
            provisioner_cls.return_value.wait_for_cluster_ready.return_value = session
            assert main(["wait-cluster", "c1", "--timeout", "60"]) == 0
        provisioner_cls.return_value.wait_for_cluster_ready.assert_called_once_with("c1", 60.0, poll_interval=None)
        out = json.loads(capsys.readouterr().out)
        assert out["state"] == "Succeeded"
        assert out["polls"] == 2

    def test_timeout_exits_1(self, capsys) -> None:
        with patch("cicd_agents.main.AksProvisioner") as provisioner_cls:
            provisioner_cls.return_value.wait_for_cluster_ready.side_effect = ClusterReadinessTimeout("c1", 60, 60)
            assert main(["wait-cluster", "c1"]) == 1
        assert "Timeout waiting for cluster c1" in capsys.readouterr().err


class TestProvision:
    def test_failure_exits_1(self, capsys) -> None:
        with patch("cicd_agents.main.AksProvisioner") as provisioner_cls:
            provisioner_cls.return_value.create_cluster.side_effect = AgentError("Failed to create AKS cluster c1")
            assert main(["provision", "c1", "--node-count", "2"]) == 1
        provisioner_cls.return_value.create_cluster.assert_called_once_with("c1", node_count=2, vm_size=None)

    def test_simulated_success(self, capsys) -> None:
        assert main(["provision", "c1"]) == 0
        assert '"mock": true' in capsys.readouterr().out


class TestRunPipeline:
    def test_needs_commit_or_pr(self) -> None:
        with pytest.raises(SystemExit):
            main(["run-pipeline", "--repository", "acme/web"])

    def test_exit_code_follows_final_stage(self) -> None:
        state = PipelineState(event=PipelineEvent(repository="acme/web", commit_sha="abc"))
        state.advance(PipelineStage.FAILED, "boom")
        with patch("cicd_agents.main.PipelineRunner") as runner_cls, patch("cicd_agents.main.display_pipeline_state"):
            runner_cls.return_value.run.return_value = state
            assert main(["run-pipeline", "--repository", "acme/web", "--commit-sha", "abc"]) == 1
        event = runner_cls.return_value.run.call_args.args[0]
        assert event["commit_sha"] == "abc"
        assert event["changed_files"] == []


class TestDisplayPipelineState:
    def test_rows_per_stage(self) -> None:
        state = PipelineState(event=PipelineEvent(repository="acme/web", commit_sha="abc"))
        state.skip(PipelineStage.REVIEW)
        state.advance(PipelineStage.PREDICTION)
        state.record_result(PipelineStage.PREDICTION, {"prediction": "success", "confidence": 90})
        state.advance(PipelineStage.BUILD)
        state.add_error(PipelineStage.BUILD, "fatal", "registry unauthorized")
        state.advance(PipelineStage.FAILED)
        buffer = StringIO()
        display_pipeline_state(state, Console(file=buffer, width=160))
        out = buffer.getvalue()
        assert "success (90%)" in out
        assert "skipped" in out
        assert "registry unauthorized" in out
        assert "not run" in out
