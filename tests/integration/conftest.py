"""Pytest configuration and fixtures for integration tests.

Integration tests wire the real agents together with the simulated backends
(no Azure credentials, Docker disabled, no LLM key, no GitHub token), so a
whole run exercises every stage without leaving the process.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from cicd_agents.config.settings import (
    AzureSettings,
    DockerSettings,
    GitHubSettings,
    KubernetesSettings,
    LLMSettings,
    PipelineSettings,
    Settings,
)


@pytest.fixture
def simulated_settings(tmp_path: Path) -> Settings:
    return Settings(
        llm=LLMSettings(api_key="", max_retries=1),
        github=GitHubSettings(token=None),
        docker=DockerSettings(enabled=False, username=None, password=None, registry=None),
        azure=AzureSettings(tenant_id=None, client_id=None, client_secret=None, subscription_id=None),
        kubernetes=KubernetesSettings(kubeconfig=None, default_cluster=None, domain=None),
        pipeline=PipelineSettings(provision_cluster=True, output_dir=str(tmp_path / "runs")),
    )
