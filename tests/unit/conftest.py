"""Pytest configuration and fixtures for unit tests."""

from pathlib import Path
from typing import List

import pytest

from cicd_agents.config.settings import (
    AzureSettings,
    DockerSettings,
    GitHubSettings,
    KubernetesSettings,
    LLMSettings,
    PipelineSettings,
    ProvisioningSettings,
    Settings,
)


class FakeClock:
    """Monotonic clock plus sleep that advance virtual time only."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment: no Azure, no Docker, fast LLM retries."""
    return Settings(
        llm=LLMSettings(api_key="test-key", api_base="https://llm.test/v1", default_model="gpt-4", max_retries=1),
        github=GitHubSettings(token="gh-token", api_base="https://api.github.test"),
        docker=DockerSettings(username=None, password=None, registry=None, enabled=False),
        azure=AzureSettings(tenant_id=None, client_id=None, client_secret=None, subscription_id=None),
        kubernetes=KubernetesSettings(kubeconfig=None, default_cluster=None, domain=None),
        provisioning=ProvisioningSettings(poll_interval_seconds=30, wait_timeout_seconds=300),
        pipeline=PipelineSettings(output_dir=str(tmp_path / "output")),
    )


@pytest.fixture
def azure_settings() -> AzureSettings:
    return AzureSettings(
        tenant_id="tenant",
        client_id="client",
        client_secret="secret",
        subscription_id="sub",
        resource_group="rg-test",
        location="westeurope",
        kubernetes_version="1.29.2",
    )
