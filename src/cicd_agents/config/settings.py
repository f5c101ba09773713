"""
CI/CD Agents Settings Configuration

This module provides centralized configuration management using Pydantic settings.
Configuration is loaded from .env by default; alternative YAML loading is supported.
"""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """LLM completion endpoint (OpenAI-compatible chat completions API)."""

    model_config = SettingsConfigDict(env_prefix="LLM_", extra="ignore")

    api_key: str = Field(default="", description="Bearer key for the completion API")
    api_base: str = Field(default="https://api.openai.com/v1", description="API base URL")
    default_model: str = Field(default="gpt-4", description="Model used when a request does not name one")
    request_timeout: float = Field(default=60.0, gt=0, le=600, description="HTTP timeout in seconds")
    max_retries: int = Field(default=3, ge=1, le=10, description="Attempts per completion before giving up")


class GitHubSettings(BaseSettings):
    """Source-control REST API access."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_", extra="ignore")

    token: Optional[str] = Field(default=None, description="Personal access token; API calls disabled when unset")
    api_base: str = Field(default="https://api.github.com", description="REST API base URL")
    request_timeout: float = Field(default=30.0, gt=0, le=300, description="HTTP timeout in seconds")


class DockerSettings(BaseSettings):
    """Container engine and registry settings."""

    model_config = SettingsConfigDict(env_prefix="DOCKER_", extra="ignore")

    username: Optional[str] = Field(default=None, description="Registry username")
    password: Optional[str] = Field(default=None, description="Registry password or token")
    registry: Optional[str] = Field(default=None, description="Registry host; Docker Hub when unset")
    build_context: str = Field(default=".", description="Directory used as the image build context")
    dockerfile_name: str = Field(default="Dockerfile.cicd", description="Generated Dockerfile name inside the context")
    enabled: bool = Field(default=True, description="Use the local Docker engine when reachable")


class AzureSettings(BaseSettings):
    """Azure service principal and AKS defaults."""

    model_config = SettingsConfigDict(env_prefix="AZURE_", extra="ignore")

    tenant_id: Optional[str] = Field(default=None, description="Azure AD tenant")
    client_id: Optional[str] = Field(default=None, description="Service principal client ID")
    client_secret: Optional[str] = Field(default=None, description="Service principal secret")
    subscription_id: Optional[str] = Field(default=None, description="Subscription holding the clusters")
    resource_group: str = Field(default="devops-poc-rg", description="Resource group for clusters")
    location: str = Field(default="eastus", description="Azure region")
    kubernetes_version: str = Field(default="1.27.7", description="Kubernetes version for new clusters")

    @property
    def is_configured(self) -> bool:
        """True when all service principal credentials are present."""
        return bool(self.tenant_id and self.client_id and self.client_secret and self.subscription_id)


class KubernetesSettings(BaseSettings):
    """Deployment target defaults."""

    model_config = SettingsConfigDict(env_prefix="K8S_", extra="ignore")

    kubeconfig: Optional[str] = Field(default=None, description="Kubeconfig file for a pre-existing cluster")
    default_namespace: str = Field(default="default", description="Namespace used when a request omits one")
    default_cluster: Optional[str] = Field(default=None, description="AKS cluster used when a request omits one")
    domain: Optional[str] = Field(default=None, description="Ingress domain; no Ingress is generated when unset")
    container_port: int = Field(default=8080, ge=1, le=65535, description="Application container port")
    replicas: int = Field(default=2, ge=1, le=50, description="Deployment replica count")


class ProvisioningSettings(BaseSettings):
    """Cluster provisioning and readiness polling."""

    model_config = SettingsConfigDict(env_prefix="PROVISION_", extra="ignore")

    poll_interval_seconds: float = Field(default=30.0, gt=0, le=600, description="Delay between readiness polls")
    wait_timeout_seconds: float = Field(default=300.0, ge=0, description="Readiness budget used by the HTTP route")
    default_node_count: int = Field(default=1, ge=1, le=100, description="Agent pool size")
    default_vm_size: str = Field(default="Standard_D2s_v3", description="Agent pool VM size")


class PipelineSettings(BaseSettings):
    """Sequential pipeline gates and output."""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_", extra="ignore")

    require_review_approval: bool = Field(default=False, description="Stop when the code review requests changes")
    halt_on_predicted_failure: bool = Field(default=False, description="Stop when the build is predicted to fail")
    provision_cluster: bool = Field(default=False, description="Provision and wait for a cluster before deploying")
    output_dir: str = Field(default="./output", description="Directory for persisted pipeline state")


class ServerSettings(BaseSettings):
    """HTTP service binding."""

    model_config = SettingsConfigDict(env_prefix="SERVER_", extra="ignore")

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")


class LoggingSettings(BaseSettings):
    """Logging configuration: level and format (json/console)."""

    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")

    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_format: str = Field(default="json", description="Format: 'json' or 'console'")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = ("json", "console")
        if v.lower() not in allowed:
            raise ValueError(f"log_format must be one of {allowed}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        u = v.upper()
        if u not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return u


_SECTIONS = {
    "llm": LLMSettings,
    "github": GitHubSettings,
    "docker": DockerSettings,
    "azure": AzureSettings,
    "kubernetes": KubernetesSettings,
    "provisioning": ProvisioningSettings,
    "pipeline": PipelineSettings,
    "server": ServerSettings,
    "logging": LoggingSettings,
}


class Settings(BaseSettings):
    """
    Root settings class. Loads from .env by default; supports creation from YAML.

    Nested models: llm, github, docker, azure, kubernetes, provisioning,
    pipeline, server, logging.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    llm: LLMSettings = Field(default_factory=LLMSettings, description="LLM endpoint config")
    github: GitHubSettings = Field(default_factory=GitHubSettings, description="GitHub API config")
    docker: DockerSettings = Field(default_factory=DockerSettings, description="Container engine config")
    azure: AzureSettings = Field(default_factory=AzureSettings, description="Azure/AKS config")
    kubernetes: KubernetesSettings = Field(default_factory=KubernetesSettings, description="Deploy target config")
    provisioning: ProvisioningSettings = Field(
        default_factory=ProvisioningSettings, description="Cluster provisioning config"
    )
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings, description="Pipeline gates config")
    server: ServerSettings = Field(default_factory=ServerSettings, description="HTTP server config")
    logging: LoggingSettings = Field(default_factory=LoggingSettings, description="Logging config")

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """
        Create Settings from a YAML file. Top-level keys should match
        nested model names (llm, github, azure, provisioning, etc.).
        Environment variables still override when present.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        kwargs: dict[str, Any] = {}
        for name, model_class in _SECTIONS.items():
            if name in data and isinstance(data[name], dict):
                kwargs[name] = model_class.model_validate(data[name])
        return cls(**kwargs)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance (loads from .env)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Force reload of settings from environment."""
    global _settings
    _settings = Settings()
    return _settings
