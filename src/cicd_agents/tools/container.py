"""
Container image build and push backends.

DockerImageBuilder drives the local engine through the Docker SDK;
SimulatedImageBuilder returns canned results when no engine is reachable.
get_image_builder() picks one once, from settings and engine availability.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Protocol

import docker
import structlog
from docker.errors import APIError, BuildError, DockerException

from cicd_agents.config.settings import DockerSettings, get_settings

logger = structlog.get_logger(__name__)


class ImageBuildError(Exception):
    """Image build failed."""


class ImageBuilder(Protocol):
    simulated: bool

    def login(self) -> bool: ...

    def build(self, dockerfile: str, tag: str) -> str: ...

    def push(self, tag: str) -> str: ...

    def reference_for(self, tag: str) -> str: ...


def _registry_reference(tag: str, registry: Optional[str]) -> str:
    return f"{registry.rstrip('/')}/{tag}" if registry else tag


class DockerImageBuilder:
    """Build and push images with the Docker SDK (docker.from_env)."""

    simulated = False

    def __init__(self, settings: DockerSettings, client: Optional[docker.DockerClient] = None) -> None:
        self.settings = settings
        self.client = client or docker.from_env()

    def reference_for(self, tag: str) -> str:
        return _registry_reference(tag, self.settings.registry)

    def login(self) -> bool:
        """Log in to the registry when credentials are configured. Failure is logged, not raised."""
        if not (self.settings.username and self.settings.password):
            logger.warning("docker_credentials_missing", reason="DOCKER_USERNAME/DOCKER_PASSWORD not set")
            return False
        try:
            self.client.login(
                username=self.settings.username,
                password=self.settings.password,
                registry=self.settings.registry,
            )
        except APIError as e:
            logger.error("docker_login_failed", username=self.settings.username, error=str(e))
            return False
        logger.info("docker_login_succeeded", username=self.settings.username)
        return True

    def build(self, dockerfile: str, tag: str) -> str:
        """Write the Dockerfile into the build context, build, and return the build log."""
        context = Path(self.settings.build_context).resolve()
        dockerfile_path = context / self.settings.dockerfile_name
        dockerfile_path.write_text(dockerfile, encoding="utf-8")
        logger.info("docker_build_started", tag=tag, context=str(context), dockerfile=str(dockerfile_path))
        try:
            _, logs = self.client.images.build(
                path=str(context),
                dockerfile=self.settings.dockerfile_name,
                tag=tag,
                rm=True,
                forcerm=True,
            )
        except (BuildError, APIError) as e:
            raise ImageBuildError(f"Docker build failed for {tag}: {e}") from e
        lines = [entry["stream"].strip() for entry in logs if isinstance(entry, dict) and entry.get("stream")]
        logger.info("docker_build_finished", tag=tag, log_lines=len(lines))
        return "\n".join(line for line in lines if line)

    def push(self, tag: str) -> str:
        """Tag for the configured registry (if any) and push. Raises ImageBuildError on push errors."""
        reference = self.reference_for(tag)
        repository, _, version = reference.rpartition(":")
        if reference != tag:
            self.client.images.get(tag).tag(repository, tag=version)
        logger.info("docker_push_started", image=reference)
        output = []
        try:
            for chunk in self.client.images.push(repository, tag=version, stream=True, decode=True):
                if "error" in chunk:
                    raise ImageBuildError(chunk["error"])
                if chunk.get("status"):
                    output.append(chunk["status"])
        except APIError as e:
            raise ImageBuildError(f"Docker push failed for {reference}: {e}") from e
        logger.info("docker_push_finished", image=reference)
        return "\n".join(output)


class SimulatedImageBuilder:
    """Canned build/push results for environments without a Docker engine."""

    simulated = True

    def __init__(self, settings: DockerSettings) -> None:
        self.settings = settings
        self.builds: Dict[str, str] = {}

    def reference_for(self, tag: str) -> str:
        return _registry_reference(tag, self.settings.registry or "mock-registry.example.com")

    def login(self) -> bool:
        return False

    def build(self, dockerfile: str, tag: str) -> str:
        logger.info("docker_build_simulated", tag=tag, dockerfile_preview=dockerfile[:100])
        self.builds[tag] = dockerfile
        return "[SIMULATED] Docker build completed successfully"

    def push(self, tag: str) -> str:
        reference = self.reference_for(tag)
        logger.info("docker_push_simulated", image=reference)
        return f"[SIMULATED] Image would be pushed to {reference}"


def get_image_builder(settings: Optional[DockerSettings] = None) -> ImageBuilder:
    """Return a DockerImageBuilder when the engine is reachable, else a SimulatedImageBuilder."""
    settings = settings or get_settings().docker
    if settings.enabled:
        try:
            builder = DockerImageBuilder(settings)
            builder.client.ping()
            logger.info("docker_client_initialized")
            return builder
        except DockerException as e:
            logger.warning("docker_unavailable", error=str(e), fallback="simulated")
    return SimulatedImageBuilder(settings)
