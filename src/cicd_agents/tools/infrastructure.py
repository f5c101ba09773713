"""
Infrastructure generators for the docker handler and deploy agents.

Dockerfile rendering per language and build strategy, Kubernetes manifests
(Deployment, Service, optional Ingress) as API-ready dicts, and the naming
rules shared by image, app and cluster names.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import yaml

from cicd_agents.models.outputs import ManifestBundle

# language -> (base image, build commands, run command)
_LANGUAGE_PROFILES: Dict[str, Tuple[str, str, str]] = {
    "javascript": ("node:18-alpine", "COPY package*.json ./\nRUN npm ci\nCOPY . .", "npm start"),
    "typescript": ("node:18-alpine", "COPY package*.json ./\nRUN npm ci\nCOPY . .", "npm start"),
    "python": (
        "python:3.11-slim",
        "COPY requirements.txt .\nRUN pip install --no-cache-dir -r requirements.txt\nCOPY . .",
        "python app.py",
    ),
    "java": (
        "eclipse-temurin:17-jdk-alpine",
        "COPY .mvn .mvn\nCOPY mvnw pom.xml ./\nRUN ./mvnw dependency:go-offline\nCOPY src ./src\n"
        "RUN ./mvnw package -DskipTests",
        "java -jar target/*.jar",
    ),
    "go": ("golang:1.21-alpine", "COPY go.* ./\nRUN go mod download\nCOPY . .\nRUN go build -o /app", "/app"),
}
_DEFAULT_PROFILE = ("node:18-alpine", "COPY . .", "npm start")

DEFAULT_RESOURCES = {
    "requests": {"cpu": "100m", "memory": "128Mi"},
    "limits": {"cpu": "500m", "memory": "512Mi"},
}


# -----------------------------------------------------------------------------
# Naming
# -----------------------------------------------------------------------------


def dns_safe(name: str) -> str:
    """Lowercase and replace anything outside [a-z0-9-] with '-'."""
    return re.sub(r"[^a-z0-9-]", "-", name.lower())


def image_name(owner: str, repo: str, commit_sha: str) -> str:
    """Docker image reference '<owner>/<repo>:<sha7>', lowercased."""
    return f"{owner.lower()}/{repo.lower()}:{commit_sha[:7]}"


def cluster_name_for(environment: str, repo: str) -> str:
    """Cluster name '<environment>-<repo>' with non-alphanumerics replaced by '-'."""
    return f"{environment}-{re.sub(r'[^a-z0-9]', '-', repo.lower())}"


def app_name_for(repository: str) -> str:
    repo = repository.split("/")[1] if "/" in repository else repository
    return dns_safe(repo)


# -----------------------------------------------------------------------------
# Dockerfile
# -----------------------------------------------------------------------------


def render_dockerfile(language: Optional[str] = None, strategy: str = "standard", port: int = 8080) -> str:
    """
    Render a Dockerfile for the given language.

    strategy 'optimized' produces a multi-stage build; anything else a single stage.
    Unknown languages fall back to a plain node image.
    """
    base_image, build_commands, run_command = _LANGUAGE_PROFILES.get(
        (language or "javascript").lower(), _DEFAULT_PROFILE
    )
    cmd = '["' + '", "'.join(run_command.split()) + '"]'
    if strategy == "optimized":
        runtime_image = "alpine:latest" if "alpine" in base_image else "debian:bookworm-slim"
        return f"""# Build stage
FROM {base_image} AS builder
WORKDIR /app
{build_commands}

# Production stage
FROM {runtime_image}
WORKDIR /app
COPY --from=builder /app /app
EXPOSE {port}
CMD {cmd}
"""
    return f"""FROM {base_image}
WORKDIR /app
{build_commands}
EXPOSE {port}
CMD {cmd}
"""


# -----------------------------------------------------------------------------
# Kubernetes manifests
# -----------------------------------------------------------------------------


def _container_resources(resources: Optional[Dict[str, Any]]) -> Dict[str, Dict[str, str]]:
    """Merge predicted cpu/memory into requests; limits keep the defaults unless given."""
    out = {k: dict(v) for k, v in DEFAULT_RESOURCES.items()}
    if not resources:
        return out
    for key in ("cpu", "memory"):
        value = resources.get(key)
        if isinstance(value, str) and re.fullmatch(r"\d+(\.\d+)?(m|Mi|Gi|Ki)?", value):
            out["requests"][key] = value
    return out


def build_k8s_manifests(
    repository: str,
    image: str,
    environment: str = "staging",
    namespace: str = "default",
    port: int = 8080,
    replicas: int = 2,
    resources: Optional[Dict[str, Any]] = None,
    domain: Optional[str] = None,
) -> ManifestBundle:
    """
    Build Deployment + Service (+ Ingress when a domain is given) for one app.

    Names derive from the repository; the Service listens on 80 and targets the
    container port. Predicted resources only override requests when they are
    valid Kubernetes quantities.
    """
    app_name = app_name_for(repository)
    version = image.split(":")[1] if ":" in image else "latest"

    deployment = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": app_name,
            "namespace": namespace,
            "labels": {"app": app_name, "environment": environment},
            "annotations": {
                "app.kubernetes.io/version": version,
                "deployment-timestamp": datetime.now(timezone.utc).isoformat(),
                "deployment-source": "cicd-pipeline",
            },
        },
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": {"app": app_name}},
            "template": {
                "metadata": {"labels": {"app": app_name}},
                "spec": {
                    "containers": [
                        {
                            "name": app_name,
                            "image": image,
                            "ports": [{"containerPort": port}],
                            "resources": _container_resources(resources),
                            "livenessProbe": {
                                "httpGet": {"path": "/health", "port": port},
                                "initialDelaySeconds": 30,
                                "periodSeconds": 10,
                            },
                            "readinessProbe": {
                                "httpGet": {"path": "/health", "port": port},
                                "initialDelaySeconds": 5,
                                "periodSeconds": 5,
                            },
                        }
                    ]
                },
            },
        },
    }

    service = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": f"{app_name}-service", "namespace": namespace, "labels": {"app": app_name}},
        "spec": {
            "selector": {"app": app_name},
            "ports": [{"port": 80, "targetPort": port, "protocol": "TCP"}],
            "type": "ClusterIP",
        },
    }

    ingress = None
    if domain:
        host = f"{app_name}.{domain}"
        ingress = {
            "apiVersion": "networking.k8s.io/v1",
            "kind": "Ingress",
            "metadata": {
                "name": f"{app_name}-ingress",
                "namespace": namespace,
                "annotations": {
                    "kubernetes.io/ingress.class": "nginx",
                    "cert-manager.io/cluster-issuer": "letsencrypt-prod",
                },
            },
            "spec": {
                "tls": [{"hosts": [host], "secretName": f"{app_name}-tls"}],
                "rules": [
                    {
                        "host": host,
                        "http": {
                            "paths": [
                                {
                                    "path": "/",
                                    "pathType": "Prefix",
                                    "backend": {
                                        "service": {"name": f"{app_name}-service", "port": {"number": 80}}
                                    },
                                }
                            ]
                        },
                    }
                ],
            },
        }

    return ManifestBundle(image=image, deployment=deployment, service=service, ingress=ingress)


def manifests_to_yaml(bundle: ManifestBundle) -> str:
    """Render the bundle as a multi-document YAML string (kubectl apply -f friendly)."""
    docs = [bundle.deployment, bundle.service] + ([bundle.ingress] if bundle.ingress else [])
    return yaml.safe_dump_all(docs, sort_keys=False)
