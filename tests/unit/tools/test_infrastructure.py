"""Unit tests for naming rules, Dockerfile rendering and Kubernetes manifest generation."""

import yaml

from cicd_agents.tools.infrastructure import (
    DEFAULT_RESOURCES,
    app_name_for,
    build_k8s_manifests,
    cluster_name_for,
    dns_safe,
    image_name,
    manifests_to_yaml,
    render_dockerfile,
)


# -----------------------------------------------------------------------------
# Naming
# -----------------------------------------------------------------------------


class TestNaming:
    def test_image_name_uses_short_sha(self) -> None:
        assert image_name("Acme", "Web_App", "0123456789abcdef") == "acme/web_app:0123456"

    def test_cluster_name_replaces_non_alphanumerics(self) -> None:
        assert cluster_name_for("staging", "Web_App.v2") == "staging-web-app-v2"

    def test_app_name_is_dns_safe(self) -> None:
        assert app_name_for("acme/Web_App") == "web-app"
        assert dns_safe("My.App") == "my-app"


# -----------------------------------------------------------------------------
# Dockerfile
# -----------------------------------------------------------------------------


class TestRenderDockerfile:
    def test_python_single_stage(self) -> None:
        dockerfile = render_dockerfile("Python")
        assert dockerfile.startswith("FROM python:3.11-slim")
        assert "pip install --no-cache-dir -r requirements.txt" in dockerfile
        assert 'CMD ["python", "app.py"]' in dockerfile
        assert "AS builder" not in dockerfile

    def test_optimized_is_multi_stage(self) -> None:
        dockerfile = render_dockerfile("javascript", strategy="optimized")
        assert "FROM node:18-alpine AS builder" in dockerfile
        assert "FROM alpine:latest" in dockerfile
        assert "COPY --from=builder /app /app" in dockerfile

    def test_unknown_language_falls_back(self) -> None:
        assert render_dockerfile("cobol").startswith("FROM node:18-alpine")

    def test_port_is_exposed(self) -> None:
        assert "EXPOSE 9000" in render_dockerfile("go", port=9000)


# -----------------------------------------------------------------------------
# Manifests
# -----------------------------------------------------------------------------


class TestBuildManifests:
    def test_deployment_and_service(self) -> None:
        bundle = build_k8s_manifests("acme/web", "acme/web:abc1234", environment="prod", namespace="apps", replicas=3)
        dep = bundle.deployment
        assert dep["metadata"]["name"] == "web"
        assert dep["metadata"]["namespace"] == "apps"
        assert dep["metadata"]["labels"] == {"app": "web", "environment": "prod"}
        assert dep["metadata"]["annotations"]["app.kubernetes.io/version"] == "abc1234"
        assert dep["spec"]["replicas"] == 3
        container = dep["spec"]["template"]["spec"]["containers"][0]
        assert container["image"] == "acme/web:abc1234"
        assert container["resources"] == DEFAULT_RESOURCES
        assert bundle.service["metadata"]["name"] == "web-service"
        assert bundle.service["spec"]["ports"] == [{"port": 80, "targetPort": 8080, "protocol": "TCP"}]
        assert bundle.ingress is None

    def test_ingress_with_domain(self) -> None:
        bundle = build_k8s_manifests("acme/web", "acme/web:abc", domain="example.com")
        rule = bundle.ingress["spec"]["rules"][0]
        assert rule["host"] == "web.example.com"
        assert bundle.ingress["spec"]["tls"][0]["secretName"] == "web-tls"

    def test_predicted_resources_override_valid_requests_only(self) -> None:
        bundle = build_k8s_manifests("acme/web", "acme/web:abc", resources={"cpu": "250m", "memory": "lots"})
        resources = bundle.deployment["spec"]["template"]["spec"]["containers"][0]["resources"]
        assert resources["requests"] == {"cpu": "250m", "memory": "128Mi"}
        assert resources["limits"] == DEFAULT_RESOURCES["limits"]

    def test_yaml_rendering(self) -> None:
        bundle = build_k8s_manifests("acme/web", "acme/web:abc", domain="example.com")
        docs = list(yaml.safe_load_all(manifests_to_yaml(bundle)))
        assert [d["kind"] for d in docs] == ["Deployment", "Service", "Ingress"]
