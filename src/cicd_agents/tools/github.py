"""
GitHub REST client.

Thin httpx wrapper over the endpoints the agents need: pull request diffs and
review comments (code review), repository metadata, languages, commits, build
config files and workflow runs (build prediction).
"""

from __future__ import annotations

import base64
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
import structlog

from cicd_agents.config.settings import GitHubSettings, get_settings

logger = structlog.get_logger(__name__)

DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"
JSON_MEDIA_TYPE = "application/vnd.github+json"

# Files and directories probed to describe how a repository builds
BUILD_FILE_PATTERNS = [
    "package.json",
    "Dockerfile",
    "docker-compose.yml",
    "Makefile",
    "pom.xml",
    "build.gradle",
    "requirements.txt",
    "pyproject.toml",
    "Pipfile",
    "go.mod",
    "Cargo.toml",
    ".github/workflows",
    "Jenkinsfile",
    "azure-pipelines.yml",
]


class GitHubError(Exception):
    """GitHub API call failed or GitHub access is not configured."""


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class GitHubClient:
    """
    Minimal GitHub REST API client.

    ``available`` is False when no token is configured; every call then raises
    GitHubError so callers can degrade explicitly.
    """

    def __init__(
        self,
        settings: Optional[GitHubSettings] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.settings = settings or get_settings().github
        self._client = client

    @property
    def available(self) -> bool:
        return bool(self.settings.token)

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.settings.api_base.rstrip("/"),
                timeout=self.settings.request_timeout,
            )
        return self._client

    def _headers(self, accept: str = JSON_MEDIA_TYPE) -> Dict[str, str]:
        if not self.available:
            raise GitHubError("GitHub token not configured (set GITHUB_TOKEN)")
        return {"Authorization": f"token {self.settings.token}", "Accept": accept}

    def _request(self, method: str, url: str, accept: str = JSON_MEDIA_TYPE, **kwargs: Any) -> httpx.Response:
        headers = self._headers(accept)
        try:
            r = self._http().request(method, url, headers=headers, **kwargs)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise GitHubError(f"GitHub {method} {url} failed: {e}") from e
        return r

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    # -------------------------------------------------------------------------
    # Pull requests
    # -------------------------------------------------------------------------

    def get_pull_request(self, owner: str, repo: str, number: int) -> Dict[str, Any]:
        return self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}").json()

    def get_pull_request_diff(
        self,
        owner: str,
        repo: str,
        number: Optional[int] = None,
        diff_url: Optional[str] = None,
    ) -> str:
        """Fetch the unified diff from diff_url, or from the pulls API when no URL is given."""
        if diff_url:
            return self._request("GET", diff_url, accept=DIFF_MEDIA_TYPE).text
        if number is None:
            raise GitHubError("Either diff_url or a pull request number is required")
        return self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}", accept=DIFF_MEDIA_TYPE).text

    def create_review_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        body: str,
        commit_id: str,
        path: str,
        line: int,
    ) -> Dict[str, Any]:
        payload = {"body": body, "commit_id": commit_id, "path": path, "line": line}
        return self._request("POST", f"/repos/{owner}/{repo}/pulls/{number}/comments", json=payload).json()

    # -------------------------------------------------------------------------
    # Repository analysis
    # -------------------------------------------------------------------------

    def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        return self._request("GET", f"/repos/{owner}/{repo}").json()

    def list_languages(self, owner: str, repo: str) -> Dict[str, int]:
        return self._request("GET", f"/repos/{owner}/{repo}/languages").json()

    def list_commits(self, owner: str, repo: str, branch: str, per_page: int = 10) -> List[Dict[str, Any]]:
        data = self._request(
            "GET", f"/repos/{owner}/{repo}/commits", params={"sha": branch, "per_page": per_page}
        ).json()
        return [
            {
                "sha": c.get("sha"),
                "message": c.get("commit", {}).get("message"),
                "author": c.get("commit", {}).get("author", {}).get("name"),
                "date": c.get("commit", {}).get("author", {}).get("date"),
            }
            for c in data
        ]

    def get_content(self, owner: str, repo: str, path: str, ref: str) -> Any:
        return self._request("GET", f"/repos/{owner}/{repo}/contents/{path}", params={"ref": ref}).json()

    def get_build_config_files(self, owner: str, repo: str, branch: str) -> List[Dict[str, Any]]:
        """Probe BUILD_FILE_PATTERNS; missing paths are skipped."""
        build_files: List[Dict[str, Any]] = []
        for pattern in BUILD_FILE_PATTERNS:
            try:
                content = self.get_content(owner, repo, pattern, branch)
            except GitHubError:
                continue
            if isinstance(content, list):
                build_files.append(
                    {"path": pattern, "type": "directory", "files": [f.get("name") for f in content]}
                )
            else:
                raw = content.get("content") or ""
                build_files.append(
                    {
                        "path": pattern,
                        "type": "file",
                        "content": base64.b64decode(raw).decode("utf-8", errors="replace"),
                    }
                )
        logger.debug("github_build_files_found", repository=f"{owner}/{repo}", paths=[f["path"] for f in build_files])
        return build_files

    def list_workflow_runs(self, owner: str, repo: str, per_page: int = 20) -> List[Dict[str, Any]]:
        """Recent Actions runs with duration in milliseconds (updated_at - created_at)."""
        data = self._request(
            "GET", f"/repos/{owner}/{repo}/actions/runs", params={"per_page": per_page}
        ).json()
        runs = []
        for run in data.get("workflow_runs", []):
            created = _parse_timestamp(run.get("created_at"))
            updated = _parse_timestamp(run.get("updated_at"))
            duration = (updated - created).total_seconds() * 1000 if created and updated else None
            runs.append(
                {
                    "id": run.get("id"),
                    "status": run.get("status"),
                    "conclusion": run.get("conclusion"),
                    "created_at": run.get("created_at"),
                    "updated_at": run.get("updated_at"),
                    "duration": duration,
                    "head_sha": run.get("head_sha"),
                    "event": run.get("event"),
                }
            )
        return runs
