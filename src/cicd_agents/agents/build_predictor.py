"""
Build predictor agent.

Gathers repository context from GitHub (metadata, build config files, recent
commits, languages, workflow run history), asks the LLM for a build outcome
prediction and falls back to a history-based estimate when every LLM attempt
fails.
"""

import json
from typing import Any, Dict, List, Optional, Sequence, Union

from cicd_agents.agents.base import BaseAgent, InvalidRequestError, parse_repository
from cicd_agents.config.prompts import get_prompt
from cicd_agents.config.settings import Settings
from cicd_agents.models.outputs import BuildPrediction, ResourceRequirements
from cicd_agents.tools.github import GitHubClient, GitHubError
from cicd_agents.tools.llm import LLMError, complete_chat
from cicd_agents.utils.json_extract import parse_json_object

FALLBACK_NOTE = "Note: This prediction is based on historical data, not LLM analysis"
HISTORY_WINDOW = 5
DEFAULT_DURATION_MINUTES = 10


def normalize_changed_files(changed_files: Union[str, Sequence[str], None]) -> List[str]:
    """Accept a list or a comma-separated string."""
    if not changed_files:
        return []
    if isinstance(changed_files, str):
        return [f.strip() for f in changed_files.split(",") if f.strip()]
    return [str(f) for f in changed_files]


def fallback_prediction(build_history: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Estimate the outcome from the most recent workflow runs.

    Success rate over the last five runs: > 0.7 success, > 0.4 warning, else
    failure. Duration is the mean run time in minutes.
    """
    if not build_history:
        return {
            "outcome": "warning",
            "confidence": 50,
            "duration": DEFAULT_DURATION_MINUTES,
            "issues": ["No build history available for analysis"],
            "recommendations": ["Ensure proper CI/CD configuration"],
            "strategy": "standard",
        }

    recent = build_history[:HISTORY_WINDOW]
    successes = [r for r in recent if r.get("conclusion") == "success"]
    rate = len(successes) / len(recent)
    durations = [r["duration"] for r in recent if r.get("duration")]
    avg_minutes = (sum(durations) / len(durations)) / 60000 if durations else DEFAULT_DURATION_MINUTES

    if rate > 0.7:
        outcome = "success"
    elif rate > 0.4:
        outcome = "warning"
    else:
        outcome = "failure"

    issues = ["Recent builds have been failing"] if rate < 0.5 else []
    return {
        "outcome": outcome,
        "confidence": round(max(20, rate * 100)),
        "duration": round(avg_minutes, 2),
        "issues": issues,
        "recommendations": ["Monitor build closely"] if rate < 0.8 else [],
        "strategy": "standard",
    }


def _fill_defaults(raw: Dict[str, Any]) -> Dict[str, Any]:
    resources = raw.get("resources") if isinstance(raw.get("resources"), dict) else {}
    return {
        "outcome": raw.get("outcome") or "warning",
        "confidence": raw.get("confidence", 70),
        "duration": raw.get("duration", DEFAULT_DURATION_MINUTES),
        "issues": raw.get("issues") or [],
        "recommendations": raw.get("recommendations") or [],
        "strategy": raw.get("strategy") or "standard",
        "resources": resources,
    }


def _clamp_int(value: Any, default: int) -> int:
    try:
        return max(0, min(100, int(round(float(value)))))
    except (TypeError, ValueError):
        return default


def _non_negative(value: Any, default: float) -> float:
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return default


class BuildPredictorAgent(BaseAgent):
    """Predict build outcome, duration and resource needs for a commit."""

    name = "build_predictor"

    def __init__(self, settings: Optional[Settings] = None, github: Optional[GitHubClient] = None) -> None:
        super().__init__(settings)
        self.github = github or GitHubClient(self.settings.github)

    def predict(
        self,
        repository: Optional[str],
        commit_sha: Optional[str],
        branch: str = "main",
        changed_files: Union[str, Sequence[str], None] = None,
        code_review_result: Optional[Dict[str, Any]] = None,
        llm_model: Optional[str] = None,
    ) -> BuildPrediction:
        if not repository:
            raise InvalidRequestError("Repository parameter is required")
        if not commit_sha:
            raise InvalidRequestError("Commit SHA parameter is required")
        owner, repo = parse_repository(repository)
        branch = branch or "main"
        files = normalize_changed_files(changed_files)

        self.log.info("build_prediction_started", repository=repository, commit_sha=commit_sha, branch=branch)
        repo_info, github_ok = self._repository_info(owner, repo, branch)
        history = self._build_history(owner, repo) if github_ok else []

        context = {
            **repo_info,
            "changed_files": files,
            "commit_sha": commit_sha,
            "branch": branch,
            "code_review": code_review_result or {},
        }
        raw, llm_based = self._llm_prediction(context, history, llm_model)
        if raw is None:
            self.log.warning("build_prediction_fallback", repository=repository, history_runs=len(history))
            raw = fallback_prediction(history)
            raw["recommendations"] = [FALLBACK_NOTE] + list(raw.get("recommendations") or [])

        data = _fill_defaults(raw)
        prediction = BuildPrediction(
            repository=repository,
            branch=branch,
            commit_sha=commit_sha,
            prediction=data["outcome"] if data["outcome"] in ("success", "failure", "warning") else "warning",
            confidence=_clamp_int(data["confidence"], 70),
            estimated_duration=_non_negative(data["duration"], DEFAULT_DURATION_MINUTES),
            potential_issues=[str(i) for i in data["issues"]],
            recommendations=[str(r) for r in data["recommendations"]],
            build_strategy=str(data["strategy"]),
            resource_requirements=ResourceRequirements(**{k: str(v) for k, v in data["resources"].items() if v}),
            language=repo_info.get("language") if repo_info.get("language") != "unknown" else None,
            llm_based=llm_based,
            github_data_available=github_ok,
        )
        self.log.info(
            "build_prediction_completed",
            repository=repository,
            prediction=prediction.prediction,
            confidence=prediction.confidence,
            llm_based=llm_based,
        )
        return prediction

    def _repository_info(self, owner: str, repo: str, branch: str) -> tuple[Dict[str, Any], bool]:
        minimal = {
            "name": repo,
            "owner": owner,
            "full_name": f"{owner}/{repo}",
            "language": "unknown",
            "languages": {},
            "build_files": [],
            "recent_commits": [],
        }
        if not self.github.available:
            return minimal, False
        try:
            meta = self.github.get_repository(owner, repo)
            info = {
                "name": meta.get("name", repo),
                "owner": owner,
                "full_name": meta.get("full_name", f"{owner}/{repo}"),
                "description": meta.get("description"),
                "language": meta.get("language") or "unknown",
                "size": meta.get("size"),
                "default_branch": meta.get("default_branch"),
                "languages": self.github.list_languages(owner, repo),
                "build_files": self.github.get_build_config_files(owner, repo, branch),
                "recent_commits": self.github.list_commits(owner, repo, branch, per_page=10),
            }
        except GitHubError as e:
            self.log.warning("build_prediction_github_unavailable", repository=f"{owner}/{repo}", error=str(e))
            return minimal, False
        return info, True

    def _build_history(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        try:
            return self.github.list_workflow_runs(owner, repo, per_page=20)
        except GitHubError as e:
            self.log.warning("build_history_unavailable", repository=f"{owner}/{repo}", error=str(e))
            return []

    def _llm_prediction(
        self,
        context: Dict[str, Any],
        history: List[Dict[str, Any]],
        model: Optional[str],
    ) -> tuple[Optional[Dict[str, Any]], bool]:
        prompt = get_prompt("build_prediction")
        text = prompt.render(
            repo_info=json.dumps(context, indent=2, default=str),
            build_history=json.dumps(history[:10], indent=2, default=str),
        )
        attempts = self.settings.llm.max_retries
        for attempt in range(1, attempts + 1):
            try:
                response = complete_chat(
                    text,
                    model=model,
                    temperature=prompt.temperature,
                    max_tokens=prompt.max_tokens,
                    settings=self.settings.llm.model_copy(update={"max_retries": 1}),
                )
            except LLMError as e:
                self.log.warning("build_prediction_llm_attempt_failed", attempt=attempt, error=str(e))
                continue
            parsed = parse_json_object(response)
            if parsed is not None:
                return parsed, True
            self.log.warning("build_prediction_parse_failed", attempt=attempt, preview=response[:200])
        return None, False

    def health_check(self) -> Dict[str, Any]:
        return {
            **super().health_check(),
            "github": self.github.available,
            "llm": bool(self.settings.llm.api_key),
        }
