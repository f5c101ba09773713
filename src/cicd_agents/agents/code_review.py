"""
Code review agent.

Fetches a pull request diff, asks the LLM for a structured review, applies the
approval rule (score >= 80 and no critical issues) and posts review comments
for critical and major issues back on the pull request.
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from cicd_agents.agents.base import AgentError, BaseAgent, InvalidRequestError, parse_repository, require
from cicd_agents.config.prompts import get_prompt
from cicd_agents.config.settings import Settings
from cicd_agents.models.outputs import CodeReviewResult, ReviewIssue, Severity
from cicd_agents.tools.github import GitHubClient, GitHubError
from cicd_agents.tools.llm import LLMError, complete_chat
from cicd_agents.utils.json_extract import parse_json_object

APPROVAL_SCORE = 80
COMMENT_SEVERITIES = (Severity.CRITICAL, Severity.MAJOR)


def is_approved(score: int, issues: List[ReviewIssue]) -> bool:
    return score >= APPROVAL_SCORE and not any(i.severity is Severity.CRITICAL for i in issues)


def _coerce_score(value: Any) -> int:
    try:
        return max(0, min(100, int(round(float(value)))))
    except (TypeError, ValueError):
        return 0


class CodeReviewAgent(BaseAgent):
    """Review pull request diffs with an LLM and comment on serious issues."""

    name = "code_review"

    def __init__(self, settings: Optional[Settings] = None, github: Optional[GitHubClient] = None) -> None:
        super().__init__(settings)
        self.github = github or GitHubClient(self.settings.github)

    def analyze(self, request: Dict[str, Any]) -> CodeReviewResult:
        """
        Review one pull request.

        Expects ``repository`` ('owner/repo') and either ``diff_url`` or
        ``pull_request`` (number); optional ``head_sha``, ``branch`` and
        ``llm_model``.
        """
        repository = require(request, "repository")
        owner, repo = parse_repository(repository)
        number = request.get("pull_request") or request.get("pr_number")
        diff_url = request.get("diff_url")
        if not diff_url and number is None:
            raise InvalidRequestError("diff_url or pull_request parameter is required")

        self.log.info("code_review_started", repository=repository, pull_request=number)
        try:
            diff = self.github.get_pull_request_diff(owner, repo, number=number, diff_url=diff_url)
        except GitHubError as e:
            self.log.error("code_review_diff_failed", repository=repository, error=str(e))
            raise AgentError(f"Failed to fetch pull request diff: {e}") from e

        review = self._review_diff(diff, request.get("llm_model"))
        issues = self._parse_issues(review.get("issues"))
        score = _coerce_score(review.get("score"))
        approved = is_approved(score, issues)

        head_sha = request.get("head_sha")
        if number is not None and not head_sha:
            head_sha = self._head_sha(owner, repo, number)
        if number is not None and head_sha:
            self._post_comments(owner, repo, int(number), head_sha, issues)

        result = CodeReviewResult(
            status="approved" if approved else "changes_requested",
            score=score,
            approved=approved,
            issues_found=len(issues),
            issues=issues,
            suggestions=list(review.get("suggestions") or []),
            security_concerns=list(review.get("security_concerns") or []),
            performance_issues=list(review.get("performance_issues") or []),
            repository=repository,
            commit_sha=head_sha,
            branch=request.get("branch") or "main",
        )
        self.log.info(
            "code_review_completed",
            repository=repository,
            score=score,
            approved=approved,
            issues_found=len(issues),
        )
        return result

    def _review_diff(self, diff: str, model: Optional[str]) -> Dict[str, Any]:
        prompt = get_prompt("code_review")
        try:
            response = complete_chat(
                prompt.render(diff=diff),
                model=model,
                temperature=prompt.temperature,
                max_tokens=prompt.max_tokens,
                settings=self.settings.llm,
            )
        except LLMError as e:
            self.log.error("code_review_llm_failed", error=str(e))
            raise AgentError("Failed to analyze code with LLM") from e
        review = parse_json_object(response)
        if review is None:
            self.log.error("code_review_parse_failed", preview=response[:200])
            raise AgentError("Failed to analyze code with LLM")
        return review

    def _parse_issues(self, raw: Any) -> List[ReviewIssue]:
        issues: List[ReviewIssue] = []
        for item in raw or []:
            if not isinstance(item, dict):
                continue
            try:
                issues.append(ReviewIssue.model_validate(item))
            except ValidationError as e:
                self.log.warning("code_review_issue_skipped", issue=item, error=str(e))
        return issues

    def _head_sha(self, owner: str, repo: str, number: Any) -> Optional[str]:
        try:
            return self.github.get_pull_request(owner, repo, int(number)).get("head", {}).get("sha")
        except GitHubError as e:
            self.log.warning("code_review_head_sha_unavailable", pull_request=number, error=str(e))
            return None

    def _post_comments(self, owner: str, repo: str, number: int, commit_id: str, issues: List[ReviewIssue]) -> int:
        posted = 0
        for issue in issues:
            if issue.severity not in COMMENT_SEVERITIES:
                continue
            body = f"**{issue.severity.value.upper()}**: {issue.message}"
            try:
                self.github.create_review_comment(
                    owner, repo, number, body, commit_id, issue.file or "unknown", issue.line or 1
                )
                posted += 1
            except GitHubError as e:
                self.log.warning("code_review_comment_failed", pull_request=number, error=str(e))
        return posted

    def health_check(self) -> Dict[str, Any]:
        return {
            **super().health_check(),
            "github": self.github.available,
            "llm": bool(self.settings.llm.api_key),
        }
