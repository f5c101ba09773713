"""Unit tests for the code review agent (GitHub client and LLM mocked)."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from cicd_agents.agents.code_review import CodeReviewAgent, is_approved
from cicd_agents.errors import AgentError, InvalidRequestError
from cicd_agents.models.outputs import ReviewIssue, Severity
from cicd_agents.tools.github import GitHubError
from cicd_agents.tools.llm import LLMError

LLM_PATH = "cicd_agents.agents.code_review.complete_chat"


def _review(score=90, issues=None, **extra) -> str:
    return json.dumps({"score": score, "approved": True, "issues": issues or [], **extra})


@pytest.fixture
def github() -> MagicMock:
    gh = MagicMock()
    gh.available = True
    gh.get_pull_request_diff.return_value = "diff --git a/app.py b/app.py\n+print('x')"
    gh.get_pull_request.return_value = {"head": {"sha": "headsha"}}
    return gh


@pytest.fixture
def agent(settings, github) -> CodeReviewAgent:
    return CodeReviewAgent(settings, github=github)


class TestApprovalRule:
    def test_threshold(self) -> None:
        assert is_approved(80, []) is True
        assert is_approved(79, []) is False

    def test_critical_issue_blocks(self) -> None:
        assert is_approved(95, [ReviewIssue(message="sql injection", severity="critical")]) is False
        assert is_approved(95, [ReviewIssue(message="naming", severity="major")]) is True


class TestAnalyze:
    def test_approved_review(self, agent, github) -> None:
        with patch(LLM_PATH, return_value=_review(92, suggestions=["add tests"])) as llm:
            result = agent.analyze({"repository": "acme/web", "pull_request": 5})
        assert result.status == "approved"
        assert result.approved is True
        assert result.score == 92
        assert result.suggestions == ["add tests"]
        assert result.commit_sha == "headsha"
        github.get_pull_request_diff.assert_called_once_with("acme", "web", number=5, diff_url=None)
        assert "print('x')" in llm.call_args.args[0]

    def test_critical_issue_requests_changes_and_comments(self, agent, github) -> None:
        issues = [
            {"type": "security", "severity": "critical", "message": "hardcoded secret", "line": 3, "file": "app.py"},
            {"type": "style", "severity": "minor", "message": "long line"},
            {"type": "bug", "severity": "major", "message": "off by one"},
        ]
        with patch(LLM_PATH, return_value=_review(88, issues)):
            result = agent.analyze({"repository": "acme/web", "pull_request": 5, "head_sha": "given"})
        assert result.status == "changes_requested"
        assert result.issues_found == 3
        calls = github.create_review_comment.call_args_list
        assert len(calls) == 2
        assert calls[0].args == ("acme", "web", 5, "**CRITICAL**: hardcoded secret", "given", "app.py", 3)
        assert calls[1].args[5:] == ("unknown", 1)
        github.get_pull_request.assert_not_called()

    def test_comment_failures_are_tolerated(self, agent, github) -> None:
        github.create_review_comment.side_effect = GitHubError("422")
        issues = [{"severity": "major", "message": "m"}]
        with patch(LLM_PATH, return_value=_review(50, issues)):
            result = agent.analyze({"repository": "acme/web", "pull_request": 5})
        assert result.approved is False

    def test_diff_url_without_number_posts_nothing(self, agent, github) -> None:
        with patch(LLM_PATH, return_value=_review(40, [{"severity": "critical", "message": "m"}])):
            agent.analyze({"repository": "acme/web", "diff_url": "https://github.test/x.diff"})
        github.create_review_comment.assert_not_called()

    def test_invalid_issues_are_skipped(self, agent) -> None:
        with patch(LLM_PATH, return_value=_review(85, [{"severity": "minor"}, "junk", {"message": "ok"}])):
            result = agent.analyze({"repository": "acme/web", "pull_request": 1})
        assert [i.message for i in result.issues] == ["ok"]
        assert result.issues[0].severity is Severity.MINOR

    def test_llm_failure(self, agent) -> None:
        with patch(LLM_PATH, side_effect=LLMError("down")):
            with pytest.raises(AgentError, match="Failed to analyze code with LLM"):
                agent.analyze({"repository": "acme/web", "pull_request": 1})

    def test_unparseable_response(self, agent) -> None:
        with patch(LLM_PATH, return_value="I think it looks fine"):
            with pytest.raises(AgentError, match="Failed to analyze code with LLM"):
                agent.analyze({"repository": "acme/web", "pull_request": 1})

    def test_diff_fetch_failure(self, agent, github) -> None:
        github.get_pull_request_diff.side_effect = GitHubError("404")
        with pytest.raises(AgentError, match="diff"):
            agent.analyze({"repository": "acme/web", "pull_request": 1})

    @pytest.mark.parametrize(
        "request_body",
        [{}, {"repository": "acme/web"}, {"repository": "acme", "pull_request": 1}],
    )
    def test_invalid_requests(self, agent, request_body) -> None:
        with pytest.raises(InvalidRequestError):
            agent.analyze(request_body)

    def test_health_check(self, agent) -> None:
        assert agent.health_check() == {"agent": "code_review", "status": "ok", "github": True, "llm": True}
