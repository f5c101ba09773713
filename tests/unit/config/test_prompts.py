"""Unit tests for prompt templates loaded from prompts.yaml."""

from pathlib import Path

import pytest

from cicd_agents.config.prompts import get_prompt


class TestGetPrompt:
    def test_code_review_prompt_renders_diff(self) -> None:
        prompt = get_prompt("code_review")
        text = prompt.render(diff="+print('hi')")
        assert "+print('hi')" in text
        assert '"score": number' in text
        assert prompt.temperature == pytest.approx(0.1)

    def test_build_prediction_prompt_renders_context(self) -> None:
        text = get_prompt("build_prediction").render(repo_info='{"language": "Python"}', build_history="[]")
        assert '"language": "Python"' in text
        assert '"outcome": "success|failure|warning"' in text

    def test_unknown_prompt(self) -> None:
        with pytest.raises(KeyError, match="Unknown prompt"):
            get_prompt("release_notes")

    def test_custom_path(self, tmp_path: Path) -> None:
        path = tmp_path / "prompts.yaml"
        path.write_text("greet:\n  template: 'Hello {name}'\n  max_tokens: 10\n")
        prompt = get_prompt("greet", path=path)
        assert prompt.render(name="ops") == "Hello ops"
        assert prompt.max_tokens == 10

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            get_prompt("greet", path=tmp_path / "absent.yaml")
