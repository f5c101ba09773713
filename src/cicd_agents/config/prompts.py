"""Prompt templates for LLM-backed agents, loaded from config/prompts.yaml."""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field

PROMPTS_PATH = Path(__file__).resolve().parent / "prompts.yaml"


class PromptTemplate(BaseModel):
    """One prompt: str.format template plus sampling parameters."""

    template: str = Field(..., description="Prompt body with {placeholders}")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1500, ge=1)

    def render(self, **values: Any) -> str:
        return self.template.format(**values)


@lru_cache(maxsize=4)
def _load_prompts(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Prompts config not found: {path}")
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_prompt(name: str, path: Optional[Path] = None) -> PromptTemplate:
    """Return the named prompt template. Raises KeyError for unknown names."""
    prompts = _load_prompts(path or PROMPTS_PATH)
    if name not in prompts:
        raise KeyError(f"Unknown prompt '{name}'. Known: {list(prompts.keys())}")
    return PromptTemplate.model_validate(prompts[name])
