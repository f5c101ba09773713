"""
LLM completion client.

One-shot chat completions against an OpenAI-compatible HTTP API (httpx), with
tenacity retries and exponential backoff. Used by the code review and build
prediction agents.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cicd_agents.config.settings import LLMSettings, get_settings

logger = structlog.get_logger(__name__)


class LLMError(Exception):
    """Completion request failed or returned no content."""


def _post_completion(client: httpx.Client, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> str:
    r = client.post(url, headers=headers, json=payload)
    r.raise_for_status()
    data = r.json()
    choices = data.get("choices", [])
    if not choices:
        raise LLMError("Completion response contained no choices")
    content = (choices[0].get("message", {}).get("content") or "").strip()
    if not content:
        raise LLMError("Completion response was empty")
    return content


def complete_chat(
    prompt: str,
    model: Optional[str] = None,
    temperature: float = 0.2,
    max_tokens: int = 1500,
    settings: Optional[LLMSettings] = None,
    client: Optional[httpx.Client] = None,
) -> str:
    """
    Send a single user prompt and return the assistant content.

    :param prompt: User prompt text.
    :param model: Model ID; settings.default_model when None.
    :param temperature: Sampling temperature.
    :param max_tokens: Completion token cap.
    :param settings: LLM settings; global settings when None.
    :param client: Optional httpx client (tests inject a mock transport).
    :return: Assistant content string.
    :raises LLMError: missing key, or every attempt failed.
    """
    settings = settings or get_settings().llm
    if not settings.api_key:
        raise LLMError("LLM API key not configured (set LLM_API_KEY)")

    model = model or settings.default_model
    url = f"{settings.api_base.rstrip('/')}/chat/completions"
    headers = {"Authorization": f"Bearer {settings.api_key}", "Content-Type": "application/json"}
    payload = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": temperature,
        "max_tokens": max_tokens,
    }

    @retry(
        retry=retry_if_exception_type((httpx.HTTPError, LLMError)),
        stop=stop_after_attempt(settings.max_retries),
        wait=wait_exponential(multiplier=1, min=1, max=30),
        reraise=True,
    )
    def _invoke(http: httpx.Client) -> str:
        logger.info("llm_request", model=model, max_tokens=max_tokens)
        return _post_completion(http, url, headers, payload)

    try:
        if client is not None:
            content = _invoke(client)
        else:
            with httpx.Client(timeout=settings.request_timeout) as http:
                content = _invoke(http)
    except httpx.HTTPError as e:
        logger.warning("llm_request_failed", model=model, error=str(e))
        raise LLMError(f"LLM request failed: {e}") from e

    logger.debug("llm_response", model=model, preview=content[:200])
    return content
