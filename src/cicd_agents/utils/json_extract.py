"""Helpers for pulling JSON payloads out of LLM responses."""

import json
import re
from typing import Any, Dict, Optional

_JSON_BLOCK_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json_from_response(response: str) -> Optional[str]:
    """
    Extract a JSON object string from an LLM response (markdown code block or raw JSON).

    :param response: Raw response text that may contain JSON.
    :return: First plausible JSON object string, or None if not found.
    """
    if not response or not response.strip():
        return None

    # Prefer ```json ... ``` block
    for match in _JSON_BLOCK_RE.finditer(response):
        candidate = match.group(1).strip()
        if candidate.startswith("{") and candidate.endswith("}"):
            return candidate

    # Fallback: outermost braces, tolerating prose around them
    start = response.find("{")
    end = response.rfind("}")
    if start >= 0 and end > start:
        return response[start : end + 1]
    return None


def parse_json_object(response: str) -> Optional[Dict[str, Any]]:
    """Return the first JSON object in the response as a dict, or None when absent or malformed."""
    candidate = extract_json_from_response(response)
    if candidate is None:
        return None
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None
