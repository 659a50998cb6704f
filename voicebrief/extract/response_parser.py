"""Tolerant parser for summarization model output.

Models are asked for bare JSON but regularly wrap it in a markdown fence or
drop optional fields. Only output that is not a JSON object at all is
rejected; the caller decides whether to retry.
"""
import json
import re
from typing import Any, Dict, List

from voicebrief.core.errors import MalformedResponse
from voicebrief.models.schemas import Summary

_LEADING_FENCE_RE = re.compile(r"^```[\w+-]*[ \t]*\n?")
_TRAILING_FENCE_RE = re.compile(r"\n?```$")


def strip_code_fence(raw: str) -> str:
    """Remove a leading ``` / ```json marker and a trailing ``` from model output, then trim."""
    cleaned = (raw or "").strip()
    cleaned = _LEADING_FENCE_RE.sub("", cleaned, count=1)
    cleaned = _TRAILING_FENCE_RE.sub("", cleaned, count=1)
    return cleaned.strip()


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [x if isinstance(x, str) else str(x) for x in value if x is not None]


def _first_present(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def parse_summary_response(raw: str) -> Summary:
    """Parse raw model text into a Summary. Missing or empty title -> "Untitled", missing summary -> "", missing or non-list actionItems/keyPoints -> []. Accepts camelCase and snake_case keys.
    Raises MalformedResponse if the cleaned text is not a JSON object.
    Why available: Single validation point for map, reduce and short-path model calls."""
    cleaned = strip_code_fence(raw)
    try:
        data = json.loads(cleaned)
    except (json.JSONDecodeError, ValueError) as e:
        raise MalformedResponse(f"Model response is not valid JSON: {e}", raw=raw) from e

    if not isinstance(data, dict):
        raise MalformedResponse(
            f"Model response must be a JSON object, got {type(data).__name__}", raw=raw
        )

    title = data.get("title")
    summary = data.get("summary")
    return Summary(
        title=str(title) if title else "Untitled",
        summary=str(summary) if summary else "",
        action_items=_string_list(_first_present(data, "actionItems", "action_items")),
        key_points=_string_list(_first_present(data, "keyPoints", "key_points")),
    )
