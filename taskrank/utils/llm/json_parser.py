"""Lenient JSON extraction from model replies.

Models return JSON in several shapes: clean, wrapped in a ```json fence, or
embedded in explanatory prose. Strategies are tried in that order.
"""

import json
import re
from typing import Any, Optional

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)


def parse_json_response(text: Optional[str]) -> Optional[dict[str, Any]]:
    """Extract the first JSON object from a model reply.

    Args:
        text: Raw reply text.

    Returns:
        Parsed object, or None if no JSON object could be recovered.
    """
    if not text or not text.strip():
        return None
    text = text.strip()

    result = _loads_object(text)
    if result is not None:
        return result

    for block in _FENCE_RE.findall(text):
        result = _loads_object(block.strip())
        if result is not None:
            return result

    candidate = balanced_span(text, "{", "}")
    if candidate is not None:
        return _loads_object(candidate)
    return None


def _loads_object(text: str) -> Optional[dict[str, Any]]:
    try:
        result = json.loads(text)
    except json.JSONDecodeError:
        return None
    return result if isinstance(result, dict) else None


def balanced_span(text: str, opener: str, closer: str) -> Optional[str]:
    """Return the first balanced opener..closer span, ignoring string contents."""
    start = text.find(opener)
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            in_string = not in_string
        elif in_string:
            continue
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None
