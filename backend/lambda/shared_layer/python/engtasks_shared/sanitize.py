"""engtasks_shared.sanitize — Free-text sanitization and hostile-payload checks.

Every function here is a pure transformation or predicate over its input.

Python dicts have no prototype chain, so ``__proto__``-style keys cannot
corrupt shared state on this side. They are still rejected: task payloads are
relayed to browser clients that deep-merge JSON, and the API contract treats
such bodies as invalid input.
"""

from __future__ import annotations

import re
from typing import Any, Optional

__all__ = [
    "MAX_REQUEST_BODY_SIZE",
    "POLLUTION_KEYS",
    "contains_prototype_pollution_keys",
    "has_prototype_pollution",
    "sanitize_string_fields",
    "strip_control_characters",
    "strip_html_tags",
    "validate_request_body_size",
]

MAX_REQUEST_BODY_SIZE = 10240  # 10 KB
POLLUTION_KEYS = frozenset({"__proto__", "constructor", "prototype"})

# C0 controls except \n, DEL, and the C1 block.
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x09\x0b-\x1f\x7f-\x9f]")

_COMMENT_RE = re.compile(r"<!--.*?-->", re.S)
_BLOCK_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.I | re.S)
_UNCLOSED_BLOCK_RE = re.compile(r"<(?:script|style)\b[^>]*>.*\Z", re.I | re.S)
# Whole tags, attributes included; text outside tags is never touched.
_TAG_RE = re.compile(r"</?[a-z][a-z0-9-]*\b[^>]*>|<![^>]*>", re.I)
_ANGLE_ENTITY_RE = re.compile(
    r"&(?:#0*6[02](?![0-9]);?|#x0*3[ce](?![0-9a-f]);?|lt;|gt;)",
    re.I,
)

_POLLUTION_KEY_RE = re.compile(r'"\s*(?:__proto__|constructor|prototype)\s*"\s*:', re.I)


def strip_control_characters(value: Any) -> Any:
    """Remove ASCII/C1 control characters, keeping newlines. Non-strings pass through."""
    if not isinstance(value, str):
        return value
    return _CONTROL_CHARS_RE.sub("", value)


def _strip_html_once(text: str) -> str:
    text = _COMMENT_RE.sub("", text)
    text = _BLOCK_RE.sub("", text)
    text = _UNCLOSED_BLOCK_RE.sub("", text)
    text = _TAG_RE.sub("", text)
    return _ANGLE_ENTITY_RE.sub("", text)


def strip_html_tags(value: Any) -> Any:
    """Strip markup, script/style blocks and encoded angle brackets.

    Reduction repeats until the text stops changing, so fragments such as
    ``<<script>script>`` cannot reassemble into a live tag once the inner
    tag is removed. Plain text between tags is kept as-is.
    """
    if not isinstance(value, str):
        return value
    previous = None
    result = value
    while result != previous:
        previous = result
        result = _strip_html_once(result)
    return result


def sanitize_string_fields(obj: Any) -> Any:
    """Recursively strip control characters from every string in a JSON structure."""
    if obj is None:
        return None
    if isinstance(obj, str):
        return strip_control_characters(obj)
    if isinstance(obj, dict):
        return {key: sanitize_string_fields(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [sanitize_string_fields(item) for item in obj]
    return obj


def contains_prototype_pollution_keys(raw_json: Any) -> bool:
    """Scan raw, unparsed JSON text for pollution-style object keys.

    Only keys are flagged (a quoted name followed by ``:``); the same words
    used as string values are fine.
    """
    if not isinstance(raw_json, str) or not raw_json:
        return False
    return _POLLUTION_KEY_RE.search(raw_json) is not None


def has_prototype_pollution(obj: Any, _visited: Optional[set] = None) -> bool:
    """Post-parse check for pollution-style keys at any depth, lists included."""
    if not isinstance(obj, (dict, list)):
        return False
    visited = _visited if _visited is not None else set()
    if id(obj) in visited:
        return False
    visited.add(id(obj))

    if isinstance(obj, dict):
        for key, value in obj.items():
            if key in POLLUTION_KEYS:
                return True
            if has_prototype_pollution(value, visited):
                return True
        return False

    return any(has_prototype_pollution(item, visited) for item in obj)


def validate_request_body_size(body: Optional[str]) -> Optional[str]:
    """Return an error message when the UTF-8 body exceeds MAX_REQUEST_BODY_SIZE."""
    if body is None:
        return None
    size = len(body.encode("utf-8")) if isinstance(body, str) else len(body)
    if size > MAX_REQUEST_BODY_SIZE:
        return f"Request body exceeds maximum allowed size of {MAX_REQUEST_BODY_SIZE} bytes"
    return None
