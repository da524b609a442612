"""Tolerant JSON extraction from generative responses."""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def _strip_fences(text: str) -> str:
    m = _FENCE_RE.search(text)
    return m.group(1).strip() if m else text.strip()


def parse_json_array(text: str, default: Any = None) -> Any:
    """Return the first JSON array in `text`, or `default`."""
    return _parse(text, list, _ARRAY_RE, default)


def parse_json_object(text: str, default: Any = None) -> Any:
    """Return the first JSON object in `text`, or `default`."""
    return _parse(text, dict, _OBJECT_RE, default)


def _parse(text: Any, kind: type, pattern: re.Pattern, default: Any) -> Any:
    if not isinstance(text, str) or not text.strip():
        return default
    body = _strip_fences(text)
    try:
        value = json.loads(body)
        if isinstance(value, kind):
            return value
    except ValueError:
        pass
    m = pattern.search(body)
    if not m:
        return default
    try:
        value = json.loads(m.group(0))
    except ValueError:
        return default
    return value if isinstance(value, kind) else default
