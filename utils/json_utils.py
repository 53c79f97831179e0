"""
JSON extraction from LLM chat content.

Model replies are not guaranteed to be raw JSON: they may be fenced in ```json blocks,
wrapped in single backticks, or surrounded by prose. parse_json_object() pulls out the
first parseable JSON object or raises StructuredOutputError.
"""
from __future__ import annotations

import json
import re
from typing import Any, Iterator

from core.exceptions import StructuredOutputError

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)\s*```")
_SMART_QUOTES = {
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
}


def fix_json(s: str) -> str:
    """Remove trailing commas and replace typographic quotes."""
    for bad, good in _SMART_QUOTES.items():
        s = s.replace(bad, good)
    s = re.sub(r",\s*}", "}", s)
    s = re.sub(r",\s*]", "]", s)
    return s


def balanced_object_at(text: str, start: int) -> str | None:
    """
    Return the {...} substring starting at text[start] by brace-depth counting.
    Braces inside string literals are ignored. None when the object never closes.
    """
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def iter_object_candidates(text: str) -> Iterator[str]:
    """Yield balanced {...} substrings in order of their opening brace."""
    pos = text.find("{")
    while pos >= 0:
        candidate = balanced_object_at(text, pos)
        if candidate is not None:
            yield candidate
        pos = text.find("{", pos + 1)


def _loads_dict(candidate: str) -> dict[str, Any] | None:
    for attempt in (candidate, fix_json(candidate)):
        try:
            value = json.loads(attempt)
        except json.JSONDecodeError:
            continue
        return value if isinstance(value, dict) else None
    return None


def parse_json_object(text: str) -> dict[str, Any]:
    """
    Extract the first JSON object from LLM content.

    Fenced blocks are tried first (their body, then any balanced object inside them).
    Otherwise each '{' is tried in order with string-aware brace scanning. A candidate
    that fails to parse is repaired once with fix_json() and skipped if still invalid.
    """
    if not text or not text.strip():
        raise StructuredOutputError("Empty response content")

    for block in _FENCE_RE.findall(text):
        parsed = _loads_dict(block.strip())
        if parsed is not None:
            return parsed
        for candidate in iter_object_candidates(block):
            parsed = _loads_dict(candidate)
            if parsed is not None:
                return parsed

    for candidate in iter_object_candidates(text):
        parsed = _loads_dict(candidate)
        if parsed is not None:
            return parsed

    raise StructuredOutputError("No parseable JSON object found in response content")
