"""Recover structured data from loosely formatted model output.

Models wrap JSON in prose, code fences, or leave trailing commas behind. The
tactics below are tried in a fixed order and the first one that parses wins.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable

from drw.errors import MalformedOutput

_FENCE_RE = re.compile(r"```(?:[\w+-]*[ \t]*\n)?(.*?)```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_LIST_RE = re.compile(r"\[(.*?)\]", re.DOTALL)
_QUOTED_RE = re.compile(r'"([^"]+)"')

_NOT_FOUND = object()


def _loads(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return _NOT_FOUND


def _strip_trailing_commas(candidate: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", candidate)


def _direct(text: str) -> Any:
    return _loads(text.strip())


def _fenced(text: str) -> Any:
    for match in _FENCE_RE.finditer(text):
        parsed = _loads(match.group(1).strip())
        if parsed is not _NOT_FOUND:
            return parsed
    return _NOT_FOUND


def _brace_span(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start : end + 1]


def _braces(text: str) -> Any:
    span = _brace_span(text)
    return _NOT_FOUND if span is None else _loads(span)


def _braces_without_trailing_commas(text: str) -> Any:
    span = _brace_span(text)
    return _NOT_FOUND if span is None else _loads(_strip_trailing_commas(span))


def _bracketed_list(text: str) -> Any:
    match = _LIST_RE.search(text)
    if not match:
        return _NOT_FOUND
    items = _loads(_strip_trailing_commas(f"[{match.group(1)}]"))
    if items is _NOT_FOUND:
        return _NOT_FOUND
    return {"queries": items}


def _quoted_strings(text: str) -> Any:
    quoted = _QUOTED_RE.findall(text)
    if not quoted:
        return _NOT_FOUND
    return {"queries": quoted}


_TACTICS: tuple[Callable[[str], Any], ...] = (
    _direct,
    _fenced,
    _braces,
    _braces_without_trailing_commas,
    _bracketed_list,
    _quoted_strings,
)


def extract_json(text: str) -> Any:
    """Parse a model response into a JSON value.

    Raises:
        MalformedOutput: if no tactic recovers a value. Carries the first 200
            characters of the input.
    """
    if not isinstance(text, str) or not text.strip():
        raise MalformedOutput(text)
    for tactic in _TACTICS:
        parsed = tactic(text)
        if parsed is not _NOT_FOUND:
            return parsed
    raise MalformedOutput(text)


def extract_queries(text: str, limit: int = 3) -> list[str]:
    """Read a `{"queries": [...]}` payload (or a bare list) from a model response."""
    parsed = extract_json(text)
    if isinstance(parsed, dict):
        parsed = parsed.get("queries")
    if not isinstance(parsed, list):
        raise MalformedOutput(text)
    queries = [q.strip() for q in parsed if isinstance(q, str) and q.strip()]
    if not queries:
        raise MalformedOutput(text)
    return queries[: max(1, limit)]
