from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

from src.charting.domain.errors import ExtractionParseFailure


def find_balanced_spans(text: str) -> List[Tuple[int, int]]:
    """Return ``(start, end)`` index pairs of every top-level ``{...}`` span.

    Nesting is tracked by counting braces rather than with a regex, so
    ``{"a": {"b": 1}}`` is one span. ``end`` is inclusive. A closing brace
    with no open span is ignored, and an unterminated span is not reported.
    """

    spans: List[Tuple[int, int]] = []
    depth = 0
    start = -1
    for index, char in enumerate(text):
        if char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                spans.append((start, index))
                start = -1
    return spans


def first_balanced_span(text: str) -> Optional[str]:
    spans = find_balanced_spans(text)
    if not spans:
        return None
    start, end = spans[0]
    return text[start : end + 1]


def loads_object(text: str) -> Dict[str, Any]:
    """Parse ``text`` as a JSON object.

    Raises :class:`ExtractionParseFailure` when the text is not valid JSON or
    decodes to something other than an object.
    """

    try:
        parsed = json.loads(text)
    except (ValueError, RecursionError) as exc:
        raise ExtractionParseFailure(str(exc)) from exc
    if not isinstance(parsed, dict):
        raise ExtractionParseFailure(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def to_json_text(value: Any) -> str:
    """Serialize an arbitrary findings value for text scanning."""

    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)
