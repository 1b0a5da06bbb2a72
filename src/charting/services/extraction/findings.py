from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

from src.charting.domain.errors import ExtractionParseFailure
from src.charting.domain.models.extraction import SanitizedFinding
from src.charting.services.extraction.json_spans import find_balanced_spans, loads_object
from src.charting.services.extraction.vitals import VITAL_KEYS

# Keys skipped outright; their content is handled by the vital extractor.
_SKIPPED_KEYS = frozenset(VITAL_KEYS + ("vital_signs",))

_VITAL_SIGNS_PREFIX_RE = re.compile(r"vital[_\s]?signs?\s*:\s*\{[^}]*\}", re.IGNORECASE)
_VITAL_TOKEN_RE = re.compile(
    r"blood[_\s]?pressure|bp|heart[_\s]?rate|hr|temperature|temp|weight",
    re.IGNORECASE,
)
_VITAL_SIGNS_LABEL_RE = re.compile(r"vital[_\s]?signs?\s*:\s*", re.IGNORECASE)
_VITAL_FRAGMENT_RES = tuple(
    re.compile(r"[\"']" + key + r"[\"']\s*:\s*[\"']?[^\"',}]+[\"']?", re.IGNORECASE)
    for key in (r"blood[_\s]?pressure", r"bp", r"heart[_\s]?rate", r"hr", r"temperature", r"temp", r"weight")
)
_PUNCTUATION_FIXES = (
    (re.compile(r",\s*,"), ","),
    (re.compile(r",\s*}"), "}"),
    (re.compile(r"\{\s*,\s*"), "{"),
    (re.compile(r":\s*:"), ":"),
)
# A `"key": {}` member left behind once its vitals are gone.
_EMPTY_MEMBER_RE = re.compile(r"[\"'][^\"'{}]*[\"']\s*:\s*\{\s*\}")
_EMPTY_OBJECT_RE = re.compile(r"\{\s*\}")
_EDGE_CHARS = ",: \t\r\n"

# Maximum comma-separated segments for an unparseable brace span to still be
# treated as a vitals blob.
MAX_VITALS_BLOB_SEGMENTS = 5


def keys_are_all_vitals(keys: Iterable[Any], *, include_vital_signs: bool = False) -> bool:
    """True when every key names a vital sign (case-insensitive substring)."""

    aliases = VITAL_KEYS + (("vital_signs",) if include_vital_signs else ())
    names = [str(key).lower() for key in keys]
    return bool(names) and all(any(alias in name for alias in aliases) for name in names)


def looks_like_vitals_blob(text: str) -> bool:
    return bool(_VITAL_TOKEN_RE.search(text)) and len(text.split(",")) <= MAX_VITALS_BLOB_SEGMENTS


def _looks_like_labelled_vitals_object(text: str) -> bool:
    label = _VITAL_SIGNS_LABEL_RE.match(text)
    body = text[label.end() :] if label else text
    if len(body) < 2 or body[0] != "{" or body[-1] != "}":
        return False
    return bool(_VITAL_TOKEN_RE.search(body, 1, len(body) - 1))


def _is_vitals_only_string(value: str) -> bool:
    try:
        parsed = json.loads(value)
    except (ValueError, RecursionError):
        return _looks_like_labelled_vitals_object(value.strip())
    return isinstance(parsed, dict) and keys_are_all_vitals(parsed.keys())


def _strip_vitals_spans(text: str) -> str:
    # Spans are removed back to front so earlier indices stay valid.
    for start, end in reversed(find_balanced_spans(text)):
        span = text[start : end + 1]
        try:
            parsed = loads_object(span)
        except ExtractionParseFailure:
            remove = looks_like_vitals_blob(span)
        else:
            remove = keys_are_all_vitals(parsed.keys())
        if remove:
            text = text[:start] + text[end + 1 :]
    return text


def _drop_empty_objects(text: str) -> str:
    removed = 1
    while removed:
        text, removed = _EMPTY_MEMBER_RE.subn("", text)
    return _EMPTY_OBJECT_RE.sub("", text)


def strip_vitals_text(text: str) -> str:
    """Remove vital-sign payloads from a free-text finding, keeping the prose."""

    text = _VITAL_SIGNS_PREFIX_RE.sub("", text)
    text = _strip_vitals_spans(text)
    for pattern in _VITAL_FRAGMENT_RES:
        text = pattern.sub("", text)
    text = _drop_empty_objects(text)
    for pattern, replacement in _PUNCTUATION_FIXES:
        text = pattern.sub(replacement, text)
    return text.strip(_EDGE_CHARS)


def _render_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return strip_vitals_text(value)
    if isinstance(value, Mapping):
        remaining = {k: v for k, v in value.items() if str(k).lower().replace(" ", "_") not in _SKIPPED_KEYS}
        if not remaining:
            return None
        return json.dumps(remaining, indent=2, default=str)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value if item is not None and str(item).strip())
    return str(value)


def sanitize_findings(findings: Any) -> List[SanitizedFinding]:
    """Return physical-exam findings with every vital-sign payload removed.

    Fields that hold nothing but vitals are dropped entirely; fields mixing
    vitals with prose keep the prose. Output follows input key order.
    """

    if not isinstance(findings, Mapping):
        return []

    results: List[SanitizedFinding] = []
    for key, value in findings.items():
        key = str(key)
        if key.lower() in _SKIPPED_KEYS:
            continue

        if isinstance(value, Mapping) and keys_are_all_vitals(value.keys(), include_vital_signs=True):
            continue
        if isinstance(value, str) and _is_vitals_only_string(value):
            continue

        text = _render_value(value)
        if not text or text in ("{}", "null"):
            continue
        results.append(SanitizedFinding(key=key, text=text))
    return results
