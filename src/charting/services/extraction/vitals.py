"""Vital sign extraction from dictation payloads.

Transcription output is inconsistent about where vitals live: sometimes in a
proper ``vital_signs`` object, sometimes as a JSON fragment pasted into a
free-text finding, sometimes only in prose. Each field is resolved
independently, taking the first strategy that yields a value:

1. the structured ``vital_signs`` object,
2. balanced-brace JSON embedded in the findings values,
3. ``"key": value`` regexes over the flattened fallback text.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any, Dict, Optional, Tuple

from src.charting.domain.errors import ExtractionParseFailure
from src.charting.domain.models.extraction import VitalsBundle
from src.charting.services.extraction.json_spans import first_balanced_span, loads_object, to_json_text

logger = logging.getLogger("extraction")

# Canonical field -> accepted payload keys, in lookup order.
VITAL_ALIASES: Dict[str, Tuple[str, ...]] = {
    "blood_pressure": ("blood_pressure", "bp"),
    "heart_rate": ("heart_rate", "hr"),
    "temperature": ("temperature", "temp"),
    "weight": ("weight",),
}

VITAL_KEYS: Tuple[str, ...] = tuple(alias for aliases in VITAL_ALIASES.values() for alias in aliases)

VITAL_KEYWORD_RE = re.compile(
    r"blood[_\s]?pressure|heart[_\s]?rate|temperature|temp|weight|\bbp\b|\bhr\b|vital[_\s]?signs?",
    re.IGNORECASE,
)

# Key spellings accepted by the "key": value fallback.
_KEY_PATTERNS: Dict[str, Tuple[str, ...]] = {
    "blood_pressure": (r"blood[_\s]?pressure", r"bp"),
    "heart_rate": (r"heart[_\s]?rate", r"hr"),
    "temperature": (r"temperature", r"temp"),
    "weight": (r"weight",),
}

_KEY_VALUE_RES: Dict[str, Tuple[re.Pattern[str], ...]] = {
    field: tuple(re.compile(r"[\"']" + key + r"[\"']\s*:\s*[\"']?([^\"',}]+)", re.IGNORECASE) for key in keys)
    for field, keys in _KEY_PATTERNS.items()
}

_BP_PAIR_RE = re.compile(r"(\d+)(?:\s*(?:/|-|over)\s*|\s+)(\d+)", re.IGNORECASE)
_FIRST_INT_RE = re.compile(r"(\d+)")
_FIRST_NUMBER_RE = re.compile(r"(\d+\.?\d*)")


def canonical_blood_pressure(value: Any) -> Optional[str]:
    """Normalize a blood pressure reading to ``"systolic/diastolic"``.

    ``"120 / 80"``, ``"120 over 80"`` and ``"120-80"`` all become ``"120/80"``.
    A string that already contains ``/`` but has no digit pair is passed
    through unchanged. A lone number is returned bare as a systolic-only
    reading.
    """

    if isinstance(value, bool) or not value:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        return None

    pair = _BP_PAIR_RE.search(value)
    if pair:
        return f"{pair.group(1)}/{pair.group(2)}"
    if "/" in value:
        return value
    single = _FIRST_INT_RE.search(value)
    if single:
        return single.group(1)
    return None


def extract_number(value: Any) -> Optional[str]:
    """Return the first numeric run in ``value`` as a string, or None."""

    if isinstance(value, bool) or not value:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        match = _FIRST_NUMBER_RE.search(value)
        return match.group(1) if match else None
    return None


_CANONICALIZERS = {
    "blood_pressure": canonical_blood_pressure,
    "heart_rate": extract_number,
    "temperature": extract_number,
    "weight": extract_number,
}


def _first_alias_value(source: Mapping, field: str) -> Any:
    for alias in VITAL_ALIASES[field]:
        value = source.get(alias)
        if value:
            return value
    return None


def _regex_vitals(text: str) -> Dict[str, str]:
    found: Dict[str, str] = {}
    for field, patterns in _KEY_VALUE_RES.items():
        for pattern in patterns:
            match = pattern.search(text)
            if match and match.group(1).strip():
                found[field] = match.group(1).strip()
                break
    return found


def parse_vitals_from_text(text: str) -> Dict[str, Any]:
    """Pull raw vital values out of the first JSON object embedded in ``text``.

    The first balanced ``{...}`` span is decoded as JSON; when that fails the
    span is searched with per-key regexes instead. Values are returned raw,
    not canonicalized.
    """

    if not text or not VITAL_KEYWORD_RE.search(text):
        return {}

    span = first_balanced_span(text)
    if span is None:
        return {}

    try:
        parsed = loads_object(span)
    except ExtractionParseFailure:
        logger.debug("Embedded vitals span is not valid JSON; using key regexes")
        return _regex_vitals(span)

    found: Dict[str, Any] = {}
    for field in VITAL_ALIASES:
        value = _first_alias_value(parsed, field)
        if value:
            found[field] = value
    return found


def _fill_missing(values: Dict[str, Optional[str]], raw: Dict[str, Any]) -> None:
    for field, raw_value in raw.items():
        if values.get(field) is None:
            values[field] = _CANONICALIZERS[field](raw_value)


def extract_vitals(findings: Any, fallback_text: str = "") -> VitalsBundle:
    """Resolve blood pressure, heart rate, temperature and weight.

    ``findings`` is the ``physical_exam_findings`` mapping of a dictation
    payload; ``fallback_text`` is the flattened objective-section text used
    as a last resort. Never raises; anything not found is None.
    """

    if not isinstance(findings, Mapping):
        findings = {}

    values: Dict[str, Optional[str]] = {field: None for field in VITAL_ALIASES}

    vital_signs = findings.get("vital_signs")
    if isinstance(vital_signs, Mapping):
        for field, canonicalize in _CANONICALIZERS.items():
            raw_value = _first_alias_value(vital_signs, field)
            if raw_value is not None:
                values[field] = canonicalize(raw_value)

    if any(value is None for value in values.values()):
        for value in findings.values():
            if isinstance(value, str):
                _fill_missing(values, parse_vitals_from_text(value))
            elif isinstance(value, Mapping):
                _fill_missing(values, parse_vitals_from_text(to_json_text(value)))
        # Vitals inlined as top-level keys of the findings object itself.
        _fill_missing(values, parse_vitals_from_text(to_json_text(dict(findings))))

    if any(value is None for value in values.values()) and isinstance(fallback_text, str):
        _fill_missing(values, _regex_vitals(fallback_text))

    return VitalsBundle(**values)
