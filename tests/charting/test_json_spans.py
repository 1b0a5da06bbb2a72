import pytest

from src.charting.domain.errors import ExtractionParseFailure
from src.charting.services.extraction.json_spans import (
    find_balanced_spans,
    first_balanced_span,
    loads_object,
)
from src.charting.services.transcription.service import parse_structured_output


def _span_texts(text):
    return [text[start : end + 1] for start, end in find_balanced_spans(text)]


def test_nested_braces_form_one_span():
    text = 'a {"x": {"y": 1}} b {"z": 2}'
    assert _span_texts(text) == ['{"x": {"y": 1}}', '{"z": 2}']
    assert first_balanced_span(text) == '{"x": {"y": 1}}'


def test_stray_and_unterminated_braces():
    assert _span_texts("} {a}") == ["{a}"]
    assert find_balanced_spans("{ {a}") == []
    assert first_balanced_span("no braces at all") is None


def test_loads_object_rejects_non_objects():
    assert loads_object('{"a": 1}') == {"a": 1}
    with pytest.raises(ExtractionParseFailure):
        loads_object("[1, 2]")
    with pytest.raises(ExtractionParseFailure):
        loads_object("{not json}")


def test_parse_structured_output_strict_json():
    assert parse_structured_output('{"diagnosis": "Flu"}') == {"diagnosis": "Flu"}


def test_parse_structured_output_unwraps_code_fence():
    raw = 'Here you go:\n```json\n{"diagnosis": "Flu", "summary": "Short."}\n```'
    assert parse_structured_output(raw) == {"diagnosis": "Flu", "summary": "Short."}


def test_parse_structured_output_keeps_raw_text():
    assert parse_structured_output("  no json here ") == {"raw": "no json here"}
    assert parse_structured_output("{broken") == {"raw": "{broken"}
