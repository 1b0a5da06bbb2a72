import time

import pytest

from src.charting.services.extraction.findings import (
    keys_are_all_vitals,
    looks_like_vitals_blob,
    sanitize_findings,
    strip_vitals_text,
)


@pytest.mark.parametrize(
    "findings",
    [
        {"vital_signs": {"blood_pressure": "120/80"}},
        {"blood_pressure": "120/80", "hr": "72", "Temp": "98.6", "weight": "180"},
        {"vitals": {"bp": "120/80", "heart_rate": 70}},
        {"general": '{"heart_rate": "80", "weight": "170"}'},
        {"general": "vital signs: {'bp': '120/80', 'temp': 98}"},
    ],
)
def test_vitals_only_findings_are_dropped(findings):
    assert sanitize_findings(findings) == []


def test_prose_is_kept_when_mixed_with_vitals():
    findings = sanitize_findings({"general": 'Alert and oriented. {"temperature": "98.9", "weight": "182"}'})
    assert [(f.key, f.text) for f in findings] == [("general", "Alert and oriented.")]


def test_nested_object_keeps_non_vital_keys():
    findings = sanitize_findings({"neuro": {"reflexes": "normal", "bp": "120/80"}})
    assert len(findings) == 1
    assert findings[0].text == '{\n  "reflexes": "normal"\n}'


def test_lists_and_scalars_are_rendered():
    findings = sanitize_findings({"skin": ["warm", "dry"], "edema": False, "pulses": 2})
    assert [(f.key, f.text) for f in findings] == [
        ("skin", "warm, dry"),
        ("edema", "false"),
        ("pulses", "2"),
    ]


def test_empty_values_are_skipped():
    assert sanitize_findings({"heent": "", "abdomen": None, "extremities": {}}) == []


def test_key_is_kept_and_label_is_readable():
    findings = sanitize_findings({"General_Appearance": "well", "heent": "normal"})
    assert [f.key for f in findings] == ["General_Appearance", "heent"]
    assert findings[0].label == "General Appearance"


def test_nested_keys_use_substring_vital_match():
    # "throat" contains "hr", so the whole object is treated as vitals.
    assert sanitize_findings({"ent": {"throat": "clear"}}) == []


def test_non_mapping_input():
    assert sanitize_findings(["heent: normal"]) == []
    assert sanitize_findings(None) == []


def test_helpers():
    assert keys_are_all_vitals(["Blood_Pressure", "hr"])
    assert not keys_are_all_vitals([])
    assert not keys_are_all_vitals(["vital_signs"])
    assert keys_are_all_vitals(["vital_signs"], include_vital_signs=True)
    assert looks_like_vitals_blob("{bp: 120/80, hr: 70}")
    assert not looks_like_vitals_blob("{a, b, c, d, e, f, weight}")
    assert strip_vitals_text('Lungs clear, "hr": "70"') == "Lungs clear"


@pytest.mark.parametrize(
    "value",
    [
        "{" + "hr temp " * 8000,
        "{" + "hr temp " * 8000 + "}",
        "vital signs: {" + "bp, " * 8000,
        "Lungs clear" + " " * 8000 + "x",
        "{" + '"bp": ' * 4000,
    ],
)
def test_oversized_input_is_handled_quickly(value):
    started = time.perf_counter()
    findings = sanitize_findings({"general": value})
    assert time.perf_counter() - started < 1.0
    assert all(f.key == "general" for f in findings)


def test_empty_object_left_after_vitals_removal_is_dropped():
    assert sanitize_findings({"a": '{"x": {"bp": 1}}'}) == []
    findings = sanitize_findings({"a": '{"x": {"bp": 1}, "y": "soft"}'})
    assert [f.text for f in findings] == ['{"y": "soft"}']
