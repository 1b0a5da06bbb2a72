from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

from src.charting.domain.models.extraction import MergeResult, NoteIntent, StructuredExtraction, VitalsBundle
from src.charting.domain.models.visit import NoteSection, NoteSource
from src.charting.domain.models.visit_form import VisitFormPatch, VisitFormState
from src.charting.services.extraction.findings import sanitize_findings
from src.charting.services.extraction.json_spans import to_json_text
from src.charting.services.extraction.vitals import extract_vitals

# (bundle field, note label, unit suffix, objective form field)
VITAL_NOTE_LINES = (
    ("blood_pressure", "Blood Pressure", "", "bp"),
    ("heart_rate", "Heart Rate", " bpm", "hr"),
    ("temperature", "Temperature", "°F", "temp"),
    ("weight", "Weight", " lbs", "weight"),
)


def _is_blank(value: Optional[str]) -> bool:
    return not value or not value.strip()


def _text_items(items: Iterable[Any]) -> List[str]:
    texts: List[str] = []
    for item in items:
        if isinstance(item, bool) or item is None:
            continue
        if isinstance(item, (str, int, float)):
            text = str(item).strip()
            if text:
                texts.append(text)
    return texts


def _symptom_names(symptoms: Iterable[Any]) -> List[str]:
    names: List[str] = []
    for entry in symptoms:
        if not isinstance(entry, Mapping):
            continue
        name = entry.get("symptom")
        if isinstance(name, str) and name.strip() and name.strip() != "undefined":
            names.append(name.strip())
    return names


def _diagnosis_text(diagnosis: Any) -> str:
    if isinstance(diagnosis, list):
        return ", ".join(_text_items(diagnosis))
    if isinstance(diagnosis, str):
        return diagnosis.strip()
    return ""


def format_prescription(prescription: Mapping) -> str:
    parts: List[str] = []
    medication = prescription.get("medication")
    if medication:
        parts.append(str(medication).strip())
    for key, label in (("dosage", "Dosage"), ("frequency", "Frequency"), ("duration", "Duration")):
        value = prescription.get(key)
        if value:
            parts.append(f"{label}: {str(value).strip()}")
    return ", ".join(parts)


def format_vitals(vitals: VitalsBundle) -> str:
    lines = []
    for field, label, unit, _ in VITAL_NOTE_LINES:
        value = getattr(vitals, field)
        if value is not None:
            lines.append(f"{label}: {value}{unit}")
    return "\n".join(lines)


def flatten_findings_text(findings: Mapping) -> str:
    """Render findings values as one objective-section text blob."""

    lines = []
    for value in findings.values():
        if isinstance(value, str):
            lines.append(value)
        elif value is not None:
            lines.append(to_json_text(value))
    return "\n".join(lines)


def merge(extraction: StructuredExtraction, current_draft: Optional[VisitFormState] = None) -> MergeResult:
    """Reconcile a dictation extraction with the visit form being edited.

    Returns the note entries to append and a patch for the form. The draft
    is never modified; a patch only ever fills fields that are currently
    blank. Each field of the extraction is handled independently, so a
    malformed field does not stop the others from merging.
    """

    draft = current_draft or VisitFormState()
    patch = VisitFormPatch()
    notes: List[NoteIntent] = []
    vitals = VitalsBundle()
    findings = []

    def append(section: NoteSection, content: str) -> None:
        notes.append(NoteIntent(section=section, content=content, source=NoteSource.DICTATION))

    if extraction.transcript and extraction.transcript.strip():
        append(NoteSection.SUBJECTIVE, extraction.transcript.strip())

    if extraction.summary and extraction.summary.strip():
        append(NoteSection.ASSESSMENT, extraction.summary.strip())

    symptoms_text = ", ".join(_symptom_names(extraction.current_symptoms))
    if symptoms_text:
        if _is_blank(draft.subjective.chief_complaint):
            patch.subjective.chief_complaint = symptoms_text
        append(NoteSection.SUBJECTIVE, f"Chief Complaint: {symptoms_text}")

    exam = extraction.physical_exam_findings
    if exam:
        vitals = extract_vitals(exam, flatten_findings_text(exam))
        findings = sanitize_findings(exam)

        for field, _, _, form_field in VITAL_NOTE_LINES:
            value = getattr(vitals, field)
            if value is not None and _is_blank(getattr(draft.objective, form_field)):
                setattr(patch.objective, form_field, value)

        vitals_text = format_vitals(vitals)
        if vitals_text:
            append(NoteSection.OBJECTIVE, f"Vital Signs:\n{vitals_text}")

        exam_text = "\n".join(f"{finding.label}: {finding.text}" for finding in findings)
        if exam_text:
            if _is_blank(draft.objective.physical_exam):
                patch.objective.physical_exam = exam_text
            append(NoteSection.OBJECTIVE, f"Physical Examination: {exam_text}")

    history_text = "\n".join(_text_items(extraction.past_medical_history))
    if history_text:
        if _is_blank(draft.subjective.hpi):
            patch.subjective.hpi = history_text
        append(NoteSection.SUBJECTIVE, f"Past Medical History: {history_text}")

    diagnosis_text = _diagnosis_text(extraction.diagnosis)
    if diagnosis_text:
        if _is_blank(draft.assessment_plan.assessment):
            patch.assessment_plan.assessment = diagnosis_text
        append(NoteSection.ASSESSMENT, f"Diagnosis: {diagnosis_text}")

    plan_text = "\n".join(_text_items(extraction.treatment_plan))
    if plan_text:
        if _is_blank(draft.assessment_plan.plan):
            patch.assessment_plan.plan = plan_text
        append(NoteSection.PLAN, f"Treatment Plan: {plan_text}")

    prescriptions_text = "\n".join(
        line for line in (format_prescription(p) for p in extraction.prescriptions) if line
    )
    if prescriptions_text:
        append(NoteSection.PLAN, f"Prescriptions: {prescriptions_text}")

    return MergeResult(notes_to_append=notes, draft_patch=patch, vitals=vitals, findings=findings)
