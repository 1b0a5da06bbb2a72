from src.charting.domain.models.extraction import NoteIntent, StructuredExtraction, TranscriptionResult
from src.charting.domain.models.visit import NoteSection, NoteSource
from src.charting.domain.models.visit_form import VisitFormState
from src.charting.services.extraction.merger import format_prescription, merge


def test_diagnosis_list_is_joined():
    result = merge(StructuredExtraction(diagnosis=["A", "B"]), VisitFormState())

    assert result.draft_patch.assessment_plan.assessment == "A, B"
    assert result.notes_to_append == [
        NoteIntent(section=NoteSection.ASSESSMENT, content="Diagnosis: A, B", source=NoteSource.DICTATION)
    ]


def test_existing_chief_complaint_is_not_overwritten():
    draft = VisitFormState.model_validate({"subjective": {"chiefComplaint": "existing text"}})
    extraction = StructuredExtraction(current_symptoms=[{"symptom": "cough"}, {"symptom": "fever"}])

    result = merge(extraction, draft)

    assert result.draft_patch.subjective.chief_complaint is None
    assert draft.apply_patch(result.draft_patch).subjective.chief_complaint == "existing text"
    assert [n.content for n in result.notes_to_append] == ["Chief Complaint: cough, fever"]


def test_whitespace_only_field_counts_as_blank():
    draft = VisitFormState.model_validate({"subjective": {"chiefComplaint": "   "}})
    result = merge(StructuredExtraction(current_symptoms=[{"symptom": "cough"}]), draft)
    assert result.draft_patch.subjective.chief_complaint == "cough"


def test_vitals_and_exam_from_findings():
    extraction = StructuredExtraction(
        physical_exam_findings={"vital_signs": {"blood_pressure": "140/90"}, "heent": "normal"}
    )

    result = merge(extraction, VisitFormState())

    assert result.draft_patch.objective.bp == "140/90"
    assert result.draft_patch.objective.physical_exam == "heent: normal"
    assert [(n.section, n.content) for n in result.notes_to_append] == [
        (NoteSection.OBJECTIVE, "Vital Signs:\nBlood Pressure: 140/90"),
        (NoteSection.OBJECTIVE, "Physical Examination: heent: normal"),
    ]
    assert "normal" not in result.vitals.model_dump().values()
    assert [f.key for f in result.findings] == ["heent"]


def test_vitals_embedded_in_prose_are_not_repeated_as_findings():
    extraction = StructuredExtraction(
        physical_exam_findings={
            "vital_signs": {"bp": "150 over 95"},
            "general": 'Alert. {"heart_rate": "88", "temperature": "98.9"}',
        }
    )

    result = merge(extraction)

    contents = [n.content for n in result.notes_to_append]
    assert contents == [
        "Vital Signs:\nBlood Pressure: 150/95\nHeart Rate: 88 bpm\nTemperature: 98.9°F",
        "Physical Examination: general: Alert.",
    ]
    assert result.draft_patch.objective.hr == "88"
    assert result.draft_patch.objective.weight is None


def test_existing_vitals_are_kept_in_draft_but_still_noted():
    draft = VisitFormState.model_validate({"objective": {"bp": "118/70"}})
    extraction = StructuredExtraction(physical_exam_findings={"vital_signs": {"blood_pressure": "140/90"}})

    result = merge(extraction, draft)

    assert result.draft_patch.objective.bp is None
    assert result.notes_to_append[0].content == "Vital Signs:\nBlood Pressure: 140/90"


def test_transcript_and_summary_come_first():
    extraction = TranscriptionResult(
        transcript="Patient reports cough.",
        summary="Likely viral.",
        structured=StructuredExtraction(treatment_plan=["Rest", "Fluids"], past_medical_history=["Asthma"]),
    ).to_extraction()

    result = merge(extraction)

    assert [(n.section, n.content) for n in result.notes_to_append] == [
        (NoteSection.SUBJECTIVE, "Patient reports cough."),
        (NoteSection.ASSESSMENT, "Likely viral."),
        (NoteSection.SUBJECTIVE, "Past Medical History: Asthma"),
        (NoteSection.PLAN, "Treatment Plan: Rest\nFluids"),
    ]
    assert result.draft_patch.subjective.hpi == "Asthma"
    assert result.draft_patch.assessment_plan.plan == "Rest\nFluids"
    assert all(n.source == NoteSource.DICTATION for n in result.notes_to_append)


def test_malformed_fields_do_not_stop_the_merge():
    extraction = StructuredExtraction.model_validate(
        {
            "diagnosis": 42,
            "treatment_plan": "not a list",
            "physical_exam_findings": "garbled",
            "current_symptoms": [{"symptom": "undefined"}, "fever"],
            "prescriptions": ["x", {"medication": "Amoxicillin", "dosage": "500 mg"}],
            "unexpected": {"kept": True},
        }
    )

    result = merge(extraction)

    assert [n.content for n in result.notes_to_append] == ["Prescriptions: Amoxicillin, Dosage: 500 mg"]
    assert result.draft_patch.is_empty()


def test_draft_is_not_modified():
    draft = VisitFormState()
    merge(StructuredExtraction(diagnosis="Migraine"), draft)
    assert draft.assessment_plan.assessment == ""


def test_format_prescription():
    prescription = {"medication": "Ibuprofen", "dosage": "400 mg", "frequency": "every 6 hours", "duration": ""}
    assert format_prescription(prescription) == "Ibuprofen, Dosage: 400 mg, Frequency: every 6 hours"
