import pytest

from src.charting.domain.errors import EditLocked, NoteAppendFailure, StoreError
from src.charting.domain.models.extraction import StructuredExtraction, TranscriptionResult
from src.charting.domain.models.visit import NoteSection, NoteSource
from src.charting.domain.models.visit_form import VisitFormState
from src.charting.infra.db.inmemory import InMemoryVisitNoteStore
from src.charting.services.visits.service import VisitNoteService



class RejectingDiagnosisStore(InMemoryVisitNoteStore):
    def append_visit_note(self, visit_id, content, section, source=NoteSource.MANUAL, author_id=None):
        if content.startswith("Diagnosis:"):
            raise StoreError("payload rejected")
        return super().append_visit_note(visit_id, content, section, source, author_id)


class RejectingStore(InMemoryVisitNoteStore):
    def append_visit_note(self, visit_id, content, section, source=NoteSource.MANUAL, author_id=None):
        raise StoreError("backend unavailable")


def _result():
    return TranscriptionResult(
        transcript="Patient reports headache.",
        structured=StructuredExtraction(
            physical_exam_findings={"vital_signs": {"blood_pressure": "140/90"}, "heent": "normal"},
            diagnosis=["Migraine"],
            treatment_plan=["Rest"],
        ),
    )


def test_apply_transcription_persists_entries_and_patches_draft():
    service = VisitNoteService(InMemoryVisitNoteStore())
    visit = service.create_visit(clinician_id="dr-a")

    outcome = service.apply_transcription(visit.id, _result(), author_id="dr-a")

    assert outcome.warnings == []
    assert [(e.section, e.content) for e in service.list_notes(visit.id)] == [
        (NoteSection.SUBJECTIVE, "Patient reports headache."),
        (NoteSection.OBJECTIVE, "Vital Signs:\nBlood Pressure: 140/90"),
        (NoteSection.OBJECTIVE, "Physical Examination: heent: normal"),
        (NoteSection.ASSESSMENT, "Diagnosis: Migraine"),
        (NoteSection.PLAN, "Treatment Plan: Rest"),
    ]
    assert all(e.source == NoteSource.DICTATION and e.author_id == "dr-a" for e in outcome.appended)
    assert outcome.draft.objective.bp == "140/90"
    assert outcome.draft.assessment_plan.assessment == "Migraine"


def test_failed_append_does_not_stop_siblings():
    service = VisitNoteService(RejectingDiagnosisStore())
    visit = service.create_visit()

    outcome = service.apply_transcription(visit.id, _result())

    assert len(outcome.warnings) == 1
    assert "assessment" in outcome.warnings[0]
    assert len(outcome.appended) == 4
    assert len(service.list_notes(visit.id)) == 4
    assert outcome.draft.assessment_plan.assessment == "Migraine"


def test_apply_transcription_on_signed_note_is_locked():
    service = VisitNoteService(InMemoryVisitNoteStore())
    visit = service.create_visit()
    service.sign(visit.id)

    with pytest.raises(EditLocked):
        service.apply_transcription(visit.id, _result())
    assert service.list_notes(visit.id) == []


def test_repeated_merge_appends_again():
    service = VisitNoteService(InMemoryVisitNoteStore())
    visit = service.create_visit()

    service.apply_transcription(visit.id, _result())
    service.apply_transcription(visit.id, _result())

    assert len(service.list_notes(visit.id)) == 10


def test_save_draft_combines_objective_fields():
    service = VisitNoteService(InMemoryVisitNoteStore())
    visit = service.create_visit()
    form = VisitFormState.model_validate(
        {
            "subjective": {"chiefComplaint": "Cough", "hpi": ""},
            "objective": {"bp": "120/80", "hr": "72", "physicalExam": "Lungs clear"},
            "assessmentPlan": {"assessment": "  ", "plan": "Fluids"},
        }
    )

    saved = service.save_draft(visit.id, form, author_id="dr-a")

    assert [(e.section, e.content, e.source) for e in saved] == [
        (NoteSection.SUBJECTIVE, "Cough", NoteSource.MANUAL),
        (NoteSection.OBJECTIVE, "BP: 120/80\nHR: 72\nLungs clear", NoteSource.MANUAL),
        (NoteSection.PLAN, "Fluids", NoteSource.MANUAL),
    ]


def test_save_draft_raises_on_store_failure():
    service = VisitNoteService(RejectingStore())
    visit = service.create_visit()
    form = VisitFormState.model_validate({"subjective": {"chiefComplaint": "Cough"}})

    with pytest.raises(NoteAppendFailure):
        service.save_draft(visit.id, form)


def test_empty_content_is_rejected():
    service = VisitNoteService(InMemoryVisitNoteStore())
    visit = service.create_visit()

    with pytest.raises(NoteAppendFailure):
        service.append_note(visit.id, "   ", NoteSection.PLAN)


def test_soap_view():
    service = VisitNoteService(InMemoryVisitNoteStore())
    visit = service.create_visit()
    service.append_note(visit.id, "  Cough  ", NoteSection.SUBJECTIVE)
    service.append_note(visit.id, "Cough and fever", NoteSection.SUBJECTIVE)
    service.append_note(visit.id, "Rest", NoteSection.PLAN)

    view = service.soap_view(visit.id)
    assert view.subjective == "Cough\n\nCough and fever"
    assert view.objective == ""
    assert view.plan == "Rest"

    latest = service.soap_view(visit.id, latest_only=True)
    assert latest.subjective == "Cough and fever"
