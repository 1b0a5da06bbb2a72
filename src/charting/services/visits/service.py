from __future__ import annotations

import logging
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.charting.domain.errors import EditLocked, NoteAppendFailure, StoreError, VisitNotFound
from src.charting.domain.models.extraction import MergeResult, TranscriptionResult
from src.charting.domain.models.visit import (
    AuditEvent,
    NoteSection,
    NoteSource,
    SoapView,
    Visit,
    VisitNoteEntry,
    VisitNoteStatus,
)
from src.charting.domain.models.visit_form import VisitFormState
from src.charting.infra.db import inmemory as store_registry
from src.charting.infra.db.repositories import VisitNoteStore
from src.charting.services.audit.service import audit_service
from src.charting.services.extraction.merger import merge
from src.charting.services.visits.state_machine import VisitNoteStateMachine

logger = logging.getLogger("visits")


class TranscriptionMergeOutcome(BaseModel):
    merge_result: MergeResult
    draft: VisitFormState
    appended: List[VisitNoteEntry] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class VisitNoteService:
    """Visit note operations on top of a :class:`VisitNoteStore`.

    When no store is given, the process-wide store from
    ``infra.db.inmemory`` is looked up on every call so that a store swapped
    in at startup is picked up.
    """

    def __init__(self, store: Optional[VisitNoteStore] = None) -> None:
        self._store = store

    @property
    def store(self) -> VisitNoteStore:
        return self._store if self._store is not None else store_registry.note_store

    @property
    def state_machine(self) -> VisitNoteStateMachine:
        return VisitNoteStateMachine(self.store)

    # Visits

    def create_visit(self, *, patient_id: Optional[str] = None, clinician_id: Optional[str] = None) -> Visit:
        visit = self.store.create_visit(patient_id=patient_id, clinician_id=clinician_id)
        audit_service.log_event(
            action="create_visit",
            resource_type="visit",
            resource_id=str(visit.id),
            subject=clinician_id,
        )
        return visit

    def get_visit(self, visit_id: UUID) -> Visit:
        visit = self.store.get_visit(visit_id)
        if visit is None:
            raise VisitNotFound(visit_id)
        return visit

    # Entries

    def list_notes(self, visit_id: UUID) -> List[VisitNoteEntry]:
        self.get_visit(visit_id)
        return self.store.list_visit_notes(visit_id)

    def ensure_editable(self, visit: Visit) -> None:
        if not visit.is_editable:
            raise EditLocked(visit.id, visit.notes_finalized_by)

    def append_note(
        self,
        visit_id: UUID,
        content: str,
        section: NoteSection,
        source: NoteSource = NoteSource.MANUAL,
        *,
        author_id: Optional[str] = None,
    ) -> VisitNoteEntry:
        """Append one entry, refusing before touching the store if the note is signed."""

        visit = self.get_visit(visit_id)
        self.ensure_editable(visit)
        entry = self._append(visit_id, content, NoteSection(section), NoteSource(source), author_id)
        audit_service.log_event(
            action="append_note",
            resource_type="visit_note",
            resource_id=str(entry.id),
            subject=author_id,
            extra={"visit_id": str(visit_id), "section": entry.section.value, "source": entry.source.value},
        )
        return entry

    def _append(
        self,
        visit_id: UUID,
        content: str,
        section: NoteSection,
        source: NoteSource,
        author_id: Optional[str],
    ) -> VisitNoteEntry:
        try:
            return self.store.append_visit_note(visit_id, content, section, source, author_id)
        except StoreError as exc:
            raise NoteAppendFailure(section.value, str(exc)) from exc

    def soap_view(self, visit_id: UUID, *, latest_only: bool = False) -> SoapView:
        """Derive the SOAP display from the entry log.

        By default every entry of a section is shown, oldest first, separated
        by a blank line. With ``latest_only`` only the newest entry of each
        section is shown, which is how a superseding entry replaces an older
        one on screen.
        """

        by_section: Dict[NoteSection, List[str]] = {section: [] for section in NoteSection}
        for entry in self.list_notes(visit_id):
            by_section[entry.section].append(entry.content)

        def render(section: NoteSection) -> str:
            contents = by_section[section]
            if latest_only:
                return contents[-1] if contents else ""
            return "\n\n".join(contents)

        return SoapView(
            subjective=render(NoteSection.SUBJECTIVE),
            objective=render(NoteSection.OBJECTIVE),
            assessment=render(NoteSection.ASSESSMENT),
            plan=render(NoteSection.PLAN),
        )

    # Status

    def change_status(self, visit_id: UUID, status: VisitNoteStatus, *, actor: Optional[str] = None) -> Visit:
        return self.state_machine.transition(visit_id, status, actor=actor)

    def submit_for_review(self, visit_id: UUID, *, actor: Optional[str] = None) -> Visit:
        return self.state_machine.submit_for_review(visit_id, actor=actor)

    def sign(self, visit_id: UUID, *, actor: Optional[str] = None) -> Visit:
        return self.state_machine.sign(visit_id, actor=actor)

    def revert_to_draft(self, visit_id: UUID, *, actor: Optional[str] = None, confirm: bool = False) -> Visit:
        return self.state_machine.revert(visit_id, actor=actor, confirm=confirm)

    def get_audit_trail(self, visit_id: UUID) -> List[AuditEvent]:
        self.get_visit(visit_id)
        return self.store.get_visit_audit_trail(visit_id)

    # Dictation and drafts

    def apply_transcription(
        self,
        visit_id: UUID,
        result: TranscriptionResult,
        current_draft: Optional[VisitFormState] = None,
        *,
        author_id: Optional[str] = None,
    ) -> TranscriptionMergeOutcome:
        """Merge a transcription into the visit and persist the resulting entries.

        Entries are appended one at a time. A rejected append is logged and
        reported in ``warnings``; it does not stop the remaining appends. The
        returned draft is ``current_draft`` with the merge patch applied; the
        caller decides whether to keep it.

        Running this twice for the same transcription appends the entries
        twice. Entries are never deduplicated.
        """

        visit = self.get_visit(visit_id)
        self.ensure_editable(visit)

        draft = current_draft or VisitFormState()
        merged = merge(result.to_extraction(), draft)

        appended: List[VisitNoteEntry] = []
        warnings: List[str] = []
        for intent in merged.notes_to_append:
            try:
                appended.append(self._append(visit_id, intent.content, intent.section, intent.source, author_id))
            except NoteAppendFailure as exc:
                logger.warning("Dictation entry not saved for visit %s: %s", visit_id, exc)
                warnings.append(str(exc))

        audit_service.log_event(
            action="apply_transcription",
            resource_type="visit",
            resource_id=str(visit_id),
            subject=author_id,
            extra={
                "entries_appended": len(appended),
                "entries_failed": len(warnings),
                "vitals_found": 4 - len(merged.vitals.missing()),
                "vitals_complete": merged.vitals.is_complete(),
            },
        )

        return TranscriptionMergeOutcome(
            merge_result=merged,
            draft=draft.apply_patch(merged.draft_patch),
            appended=appended,
            warnings=warnings,
        )

    def save_draft(
        self,
        visit_id: UUID,
        form: VisitFormState,
        *,
        author_id: Optional[str] = None,
    ) -> List[VisitNoteEntry]:
        """Persist a manually edited form as new manual entries.

        Blank fields are skipped. Vitals and the physical exam are combined
        into a single objective entry. Unlike dictation merges, a failed
        append here is raised to the caller.
        """

        visit = self.get_visit(visit_id)
        self.ensure_editable(visit)

        objective_lines = [
            f"{label}: {value.strip()}"
            for label, value in (
                ("BP", form.objective.bp),
                ("HR", form.objective.hr),
                ("Temp", form.objective.temp),
                ("Weight", form.objective.weight),
            )
            if value and value.strip()
        ]
        if form.objective.physical_exam.strip():
            objective_lines.append(form.objective.physical_exam.strip())

        pending = [
            (NoteSection.SUBJECTIVE, form.subjective.chief_complaint),
            (NoteSection.SUBJECTIVE, form.subjective.hpi),
            (NoteSection.OBJECTIVE, "\n".join(objective_lines)),
            (NoteSection.ASSESSMENT, form.assessment_plan.assessment),
            (NoteSection.PLAN, form.assessment_plan.plan),
        ]

        saved: List[VisitNoteEntry] = []
        for section, content in pending:
            if content and content.strip():
                saved.append(self._append(visit_id, content, section, NoteSource.MANUAL, author_id))

        audit_service.log_event(
            action="save_draft",
            resource_type="visit",
            resource_id=str(visit_id),
            subject=author_id,
            extra={"entries_appended": len(saved)},
        )
        return saved


visit_note_service = VisitNoteService()
