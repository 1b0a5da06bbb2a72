from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from src.charting.domain.errors import StoreError
from src.charting.domain.models.visit import (
    AuditEvent,
    NoteSection,
    NoteSource,
    Visit,
    VisitNoteEntry,
    VisitNoteStatus,
)
from src.charting.infra.db.repositories import VisitNoteStore


class InMemoryVisitNoteStore(VisitNoteStore):
    """Dictionary-backed note store.

    This is the default for tests and local development. Entries and audit
    events are kept in per-visit lists, which preserves insertion order.
    """

    def __init__(self) -> None:
        self._visits: Dict[UUID, Visit] = {}
        self._entries: Dict[UUID, List[VisitNoteEntry]] = {}
        self._audit: Dict[UUID, List[AuditEvent]] = {}

    def create_visit(self, *, patient_id: Optional[str] = None, clinician_id: Optional[str] = None) -> Visit:
        visit = Visit(
            id=uuid4(),
            created_at=datetime.now(timezone.utc),
            patient_id=patient_id,
            clinician_id=clinician_id,
            notes_status=VisitNoteStatus.DRAFT,
        )
        self._visits[visit.id] = visit
        self._entries[visit.id] = []
        self._audit[visit.id] = []
        return visit

    def get_visit(self, visit_id: UUID) -> Optional[Visit]:
        visit = self._visits.get(visit_id)
        # Hand out copies so callers cannot mutate stored state in place.
        return visit.model_copy() if visit is not None else None

    def _require(self, visit_id: UUID) -> Visit:
        visit = self._visits.get(visit_id)
        if visit is None:
            raise StoreError(f"Visit {visit_id} does not exist")
        return visit

    def append_visit_note(
        self,
        visit_id: UUID,
        content: str,
        section: NoteSection,
        source: NoteSource = NoteSource.MANUAL,
        author_id: Optional[str] = None,
    ) -> VisitNoteEntry:
        self._require(visit_id)
        text = (content or "").strip()
        if not text:
            raise StoreError("Missing or invalid content")
        entry = VisitNoteEntry(
            id=uuid4(),
            visit_id=visit_id,
            section=NoteSection(section),
            content=text,
            source=NoteSource(source),
            author_id=author_id,
            created_at=datetime.now(timezone.utc),
        )
        self._entries[visit_id].append(entry)
        return entry

    def list_visit_notes(self, visit_id: UUID) -> List[VisitNoteEntry]:
        return list(self._entries.get(visit_id, []))

    def update_visit_note_status(
        self,
        visit_id: UUID,
        new_status: VisitNoteStatus,
        *,
        finalized_by: Optional[str] = None,
        finalized_at: Optional[datetime] = None,
    ) -> Visit:
        visit = self._require(visit_id)
        updated = visit.model_copy(
            update={
                "notes_status": VisitNoteStatus(new_status),
                "notes_finalized_by": finalized_by,
                "notes_finalized_at": finalized_at,
            }
        )
        self._visits[visit_id] = updated
        return updated.model_copy()

    def append_audit_event(self, event: AuditEvent) -> None:
        self._require(event.visit_id)
        self._audit[event.visit_id].append(event)

    def get_visit_audit_trail(self, visit_id: UUID) -> List[AuditEvent]:
        return list(self._audit.get(visit_id, []))


# Process-wide default store. ``init_sql_repositories`` may replace it at
# startup, so look it up through this module rather than importing the name.
note_store: VisitNoteStore = InMemoryVisitNoteStore()
