from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from src.charting.domain.models.visit import (
    AuditEvent,
    NoteSection,
    NoteSource,
    Visit,
    VisitNoteEntry,
    VisitNoteStatus,
)


class VisitNoteStore(ABC):
    """CRUD surface over visits, their note entries and their audit trail.

    Entries and audit events are append-only: there is no way to
    update or delete them through this interface. Implementations raise
    :class:`~src.charting.domain.errors.StoreError` when the backend rejects
    an operation.
    """

    @abstractmethod
    def create_visit(self, *, patient_id: Optional[str] = None, clinician_id: Optional[str] = None) -> Visit:
        raise NotImplementedError

    @abstractmethod
    def get_visit(self, visit_id: UUID) -> Optional[Visit]:
        raise NotImplementedError

    @abstractmethod
    def append_visit_note(
        self,
        visit_id: UUID,
        content: str,
        section: NoteSection,
        source: NoteSource = NoteSource.MANUAL,
        author_id: Optional[str] = None,
    ) -> VisitNoteEntry:
        raise NotImplementedError

    @abstractmethod
    def list_visit_notes(self, visit_id: UUID) -> List[VisitNoteEntry]:
        """Return entries oldest first."""
        raise NotImplementedError

    @abstractmethod
    def update_visit_note_status(
        self,
        visit_id: UUID,
        new_status: VisitNoteStatus,
        *,
        finalized_by: Optional[str] = None,
        finalized_at: Optional[datetime] = None,
    ) -> Visit:
        raise NotImplementedError

    @abstractmethod
    def append_audit_event(self, event: AuditEvent) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_visit_audit_trail(self, visit_id: UUID) -> List[AuditEvent]:
        """Return audit events oldest first."""
        raise NotImplementedError
