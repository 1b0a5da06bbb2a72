from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class VisitNoteStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    SIGNED = "signed"


class NoteSection(str, Enum):
    SUBJECTIVE = "subjective"
    OBJECTIVE = "objective"
    ASSESSMENT = "assessment"
    PLAN = "plan"


class NoteSource(str, Enum):
    MANUAL = "manual"
    DICTATION = "dictation"


class Visit(BaseModel):
    """A single clinical encounter and the signing state of its note.

    Entries and audit events are stored alongside the visit but are not
    embedded here; they are append-only collections read through the note
    store.
    """

    id: UUID
    created_at: datetime
    patient_id: Optional[str] = None
    clinician_id: Optional[str] = None
    notes_status: VisitNoteStatus = VisitNoteStatus.DRAFT
    notes_finalized_by: Optional[str] = None
    notes_finalized_at: Optional[datetime] = None

    @property
    def is_editable(self) -> bool:
        return self.notes_status != VisitNoteStatus.SIGNED


class VisitNoteEntry(BaseModel):
    """One appended piece of SOAP documentation. Never edited after creation."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    visit_id: UUID
    section: NoteSection
    content: str
    source: NoteSource = NoteSource.MANUAL
    author_id: Optional[str] = None
    created_at: datetime


class AuditEvent(BaseModel):
    """Status transition recorded on a visit's append-only audit trail."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    visit_id: UUID
    action: str
    from_status: VisitNoteStatus
    to_status: VisitNoteStatus
    actor: Optional[str] = None
    timestamp: datetime


class SoapView(BaseModel):
    subjective: str = ""
    objective: str = ""
    assessment: str = ""
    plan: str = ""
