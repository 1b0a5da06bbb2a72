from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.charting.domain.models.visit import (
    AuditEvent,
    NoteSection,
    NoteSource,
    Visit,
    VisitNoteEntry,
    VisitNoteStatus,
)


class Base(DeclarativeBase):
    pass


class VisitORM(Base):
    __tablename__ = "visits"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    patient_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    clinician_id: Mapped[str | None] = mapped_column(String, nullable=True)
    notes_status: Mapped[str] = mapped_column(String, nullable=False, default=VisitNoteStatus.DRAFT.value)
    notes_finalized_by: Mapped[str | None] = mapped_column(String, nullable=True)
    notes_finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @classmethod
    def from_domain(cls, visit: Visit) -> "VisitORM":
        return cls(
            id=visit.id,
            created_at=visit.created_at,
            patient_id=visit.patient_id,
            clinician_id=visit.clinician_id,
            notes_status=visit.notes_status.value,
            notes_finalized_by=visit.notes_finalized_by,
            notes_finalized_at=visit.notes_finalized_at,
        )

    def to_domain(self) -> Visit:
        return Visit(
            id=self.id,
            created_at=self.created_at,
            patient_id=self.patient_id,
            clinician_id=self.clinician_id,
            notes_status=VisitNoteStatus(self.notes_status),
            notes_finalized_by=self.notes_finalized_by,
            notes_finalized_at=self.notes_finalized_at,
        )


class VisitNoteEntryORM(Base):
    __tablename__ = "visit_notes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    visit_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("visits.id"), nullable=False, index=True)
    # Per-visit insertion counter; created_at alone can tie within one merge.
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    section: Mapped[str] = mapped_column(String, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(String, nullable=False)
    author_id: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, entry: VisitNoteEntry, position: int) -> "VisitNoteEntryORM":
        return cls(
            id=entry.id,
            visit_id=entry.visit_id,
            position=position,
            section=entry.section.value,
            content=entry.content,
            source=entry.source.value,
            author_id=entry.author_id,
            created_at=entry.created_at,
        )

    def to_domain(self) -> VisitNoteEntry:
        return VisitNoteEntry(
            id=self.id,
            visit_id=self.visit_id,
            section=NoteSection(self.section),
            content=self.content,
            source=NoteSource(self.source),
            author_id=self.author_id,
            created_at=self.created_at,
        )


class VisitAuditEventORM(Base):
    __tablename__ = "visit_audit_trail"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    visit_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("visits.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    from_status: Mapped[str] = mapped_column(String, nullable=False)
    to_status: Mapped[str] = mapped_column(String, nullable=False)
    actor: Mapped[str | None] = mapped_column(String, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_domain(cls, event: AuditEvent, position: int) -> "VisitAuditEventORM":
        return cls(
            id=event.id,
            visit_id=event.visit_id,
            position=position,
            action=event.action,
            from_status=event.from_status.value,
            to_status=event.to_status.value,
            actor=event.actor,
            timestamp=event.timestamp,
        )

    def to_domain(self) -> AuditEvent:
        return AuditEvent(
            id=self.id,
            visit_id=self.visit_id,
            action=self.action,
            from_status=VisitNoteStatus(self.from_status),
            to_status=VisitNoteStatus(self.to_status),
            actor=self.actor,
            timestamp=self.timestamp,
        )
