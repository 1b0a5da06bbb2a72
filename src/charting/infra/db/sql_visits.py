from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from src.charting.domain.errors import StoreError
from src.charting.domain.models.visit import (
    AuditEvent,
    NoteSection,
    NoteSource,
    Visit,
    VisitNoteEntry,
    VisitNoteStatus,
)
from src.charting.infra.db.models import VisitAuditEventORM, VisitNoteEntryORM, VisitORM
from src.charting.infra.db.repositories import VisitNoteStore
from src.charting.infra.db.session import SessionFactory


class SqlVisitNoteStore(VisitNoteStore):
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def create_visit(self, *, patient_id: Optional[str] = None, clinician_id: Optional[str] = None) -> Visit:
        visit = Visit(
            id=uuid4(),
            created_at=datetime.now(timezone.utc),
            patient_id=patient_id,
            clinician_id=clinician_id,
            notes_status=VisitNoteStatus.DRAFT,
        )
        session = self._session_factory()
        try:
            session.add(VisitORM.from_domain(visit))
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError(f"Could not create visit: {exc}") from exc
        finally:
            session.close()
        return visit

    def get_visit(self, visit_id: UUID) -> Optional[Visit]:
        session = self._session_factory()
        try:
            orm = session.get(VisitORM, visit_id)
            return orm.to_domain() if orm is not None else None
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not load visit {visit_id}: {exc}") from exc
        finally:
            session.close()

    def append_visit_note(
        self,
        visit_id: UUID,
        content: str,
        section: NoteSection,
        source: NoteSource = NoteSource.MANUAL,
        author_id: Optional[str] = None,
    ) -> VisitNoteEntry:
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
        session = self._session_factory()
        try:
            if session.get(VisitORM, visit_id) is None:
                raise StoreError(f"Visit {visit_id} does not exist")
            position = session.scalar(
                select(func.count()).select_from(VisitNoteEntryORM).where(VisitNoteEntryORM.visit_id == visit_id)
            )
            session.add(VisitNoteEntryORM.from_domain(entry, position or 0))
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError(f"Could not append note to visit {visit_id}: {exc}") from exc
        finally:
            session.close()
        return entry

    def list_visit_notes(self, visit_id: UUID) -> List[VisitNoteEntry]:
        session = self._session_factory()
        try:
            rows = session.scalars(
                select(VisitNoteEntryORM)
                .where(VisitNoteEntryORM.visit_id == visit_id)
                .order_by(VisitNoteEntryORM.position)
            )
            return [row.to_domain() for row in rows]
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not list notes for visit {visit_id}: {exc}") from exc
        finally:
            session.close()

    def update_visit_note_status(
        self,
        visit_id: UUID,
        new_status: VisitNoteStatus,
        *,
        finalized_by: Optional[str] = None,
        finalized_at: Optional[datetime] = None,
    ) -> Visit:
        session = self._session_factory()
        try:
            orm = session.get(VisitORM, visit_id)
            if orm is None:
                raise StoreError(f"Visit {visit_id} does not exist")
            orm.notes_status = VisitNoteStatus(new_status).value
            orm.notes_finalized_by = finalized_by
            orm.notes_finalized_at = finalized_at
            session.commit()
            return orm.to_domain()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError(f"Could not update note status for visit {visit_id}: {exc}") from exc
        finally:
            session.close()

    def append_audit_event(self, event: AuditEvent) -> None:
        session = self._session_factory()
        try:
            position = session.scalar(
                select(func.count())
                .select_from(VisitAuditEventORM)
                .where(VisitAuditEventORM.visit_id == event.visit_id)
            )
            session.add(VisitAuditEventORM.from_domain(event, position or 0))
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError(f"Could not record audit event for visit {event.visit_id}: {exc}") from exc
        finally:
            session.close()

    def get_visit_audit_trail(self, visit_id: UUID) -> List[AuditEvent]:
        session = self._session_factory()
        try:
            rows = session.scalars(
                select(VisitAuditEventORM)
                .where(VisitAuditEventORM.visit_id == visit_id)
                .order_by(VisitAuditEventORM.position)
            )
            return [row.to_domain() for row in rows]
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not load audit trail for visit {visit_id}: {exc}") from exc
        finally:
            session.close()
