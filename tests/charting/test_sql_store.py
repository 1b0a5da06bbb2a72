from datetime import datetime, timezone
from uuid import UUID

import pytest

from src.charting.config import settings
from src.charting.domain.errors import StoreError
from src.charting.domain.models.visit import NoteSection, NoteSource, VisitNoteStatus
from src.charting.infra.db import inmemory as store_registry
from src.charting.infra.db.bootstrap import init_sql_repositories
from src.charting.infra.db.session import create_sqlalchemy_session_factory
from src.charting.infra.db.sql_visits import SqlVisitNoteStore
from src.charting.services.visits.service import VisitNoteService


@pytest.fixture
def sql_store(tmp_path):
    return SqlVisitNoteStore(create_sqlalchemy_session_factory(f"sqlite:///{tmp_path / 'notes.db'}"))


def test_entries_round_trip_in_order(sql_store):
    visit = sql_store.create_visit(patient_id="pat-1", clinician_id="dr-a")

    sql_store.append_visit_note(visit.id, "  Cough  ", NoteSection.SUBJECTIVE, NoteSource.MANUAL, "dr-a")
    sql_store.append_visit_note(visit.id, "Lungs clear", NoteSection.OBJECTIVE, NoteSource.DICTATION)

    entries = sql_store.list_visit_notes(visit.id)
    assert [(e.section, e.content, e.source) for e in entries] == [
        (NoteSection.SUBJECTIVE, "Cough", NoteSource.MANUAL),
        (NoteSection.OBJECTIVE, "Lungs clear", NoteSource.DICTATION),
    ]
    assert entries[0].author_id == "dr-a"


def test_rejects_empty_content_and_unknown_visit(sql_store):
    visit = sql_store.create_visit()
    with pytest.raises(StoreError):
        sql_store.append_visit_note(visit.id, "   ", NoteSection.PLAN)
    with pytest.raises(StoreError):
        sql_store.append_visit_note(UUID(int=1), "Orphan", NoteSection.PLAN)
    with pytest.raises(StoreError):
        sql_store.update_visit_note_status(UUID(int=1), VisitNoteStatus.SIGNED)
    assert sql_store.get_visit(UUID(int=1)) is None


def test_status_and_audit_trail_through_service(sql_store):
    service = VisitNoteService(sql_store)
    visit = service.create_visit(clinician_id="dr-a")

    service.sign(visit.id, actor="dr-a")
    service.revert_to_draft(visit.id, actor="dr-a", confirm=True)

    stored = sql_store.get_visit(visit.id)
    assert stored.notes_status == VisitNoteStatus.DRAFT
    assert stored.notes_finalized_by is None
    trail = sql_store.get_visit_audit_trail(visit.id)
    assert [(e.from_status, e.to_status) for e in trail] == [
        (VisitNoteStatus.DRAFT, VisitNoteStatus.SIGNED),
        (VisitNoteStatus.SIGNED, VisitNoteStatus.DRAFT),
    ]


def test_signed_timestamp_is_persisted(sql_store):
    visit = sql_store.create_visit()
    signed_at = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)

    updated = sql_store.update_visit_note_status(
        visit.id, VisitNoteStatus.SIGNED, finalized_by="dr-a", finalized_at=signed_at
    )

    assert updated.notes_finalized_by == "dr-a"
    assert sql_store.get_visit(visit.id).notes_finalized_at.replace(tzinfo=timezone.utc) == signed_at


def test_init_sql_repositories_swaps_store(tmp_path, monkeypatch):
    previous = store_registry.note_store
    monkeypatch.setattr(settings, "use_sql_repos", False)
    assert init_sql_repositories() is False
    assert store_registry.note_store is previous

    try:
        assert init_sql_repositories(f"sqlite:///{tmp_path / 'boot.db'}") is True
        assert isinstance(store_registry.note_store, SqlVisitNoteStore)
    finally:
        store_registry.note_store = previous


def test_init_sql_repositories_without_url(monkeypatch):
    previous = store_registry.note_store
    monkeypatch.setattr(settings, "use_sql_repos", True)
    monkeypatch.setattr(settings, "database_url", None)

    assert init_sql_repositories() is False
    assert store_registry.note_store is previous
