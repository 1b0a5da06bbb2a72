from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from src.charting.actors import actor_dependency
from src.charting.domain.errors import (
    ChartingError,
    EditLocked,
    IllegalTransition,
    NoteAppendFailure,
    RevertConfirmationRequired,
    StatusTransitionFailure,
    VisitNotFound,
)
from src.charting.domain.models.extraction import TranscriptionResult
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
from src.charting.services.transcription.service import transcription_service
from src.charting.services.visits.service import TranscriptionMergeOutcome, visit_note_service

router = APIRouter(
    prefix="/visits",
    tags=["visits"],
    dependencies=[Depends(actor_dependency)],
)


class VisitCreateRequest(BaseModel):
    patient_id: Optional[str] = None
    clinician_id: Optional[str] = None


class NoteAppendRequest(BaseModel):
    section: NoteSection
    content: str = Field(min_length=1)
    source: NoteSource = NoteSource.MANUAL


class NoteStatusUpdateRequest(BaseModel):
    status: VisitNoteStatus


class RevertRequest(BaseModel):
    confirm: bool = False


class MergeRequest(BaseModel):
    result: TranscriptionResult
    draft: Optional[VisitFormState] = None


class TranscribeRequest(BaseModel):
    audio_path: str
    language_code: Optional[str] = None
    draft: Optional[VisitFormState] = None


class VisitNotesResponse(BaseModel):
    visit_id: UUID
    status: VisitNoteStatus
    finalized_by: Optional[str] = None
    entries: List[VisitNoteEntry]


def _http_error(exc: ChartingError) -> HTTPException:
    if isinstance(exc, VisitNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Visit not found")
    if isinstance(exc, EditLocked):
        return HTTPException(status_code=status.HTTP_423_LOCKED, detail=str(exc))
    if isinstance(exc, RevertConfirmationRequired):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{exc}. Use POST /visits/{{id}}/note/revert with confirm=true.",
        )
    if isinstance(exc, IllegalTransition):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, (NoteAppendFailure, StatusTransitionFailure)):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"{exc}. Please try again.")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("/", response_model=Visit, status_code=status.HTTP_201_CREATED)
async def create_visit(
    payload: VisitCreateRequest,
    actor: Optional[str] = Depends(actor_dependency),
) -> Visit:
    return visit_note_service.create_visit(
        patient_id=payload.patient_id,
        clinician_id=payload.clinician_id or actor,
    )


@router.get("/{visit_id}", response_model=Visit)
async def get_visit(visit_id: UUID) -> Visit:
    try:
        return visit_note_service.get_visit(visit_id)
    except ChartingError as exc:
        raise _http_error(exc) from exc


@router.get("/{visit_id}/note", response_model=VisitNotesResponse)
async def get_visit_note(visit_id: UUID) -> VisitNotesResponse:
    try:
        visit = visit_note_service.get_visit(visit_id)
        entries = visit_note_service.list_notes(visit_id)
    except ChartingError as exc:
        raise _http_error(exc) from exc

    return VisitNotesResponse(
        visit_id=visit.id,
        status=visit.notes_status,
        finalized_by=visit.notes_finalized_by,
        entries=entries,
    )


@router.post("/{visit_id}/note", response_model=VisitNoteEntry, status_code=status.HTTP_201_CREATED)
async def append_visit_note(
    visit_id: UUID,
    payload: NoteAppendRequest,
    actor: Optional[str] = Depends(actor_dependency),
) -> VisitNoteEntry:
    try:
        return visit_note_service.append_note(
            visit_id,
            payload.content,
            payload.section,
            payload.source,
            author_id=actor,
        )
    except ChartingError as exc:
        raise _http_error(exc) from exc


@router.put("/{visit_id}/note", response_model=Visit)
async def update_visit_note_status(
    visit_id: UUID,
    payload: NoteStatusUpdateRequest,
    actor: Optional[str] = Depends(actor_dependency),
) -> Visit:
    try:
        return visit_note_service.change_status(visit_id, payload.status, actor=actor)
    except ChartingError as exc:
        raise _http_error(exc) from exc


@router.post("/{visit_id}/note/revert", response_model=Visit)
async def revert_visit_note(
    visit_id: UUID,
    payload: RevertRequest,
    actor: Optional[str] = Depends(actor_dependency),
) -> Visit:
    """Return a signed note to draft. The body must carry ``confirm: true``."""

    try:
        return visit_note_service.revert_to_draft(visit_id, actor=actor, confirm=payload.confirm)
    except ChartingError as exc:
        raise _http_error(exc) from exc


@router.get("/{visit_id}/note/soap", response_model=SoapView)
async def get_soap_view(visit_id: UUID, latest_only: bool = False) -> SoapView:
    try:
        return visit_note_service.soap_view(visit_id, latest_only=latest_only)
    except ChartingError as exc:
        raise _http_error(exc) from exc


@router.get("/{visit_id}/audit", response_model=List[AuditEvent])
async def get_audit_trail(visit_id: UUID) -> List[AuditEvent]:
    try:
        return visit_note_service.get_audit_trail(visit_id)
    except ChartingError as exc:
        raise _http_error(exc) from exc


@router.post("/{visit_id}/transcription/merge", response_model=TranscriptionMergeOutcome)
async def merge_transcription(
    visit_id: UUID,
    payload: MergeRequest,
    actor: Optional[str] = Depends(actor_dependency),
) -> TranscriptionMergeOutcome:
    """Merge a transcription result into the visit.

    Entries that could not be saved are listed in ``warnings``; the response
    is still 200 so the caller keeps the returned draft.
    """

    try:
        return visit_note_service.apply_transcription(visit_id, payload.result, payload.draft, author_id=actor)
    except ChartingError as exc:
        raise _http_error(exc) from exc


@router.post("/{visit_id}/transcribe", response_model=TranscriptionMergeOutcome)
async def transcribe_and_merge(
    visit_id: UUID,
    payload: TranscribeRequest,
    actor: Optional[str] = Depends(actor_dependency),
) -> TranscriptionMergeOutcome:
    try:
        visit = visit_note_service.get_visit(visit_id)
        visit_note_service.ensure_editable(visit)
    except ChartingError as exc:
        raise _http_error(exc) from exc

    try:
        result = transcription_service.transcribe_visit_audio(
            payload.audio_path,
            visit_id,
            language_code=payload.language_code,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    try:
        return visit_note_service.apply_transcription(visit_id, result, payload.draft, author_id=actor)
    except ChartingError as exc:
        raise _http_error(exc) from exc


@router.post("/{visit_id}/draft", response_model=List[VisitNoteEntry], status_code=status.HTTP_201_CREATED)
async def save_visit_draft(
    visit_id: UUID,
    payload: VisitFormState,
    actor: Optional[str] = Depends(actor_dependency),
) -> List[VisitNoteEntry]:
    try:
        return visit_note_service.save_draft(visit_id, payload, author_id=actor)
    except ChartingError as exc:
        raise _http_error(exc) from exc
