from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, FrozenSet, Optional, Tuple
from uuid import UUID, uuid4

from src.charting.domain.errors import (
    IllegalTransition,
    RevertConfirmationRequired,
    StatusTransitionFailure,
    StoreError,
    VisitNotFound,
)
from src.charting.domain.models.visit import AuditEvent, Visit, VisitNoteStatus
from src.charting.infra.db.repositories import VisitNoteStore
from src.charting.services.audit.service import AuditService, audit_service

logger = logging.getLogger("visits")

DRAFT = VisitNoteStatus.DRAFT
PENDING = VisitNoteStatus.PENDING
SIGNED = VisitNoteStatus.SIGNED

# Transitions any caller may request through the generic path.
FREE_TRANSITIONS: FrozenSet[Tuple[VisitNoteStatus, VisitNoteStatus]] = frozenset(
    {
        (DRAFT, PENDING),
        (PENDING, DRAFT),
        (DRAFT, SIGNED),
        (PENDING, SIGNED),
    }
)

# Only reachable through VisitNoteStateMachine.revert.
REVERT_TRANSITION = (SIGNED, DRAFT)


def action_for(from_status: VisitNoteStatus, to_status: VisitNoteStatus) -> str:
    if to_status == SIGNED:
        return "sign_note"
    if (from_status, to_status) == REVERT_TRANSITION:
        return "revert_note"
    if to_status == PENDING:
        return "submit_note_for_review"
    return "return_note_to_draft"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VisitNoteStateMachine:
    """Lifecycle of a visit note's signing status.

    ``draft`` is the initial state. ``draft``/``pending`` move freely between
    each other and to ``signed``. A signed note only leaves ``signed`` through
    :meth:`revert`, which must be called deliberately with ``confirm=True``;
    ``signed -> pending`` is not offered at all.

    Each successful transition persists the new status first and then appends
    exactly one audit event. If the store rejects the status change nothing is
    recorded and :class:`StatusTransitionFailure` is raised.
    """

    def __init__(
        self,
        store: VisitNoteStore,
        *,
        audit: Optional[AuditService] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._audit = audit or audit_service
        self._clock = clock

    @staticmethod
    def check(current: VisitNoteStatus, target: VisitNoteStatus, *, revert: bool = False) -> None:
        """Raise if ``current -> target`` is not allowed on the chosen path."""

        if (current, target) == REVERT_TRANSITION:
            if not revert:
                raise RevertConfirmationRequired()
            return
        if revert:
            raise IllegalTransition(current.value, target.value, "only signed notes can be reverted")
        if (current, target) not in FREE_TRANSITIONS:
            raise IllegalTransition(current.value, target.value)

    def transition(self, visit_id: UUID, target: VisitNoteStatus, *, actor: Optional[str] = None) -> Visit:
        """Move the note to ``target`` through the generic (non-revert) path.

        Requesting the status the note already has is a no-op: the visit is
        returned unchanged and no audit event is written.
        """

        visit = self._load(visit_id)
        target = VisitNoteStatus(target)
        if visit.notes_status == target:
            return visit
        self.check(visit.notes_status, target)
        return self._commit(visit, target, actor)

    def sign(self, visit_id: UUID, *, actor: Optional[str] = None) -> Visit:
        return self.transition(visit_id, SIGNED, actor=actor)

    def submit_for_review(self, visit_id: UUID, *, actor: Optional[str] = None) -> Visit:
        return self.transition(visit_id, PENDING, actor=actor)

    def revert(self, visit_id: UUID, *, actor: Optional[str] = None, confirm: bool = False) -> Visit:
        """Return a signed note to draft. ``confirm`` must be True."""

        if not confirm:
            raise RevertConfirmationRequired()
        visit = self._load(visit_id)
        self.check(visit.notes_status, DRAFT, revert=True)
        return self._commit(visit, DRAFT, actor)

    def _load(self, visit_id: UUID) -> Visit:
        try:
            visit = self._store.get_visit(visit_id)
        except StoreError as exc:
            raise StatusTransitionFailure("unknown", "unknown", str(exc)) from exc
        if visit is None:
            raise VisitNotFound(visit_id)
        return visit

    def _commit(self, visit: Visit, target: VisitNoteStatus, actor: Optional[str]) -> Visit:
        previous = visit.notes_status
        now = self._clock()

        if target == SIGNED:
            finalized_by, finalized_at = actor, now
        elif target == DRAFT:
            finalized_by, finalized_at = None, None
        else:
            finalized_by, finalized_at = visit.notes_finalized_by, visit.notes_finalized_at

        try:
            updated = self._store.update_visit_note_status(
                visit.id,
                target,
                finalized_by=finalized_by,
                finalized_at=finalized_at,
            )
        except StoreError as exc:
            logger.warning("Status change %s -> %s rejected for visit %s: %s", previous.value, target.value, visit.id, exc)
            raise StatusTransitionFailure(previous.value, target.value, str(exc)) from exc

        event = AuditEvent(
            id=uuid4(),
            visit_id=visit.id,
            action=action_for(previous, target),
            from_status=previous,
            to_status=target,
            actor=actor,
            timestamp=now,
        )
        try:
            self._store.append_audit_event(event)
        except StoreError as exc:
            # Every persisted status must have a matching audit event.
            logger.error("Audit event for visit %s rejected; restoring status %s", visit.id, previous.value)
            try:
                self._store.update_visit_note_status(
                    visit.id,
                    previous,
                    finalized_by=visit.notes_finalized_by,
                    finalized_at=visit.notes_finalized_at,
                )
            except StoreError:
                logger.exception("Could not restore status %s for visit %s", previous.value, visit.id)
            raise StatusTransitionFailure(previous.value, target.value, str(exc)) from exc

        self._audit.log_event(
            action=event.action,
            resource_type="visit",
            resource_id=str(visit.id),
            subject=actor,
            extra={"from": previous.value, "to": target.value},
        )
        return updated
