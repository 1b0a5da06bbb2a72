from __future__ import annotations

from typing import Optional


class ChartingError(Exception):
    """Base class for visit note and extraction errors."""


class ExtractionParseFailure(ChartingError):
    """Malformed JSON/text met while parsing a dictation payload.

    Only raised by the low-level JSON helpers; the extractor and sanitizer
    always recover from it by falling back to the next strategy.
    """


class StoreError(ChartingError):
    """The note store rejected an operation."""


class VisitNotFound(ChartingError):
    def __init__(self, visit_id: object) -> None:
        super().__init__(f"Visit {visit_id} not found")
        self.visit_id = visit_id


class NoteAppendFailure(StoreError):
    """A single note append was rejected by the store."""

    def __init__(self, section: str, message: str) -> None:
        super().__init__(f"Failed to append {section} note: {message}")
        self.section = section


class StatusTransitionFailure(ChartingError):
    """The store rejected a status change; nothing was committed."""

    def __init__(self, from_status: str, to_status: str, message: str) -> None:
        super().__init__(f"Could not change note status from {from_status} to {to_status}: {message}")
        self.from_status = from_status
        self.to_status = to_status


class EditLocked(ChartingError):
    """Content was appended to a signed note.

    Reported separately from store failures so callers can offer the
    revert-to-draft path.
    """

    def __init__(self, visit_id: object, signed_by: Optional[str] = None) -> None:
        detail = f"Visit {visit_id} note is signed and locked for editing"
        if signed_by:
            detail += f" (signed by {signed_by})"
        super().__init__(detail)
        self.visit_id = visit_id
        self.signed_by = signed_by


class IllegalTransition(ChartingError):
    def __init__(self, from_status: str, to_status: str, reason: str = "transition not permitted") -> None:
        super().__init__(f"Cannot move note from {from_status} to {to_status}: {reason}")
        self.from_status = from_status
        self.to_status = to_status


class RevertConfirmationRequired(IllegalTransition):
    """signed -> draft was requested outside the explicit revert path."""

    def __init__(self) -> None:
        super().__init__(
            "signed",
            "draft",
            "reverting a signed note requires an explicit, confirmed revert request",
        )
