from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from src.charting.domain.errors import ExtractionParseFailure
from src.charting.domain.models.extraction import StructuredExtraction, TranscriptionResult
from src.charting.services.extraction.json_spans import first_balanced_span, loads_object
from src.charting.services.transcription.backends import (
    ASRBackend,
    StructuringBackend,
    get_asr_backend_from_env,
    get_structuring_backend_from_env,
)

logger = logging.getLogger("transcription")


def parse_structured_output(raw: str) -> Dict[str, Any]:
    """Decode model output into a dict.

    Tries strict JSON first, then the first balanced ``{...}`` span (models
    like to wrap JSON in prose or code fences). If neither decodes, the text
    is kept under ``"raw"``.
    """

    text = (raw or "").strip()
    try:
        return loads_object(text)
    except ExtractionParseFailure:
        pass

    span = first_balanced_span(text)
    if span is not None:
        try:
            return loads_object(span)
        except ExtractionParseFailure:
            logger.debug("Embedded JSON in structuring output did not decode")

    return {"raw": text}


class TranscriptionService:
    """Turn a stored dictation into a transcript, summary and structured payload."""

    def __init__(
        self,
        *,
        asr_backend: Optional[ASRBackend] = None,
        structuring_backend: Optional[StructuringBackend] = None,
    ) -> None:
        self._asr_backend = asr_backend or get_asr_backend_from_env()
        self._structuring_backend = structuring_backend or get_structuring_backend_from_env()

    def transcribe_visit_audio(
        self,
        audio_path: str,
        visit_id: Optional[UUID] = None,
        *,
        language_code: Optional[str] = None,
    ) -> TranscriptionResult:
        transcript = self._asr_backend.transcribe(audio_path, language_code=language_code).strip()
        if not transcript:
            raise ValueError("Transcription returned empty result")

        data = parse_structured_output(self._structuring_backend.structure(transcript))
        summary = data.pop("summary", "")

        logger.info(
            "Transcribed dictation for visit %s (%d chars, structured keys: %s)",
            visit_id,
            len(transcript),
            ",".join(sorted(data.keys())),
        )

        return TranscriptionResult(
            transcript=transcript,
            summary=summary if isinstance(summary, str) and summary.strip() else None,
            structured=StructuredExtraction.model_validate(data),
        )


# Default singleton instance for simple use in routers.
transcription_service = TranscriptionService()
