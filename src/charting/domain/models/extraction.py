from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.charting.domain.models.visit import NoteSection, NoteSource
from src.charting.domain.models.visit_form import VisitFormPatch


class StructuredExtraction(BaseModel):
    """Structured payload parsed out of a dictated visit.

    The payload comes from an LLM or transcription vendor, so nothing about
    its shape is trusted. Fields with an unexpected type are coerced to their
    "absent" value instead of failing validation, and unknown keys are kept.
    """

    model_config = ConfigDict(extra="allow")

    current_symptoms: List[Any] = Field(default_factory=list)
    physical_exam_findings: Dict[str, Any] = Field(default_factory=dict)
    past_medical_history: List[Any] = Field(default_factory=list)
    diagnosis: Union[str, List[str], None] = None
    treatment_plan: List[Any] = Field(default_factory=list)
    prescriptions: List[Dict[str, Any]] = Field(default_factory=list)
    summary: Optional[str] = None
    transcript: Optional[str] = None

    @field_validator("current_symptoms", "past_medical_history", "treatment_plan", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> List[Any]:
        return value if isinstance(value, list) else []

    @field_validator("physical_exam_findings", mode="before")
    @classmethod
    def _mapping_or_empty(cls, value: Any) -> Dict[str, Any]:
        if not isinstance(value, dict):
            return {}
        return {str(k): v for k, v in value.items()}

    @field_validator("diagnosis", mode="before")
    @classmethod
    def _diagnosis_shape(cls, value: Any) -> Union[str, List[str], None]:
        if isinstance(value, str):
            return value
        if isinstance(value, list):
            return [str(item) for item in value if isinstance(item, (str, int, float)) and str(item)]
        return None

    @field_validator("prescriptions", mode="before")
    @classmethod
    def _prescription_dicts(cls, value: Any) -> List[Dict[str, Any]]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @field_validator("summary", "transcript", mode="before")
    @classmethod
    def _text_or_none(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None


class TranscriptionResult(BaseModel):
    transcript: Optional[str] = None
    summary: Optional[str] = None
    structured: Optional[StructuredExtraction] = None

    def to_extraction(self) -> StructuredExtraction:
        """Fold transcript and summary into the structured payload for merging."""

        base = self.structured or StructuredExtraction()
        update: Dict[str, Any] = {}
        if self.transcript and not base.transcript:
            update["transcript"] = self.transcript
        if self.summary and not base.summary:
            update["summary"] = self.summary
        return base.model_copy(update=update) if update else base


class VitalsBundle(BaseModel):
    blood_pressure: Optional[str] = None
    heart_rate: Optional[str] = None
    temperature: Optional[str] = None
    weight: Optional[str] = None

    def missing(self) -> List[str]:
        return [name for name, value in self.model_dump().items() if value is None]

    def is_complete(self) -> bool:
        return not self.missing()


class SanitizedFinding(BaseModel):
    key: str
    text: str

    @property
    def label(self) -> str:
        return self.key.replace("_", " ")


class NoteIntent(BaseModel):
    """A note entry the merger wants appended; the caller persists it."""

    section: NoteSection
    content: str
    source: NoteSource = NoteSource.DICTATION


class MergeResult(BaseModel):
    notes_to_append: List[NoteIntent] = Field(default_factory=list)
    draft_patch: VisitFormPatch = Field(default_factory=VisitFormPatch)
    vitals: VitalsBundle = Field(default_factory=VitalsBundle)
    findings: List[SanitizedFinding] = Field(default_factory=list)
