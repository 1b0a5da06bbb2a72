from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SubjectiveFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chief_complaint: str = Field("", alias="chiefComplaint")
    hpi: str = ""


class ObjectiveFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bp: str = ""
    hr: str = ""
    temp: str = ""
    weight: str = ""
    physical_exam: str = Field("", alias="physicalExam")


class AssessmentPlanFields(BaseModel):
    assessment: str = ""
    plan: str = ""


class SubjectivePatch(BaseModel):
    chief_complaint: Optional[str] = None
    hpi: Optional[str] = None


class ObjectivePatch(BaseModel):
    bp: Optional[str] = None
    hr: Optional[str] = None
    temp: Optional[str] = None
    weight: Optional[str] = None
    physical_exam: Optional[str] = None


class AssessmentPlanPatch(BaseModel):
    assessment: Optional[str] = None
    plan: Optional[str] = None


class VisitFormPatch(BaseModel):
    """Partial form update. Only fields that should change are set."""

    subjective: SubjectivePatch = Field(default_factory=SubjectivePatch)
    objective: ObjectivePatch = Field(default_factory=ObjectivePatch)
    assessment_plan: AssessmentPlanPatch = Field(default_factory=AssessmentPlanPatch)

    def is_empty(self) -> bool:
        return not any(self.model_dump(exclude_none=True).values())


class VisitFormState(BaseModel):
    """The in-progress visit form a clinician is editing.

    This is a plain value: the merger reads it and returns a patch, and the
    caller decides whether to commit that patch via :meth:`apply_patch`.
    """

    model_config = ConfigDict(populate_by_name=True)

    subjective: SubjectiveFields = Field(default_factory=SubjectiveFields)
    objective: ObjectiveFields = Field(default_factory=ObjectiveFields)
    assessment_plan: AssessmentPlanFields = Field(default_factory=AssessmentPlanFields, alias="assessmentPlan")

    def apply_patch(self, patch: VisitFormPatch) -> "VisitFormState":
        changes = patch.model_dump(exclude_none=True)
        return VisitFormState(
            subjective=self.subjective.model_copy(update=changes.get("subjective", {})),
            objective=self.objective.model_copy(update=changes.get("objective", {})),
            assessment_plan=self.assessment_plan.model_copy(update=changes.get("assessment_plan", {})),
        )
