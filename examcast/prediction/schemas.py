"""
Request and result shapes for the prediction pipeline.

Wire keys are camelCase (subjectId, examType, syllabusScope, ...) to match
the web client; snake_case is accepted too.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from examcast.enums import ExamType

from .errors import ValidationError
from .parser import PredictedQuestion
from .scope import ModuleScope


class PredictionRequest(BaseModel):
    """Input to one prediction run."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    subject_id: str = Field(..., min_length=1)
    exam_type: ExamType
    syllabus_scope: list[ModuleScope] | None = None
    question_count: int | None = Field(None, ge=1, le=50)
    use_web_search: bool = False
    use_thinking_model: bool = True
    model: str | None = None
    target_year: int | None = Field(None, ge=2000, le=2100)
    target_semester: int | None = Field(None, ge=1, le=2)

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> PredictionRequest:
        """
        Validate a raw request body.

        Raises:
            ValidationError: Missing or invalid fields, with a readable message
        """
        payload = payload or {}
        if not payload.get("subjectId") and not payload.get("subject_id"):
            raise ValidationError("Subject ID is required")
        if not payload.get("examType") and not payload.get("exam_type"):
            raise ValidationError("Exam type is required")
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ValidationError(f"Invalid prediction request: {problems}") from e


@dataclass
class PredictionMetadata:
    """Context returned alongside the predicted questions."""

    subject_name: str
    subject_code: str
    exam_type: ExamType
    total_questions_analyzed: int
    questions_by_exam_type: dict[str, int]
    modules_included: list[str]
    generated_at: datetime
    model_used: str
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "subjectName": self.subject_name,
            "subjectCode": self.subject_code,
            "examType": self.exam_type.value,
            "totalQuestionsAnalyzed": self.total_questions_analyzed,
            "questionsByExamType": self.questions_by_exam_type,
            "modulesIncluded": self.modules_included,
            "generatedAt": self.generated_at.isoformat(),
            "modelUsed": self.model_used,
            "confidence": self.confidence,
        }


@dataclass
class PredictionResult:
    """Successful outcome of a prediction run."""

    prediction_id: UUID
    predictions: list[PredictedQuestion]
    metadata: PredictionMetadata
    failed_attempts: list[tuple[str, str]] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        return self.metadata.confidence

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "predictionId": str(self.prediction_id),
            "predictions": [q.to_dict() for q in self.predictions],
            "metadata": self.metadata.to_dict(),
        }
