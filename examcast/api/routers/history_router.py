"""
History router.

Endpoints for:
- Recording a past exam paper (updates topic freshness)
- Recomputing freshness for a subject
"""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from config import get_settings
from examcast.db.database import get_session
from examcast.enums import ExamType
from examcast.prediction.engine import EngineConfig
from examcast.prediction.ingestion import NewQuestion, record_exam, refresh_freshness

router = APIRouter()


# ========================================
# Request Models
# ========================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class ExamQuestionIn(_CamelModel):
    """One question of a past paper."""

    text: str = Field(..., min_length=1)
    marks: int = Field(0, ge=0)
    module: str | int | None = Field(None, description="Module number or name")
    topic: str | None = None


class ExamIngestRequest(_CamelModel):
    """A past exam paper to record."""

    exam_type: ExamType
    exam_date: date
    academic_year: str | None = Field(None, description='e.g. "2023-24"')
    total_marks: int | None = Field(None, ge=0)
    questions: list[ExamQuestionIn] = Field(..., min_length=1)


def _freshness_model():
    return EngineConfig.from_settings(get_settings()).freshness


# ========================================
# Endpoints
# ========================================


@router.post("/{subject_id}/exams", summary="Record a past exam paper")
def post_exam(
    subject_id: str,
    body: ExamIngestRequest,
    db: Session = Depends(get_session),
) -> dict[str, Any]:
    result = record_exam(
        db,
        subject_id,
        body.exam_type,
        [NewQuestion(text=q.text, marks=q.marks, module=q.module, topic=q.topic) for q in body.questions],
        exam_date=body.exam_date,
        academic_year=body.academic_year,
        total_marks=body.total_marks or body.exam_type.total_marks,
        freshness=_freshness_model(),
    )
    return {
        "success": True,
        "examId": str(result.exam_id),
        "questionsRecorded": result.questions_recorded,
        "topicsUpdated": result.topics_updated,
        "unresolvedTopics": result.unresolved_labels,
    }


@router.post("/{subject_id}/freshness/refresh", summary="Recompute topic freshness")
def post_refresh_freshness(
    subject_id: str,
    db: Session = Depends(get_session),
) -> dict[str, Any]:
    count = refresh_freshness(db, subject_id, freshness=_freshness_model())
    return {"success": True, "topicsUpdated": count}
