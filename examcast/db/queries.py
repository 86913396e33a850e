"""
Centralized read queries.

Reusable SELECT statements for the prediction pipeline and the API. All of
them are read-only; writes live with the code that owns them (ingestion and
the prediction engine).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from examcast.db.models import (
    Exam,
    ExamQuestion,
    Prediction,
    Subject,
    Syllabus,
    SyllabusModule,
)


def parse_id(value: str | UUID) -> UUID | None:
    """Coerce an identifier to UUID; None if it is not a valid UUID."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def get_subject(session: Session, subject_id: str | UUID) -> Subject | None:
    """Look up a subject by id."""
    key = parse_id(subject_id)
    if key is None:
        return None
    return session.get(Subject, key)


def get_current_syllabus(session: Session, subject_id: str | UUID) -> Syllabus | None:
    """Most recent syllabus of a subject, with modules and topics loaded."""
    key = parse_id(subject_id)
    if key is None:
        return None
    stmt = (
        select(Syllabus)
        .where(Syllabus.subject_id == key)
        .options(selectinload(Syllabus.modules).selectinload(SyllabusModule.topics))
        .order_by(Syllabus.created_at.desc())
        .limit(1)
    )
    return session.scalars(stmt).first()


def get_recent_questions(session: Session, subject_id: UUID, limit: int) -> list[ExamQuestion]:
    """Most recent historical questions of a subject, labels eagerly loaded."""
    stmt = (
        select(ExamQuestion)
        .join(Exam, ExamQuestion.exam_id == Exam.id)
        .where(Exam.subject_id == subject_id)
        .options(
            selectinload(ExamQuestion.exam),
            selectinload(ExamQuestion.module),
            selectinload(ExamQuestion.topic),
        )
        .order_by(ExamQuestion.created_at.desc(), ExamQuestion.id)
        .limit(limit)
    )
    return list(session.scalars(stmt))


def list_predictions(
    session: Session,
    subject_id: str | UUID | None = None,
    limit: int = 20,
) -> list[Prediction]:
    """Latest predictions, optionally filtered by subject."""
    stmt = (
        select(Prediction)
        .options(selectinload(Prediction.questions))
        .order_by(Prediction.created_at.desc())
        .limit(limit)
    )
    if subject_id is not None:
        key = parse_id(subject_id)
        if key is None:
            return []
        stmt = stmt.where(Prediction.subject_id == key)
    return list(session.scalars(stmt))
