"""
Historical question ingestion.

Records a past exam paper and keeps topic freshness in step with it: every
topic a new question implicates has `times_asked` incremented,
`last_asked_date` advanced and `freshness_score` recomputed in the same
transaction.

Two concurrent ingestions touching the same topic are not serialized beyond
the database's own row-update atomicity; the last write wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from loguru import logger
from sqlalchemy.orm import Session

from examcast.db.models import Exam, ExamQuestion, Syllabus, SyllabusModule, SyllabusTopic
from examcast.db.queries import get_current_syllabus, get_subject
from examcast.enums import ExamType

from .errors import NotFoundError, ValidationError
from .freshness import FreshnessModel


@dataclass(frozen=True)
class NewQuestion:
    """A question extracted from a past paper, before it is stored."""

    text: str
    marks: int = 0
    module: str | int | None = None  # module number or name
    topic: str | None = None


@dataclass
class IngestionResult:
    """Summary of one recorded exam."""

    exam_id: UUID
    questions_recorded: int
    topics_updated: int
    unresolved_labels: list[str]


def _resolve_module(syllabus: Syllabus, label: str | int | None) -> SyllabusModule | None:
    if label is None or label == "":
        return None
    if isinstance(label, int) or (isinstance(label, str) and label.strip().isdigit()):
        number = int(label)
        return next((m for m in syllabus.modules if m.number == number), None)
    wanted = str(label).strip().casefold()
    return next((m for m in syllabus.modules if m.name.casefold() == wanted), None)


def _resolve_topic(
    syllabus: Syllabus,
    module: SyllabusModule | None,
    name: str | None,
) -> SyllabusTopic | None:
    if not name or not name.strip():
        return None
    wanted = name.strip().casefold()
    candidates = module.topics if module is not None else [
        t for m in syllabus.modules for t in m.topics
    ]
    return next((t for t in candidates if t.name.casefold() == wanted), None)


def _mark_asked(
    topic: SyllabusTopic,
    asked_on: date,
    as_of: date | datetime,
    model: FreshnessModel,
) -> None:
    topic.times_asked = (topic.times_asked or 0) + 1
    if topic.last_asked_date is None or asked_on > topic.last_asked_date:
        topic.last_asked_date = asked_on
    topic.freshness_score = model.score(topic.times_asked, topic.last_asked_date, as_of)


def record_exam(
    session: Session,
    subject_id: str | UUID,
    exam_type: ExamType,
    questions: list[NewQuestion],
    *,
    exam_date: date,
    academic_year: str | None = None,
    total_marks: int | None = None,
    as_of: date | datetime | None = None,
    freshness: FreshnessModel | None = None,
) -> IngestionResult:
    """
    Store a past exam with its questions and update topic freshness.

    Module/topic labels are matched against the subject's current syllabus;
    labels that do not resolve are stored without an association.

    Raises:
        NotFoundError: Unknown subject or no syllabus to attach topics to
        ValidationError: No questions, or a question without text
    """
    subject = get_subject(session, subject_id)
    if subject is None:
        raise NotFoundError(f"Subject not found: {subject_id}")
    syllabus = get_current_syllabus(session, subject.id)
    if syllabus is None:
        raise NotFoundError("No syllabus found for this subject. Please upload a syllabus first.")
    if not questions:
        raise ValidationError("At least one question is required")
    for index, question in enumerate(questions):
        if not question.text or not question.text.strip():
            raise ValidationError(f"Question {index + 1} has no text")

    model = freshness or FreshnessModel()
    as_of = as_of or datetime.now()

    exam = Exam(
        subject_id=subject.id,
        exam_type=exam_type,
        academic_year=academic_year,
        exam_date=exam_date,
        total_marks=total_marks,
    )
    session.add(exam)

    touched: dict[UUID, SyllabusTopic] = {}
    unresolved: list[str] = []
    for question in questions:
        module = _resolve_module(syllabus, question.module)
        topic = _resolve_topic(syllabus, module, question.topic)
        if question.topic and topic is None:
            unresolved.append(question.topic)
        if topic is not None and module is None:
            module = topic.module

        exam.questions.append(
            ExamQuestion(
                text=question.text.strip(),
                marks=max(0, question.marks or 0),
                module=module,
                topic=topic,
            )
        )
        if topic is not None:
            _mark_asked(topic, exam_date, as_of, model)
            touched[topic.id] = topic

    try:
        session.commit()
    except Exception:  # Intentionally broad - rollback on any error before re-raising
        session.rollback()
        raise

    if unresolved:
        logger.warning(f"Unresolved topic labels for {subject.code}: {sorted(set(unresolved))}")
    logger.info(
        f"Recorded {exam_type.value} exam for {subject.code}: "
        f"{len(questions)} questions, {len(touched)} topics refreshed"
    )
    return IngestionResult(
        exam_id=exam.id,
        questions_recorded=len(questions),
        topics_updated=len(touched),
        unresolved_labels=sorted(set(unresolved)),
    )


def refresh_freshness(
    session: Session,
    subject_id: str | UUID,
    as_of: date | datetime | None = None,
    freshness: FreshnessModel | None = None,
) -> int:
    """
    Recompute stored freshness for every topic of a subject's syllabus.

    Returns:
        Number of topics updated
    """
    subject = get_subject(session, subject_id)
    if subject is None:
        raise NotFoundError(f"Subject not found: {subject_id}")
    syllabus = get_current_syllabus(session, subject.id)
    if syllabus is None:
        raise NotFoundError("No syllabus found for this subject. Please upload a syllabus first.")

    model = freshness or FreshnessModel()
    as_of = as_of or datetime.now()
    count = 0
    for module in syllabus.modules:
        for topic in module.topics:
            topic.freshness_score = model.score(topic.times_asked or 0, topic.last_asked_date, as_of)
            count += 1

    session.commit()
    logger.info(f"Refreshed freshness for {count} topics of {subject.code}")
    return count
