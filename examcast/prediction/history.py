"""
Historical Question Aggregator.

Supplies a bounded, most-recent-first sample of past exam questions (PYQs)
as stylistic ground truth, plus a small statistical summary of the sample.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from loguru import logger
from sqlalchemy.orm import Session

from examcast.db.queries import get_recent_questions, parse_id
from examcast.enums import ExamType


@dataclass(frozen=True)
class HistoricalQuestion:
    """A past exam question with its labels."""

    text: str
    marks: int
    exam_type: ExamType
    module: str | None = None
    topic: str | None = None
    academic_year: str | None = None
    created_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "marks": self.marks,
            "examType": self.exam_type.value,
            "module": self.module,
            "topic": self.topic,
            "year": self.academic_year,
        }


@dataclass
class HistorySummary:
    """Pattern statistics over a historical sample."""

    total_questions: int = 0
    by_exam_type: dict[str, int] = field(default_factory=dict)
    marks_distribution: dict[int, int] = field(default_factory=dict)
    module_frequency: dict[str, int] = field(default_factory=dict)
    repeated_topics: dict[str, int] = field(default_factory=dict)
    target_exam_questions: int = 0


def truncate_text(text: str, max_chars: int) -> str:
    """Cut long question text, marking the cut with an ellipsis."""
    text = " ".join(text.split())
    if max_chars <= 3 or len(text) <= max_chars:
        return text[:max_chars] if max_chars > 0 else ""
    return text[: max_chars - 3].rstrip() + "..."


def load_history(
    session: Session,
    subject_id: str | UUID,
    limit: int = 20,
    *,
    max_question_chars: int = 600,
    char_budget: int = 8000,
) -> list[HistoricalQuestion]:
    """
    Most recent historical questions for a subject, size-bounded.

    Args:
        limit: Maximum number of questions returned
        max_question_chars: Per-question text cap
        char_budget: Total text cap across the returned sample

    Returns:
        Questions ordered most-recent-first; empty when there is no history
    """
    key = parse_id(subject_id)
    if key is None or limit <= 0:
        return []

    rows = get_recent_questions(session, key, limit)

    sample: list[HistoricalQuestion] = []
    used = 0
    for row in rows:
        text = truncate_text(row.text, max_question_chars)
        if not text:
            continue
        if sample and used + len(text) > char_budget:
            break
        used += len(text)
        sample.append(
            HistoricalQuestion(
                text=text,
                marks=row.marks or 0,
                exam_type=row.exam.exam_type,
                module=row.module.name if row.module else None,
                topic=row.topic.name if row.topic else None,
                academic_year=row.exam.academic_year,
                created_at=row.created_at,
            )
        )

    logger.debug(f"Loaded {len(sample)} historical questions ({used} chars) for {key}")
    return sample


def summarize_history(
    questions: list[HistoricalQuestion],
    target_exam_type: ExamType,
) -> HistorySummary:
    """Count exam types, marks, modules and repeated topics in a sample."""
    by_type = Counter(q.exam_type.value for q in questions)
    marks = Counter(q.marks for q in questions)
    modules = Counter(q.module for q in questions if q.module)
    topics = Counter(q.topic for q in questions if q.topic)

    return HistorySummary(
        total_questions=len(questions),
        by_exam_type={t.value: by_type.get(t.value, 0) for t in ExamType},
        marks_distribution=dict(sorted(marks.items())),
        module_frequency=dict(sorted(modules.items(), key=lambda kv: (-kv[1], kv[0]))),
        repeated_topics={
            name: count
            for name, count in sorted(topics.items(), key=lambda kv: (-kv[1], kv[0]))
            if count >= 2
        },
        target_exam_questions=by_type.get(target_exam_type.value, 0),
    )
