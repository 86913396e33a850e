"""
Past exam papers and their questions (PYQs).

Rows here are immutable once written; they are the read-only ground truth
for the prediction pipeline.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import Date, Enum, ForeignKey, Integer, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from examcast.enums import ExamType

from .base import Base
from .syllabus import SyllabusModule, SyllabusTopic


class Exam(Base):
    """A single past exam sitting for a subject."""

    __tablename__ = "exams"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    subject_id: Mapped[UUID] = mapped_column(
        ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False
    )
    exam_type: Mapped[ExamType] = mapped_column(
        Enum(ExamType, name="exam_type", native_enum=False, length=20), nullable=False
    )
    academic_year: Mapped[str | None] = mapped_column(Text)  # e.g. "2023-24"
    exam_date: Mapped[date | None] = mapped_column(Date)
    total_marks: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    # Relationships
    questions: Mapped[list[ExamQuestion]] = relationship(
        back_populates="exam", cascade="all, delete-orphan"
    )


class ExamQuestion(Base):
    """A question extracted from a past exam paper."""

    __tablename__ = "exam_questions"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    exam_id: Mapped[UUID] = mapped_column(
        ForeignKey("exams.id", ondelete="CASCADE"), nullable=False
    )
    module_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("syllabus_modules.id", ondelete="SET NULL")
    )
    topic_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("syllabus_topics.id", ondelete="SET NULL")
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    marks: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    # Relationships
    exam: Mapped[Exam] = relationship(back_populates="questions")
    module: Mapped[SyllabusModule | None] = relationship()
    topic: Mapped[SyllabusTopic | None] = relationship()
