"""
Prediction output tables.

One Prediction row per successful generation request. Rows are never
mutated by the pipeline; `validated` / `accuracy_score` are filled in later
by a human grader.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, Enum, Float, ForeignKey, Integer, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from examcast.enums import Difficulty, ExamType

from .base import Base


class Prediction(Base):
    """A persisted prediction run for a subject and exam type."""

    __tablename__ = "predictions"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    subject_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("subjects.id", ondelete="SET NULL")
    )
    subject_code: Mapped[str] = mapped_column(Text, nullable=False)
    target_exam_type: Mapped[ExamType] = mapped_column(
        Enum(ExamType, name="exam_type", native_enum=False, length=20), nullable=False
    )
    target_year: Mapped[int] = mapped_column(Integer, nullable=False)
    target_semester: Mapped[int] = mapped_column(Integer, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, default=0.0)
    model_version: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    # Human grading (outside the pipeline)
    validated: Mapped[bool] = mapped_column(Boolean, default=False)
    accuracy_score: Mapped[float | None] = mapped_column(Float)

    # Relationships
    questions: Mapped[list[PredictionQuestion]] = relationship(
        back_populates="prediction",
        cascade="all, delete-orphan",
        order_by="PredictionQuestion.position",
    )


class PredictionQuestion(Base):
    """One generated question belonging to a Prediction."""

    __tablename__ = "prediction_questions"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    prediction_id: Mapped[UUID] = mapped_column(
        ForeignKey("predictions.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    generated_text: Mapped[str] = mapped_column(Text, nullable=False)
    probability: Mapped[float] = mapped_column(Float, nullable=False)
    reasoning: Mapped[list] = mapped_column(JSON, default=list)
    suggested_marks: Mapped[int] = mapped_column(Integer, default=0)
    difficulty: Mapped[Difficulty] = mapped_column(
        Enum(Difficulty, name="difficulty", native_enum=False, length=10),
        default=Difficulty.MEDIUM,
    )
    # Free-text labels; matched against the syllabus by name, may not resolve
    target_module: Mapped[str | None] = mapped_column(Text)
    target_topic: Mapped[str | None] = mapped_column(Text)

    # Relationships
    prediction: Mapped[Prediction] = relationship(back_populates="questions")
