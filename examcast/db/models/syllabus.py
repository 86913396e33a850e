"""
Curriculum tables: subjects, syllabus versions, modules and topics.

A subject can accumulate several syllabus versions; the most recent one is
authoritative. Topics carry the freshness fields maintained by history
ingestion.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID, uuid4

from sqlalchemy import Date, Float, ForeignKey, Integer, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Subject(Base):
    """A course subject (e.g. "CS301 Operating Systems")."""

    __tablename__ = "subjects"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    code: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    # Relationships
    syllabi: Mapped[list[Syllabus]] = relationship(
        back_populates="subject", cascade="all, delete-orphan"
    )


class Syllabus(Base):
    """One uploaded syllabus version for a subject."""

    __tablename__ = "syllabi"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    subject_id: Mapped[UUID] = mapped_column(
        ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False
    )
    version: Mapped[str] = mapped_column(Text, default="1")
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    # Relationships
    subject: Mapped[Subject] = relationship(back_populates="syllabi")
    modules: Mapped[list[SyllabusModule]] = relationship(
        back_populates="syllabus",
        cascade="all, delete-orphan",
        order_by="SyllabusModule.number",
    )


class SyllabusModule(Base):
    """A numbered unit of a syllabus."""

    __tablename__ = "syllabus_modules"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    syllabus_id: Mapped[UUID] = mapped_column(
        ForeignKey("syllabi.id", ondelete="CASCADE"), nullable=False
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-based
    name: Mapped[str] = mapped_column(Text, nullable=False)
    hours: Mapped[int | None] = mapped_column(Integer)

    # Relationships
    syllabus: Mapped[Syllabus] = relationship(back_populates="modules")
    topics: Mapped[list[SyllabusTopic]] = relationship(
        back_populates="module",
        cascade="all, delete-orphan",
        order_by="[SyllabusTopic.order_index, SyllabusTopic.name]",
    )


class SyllabusTopic(Base):
    """A topic within a module, with its freshness tracking fields."""

    __tablename__ = "syllabus_topics"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    module_id: Mapped[UUID] = mapped_column(
        ForeignKey("syllabus_modules.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    order_index: Mapped[int] = mapped_column(Integer, default=0)

    # Freshness (written only by history ingestion)
    times_asked: Mapped[int] = mapped_column(Integer, default=0)
    last_asked_date: Mapped[date | None] = mapped_column(Date)
    freshness_score: Mapped[float] = mapped_column(Float, default=1.0)

    # Relationships
    module: Mapped[SyllabusModule] = relationship(back_populates="topics")
