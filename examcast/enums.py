"""Enumerations shared by the ORM models, the pipeline and the API."""

from __future__ import annotations

from enum import Enum


class ExamType(str, Enum):
    """Exam sittings a prediction can target."""

    MIDTERM_1 = "MIDTERM_1"
    MIDTERM_2 = "MIDTERM_2"
    END_TERM = "END_TERM"

    @property
    def label(self) -> str:
        """Human-readable label, e.g. "MIDTERM 1"."""
        return self.value.replace("_", " ")

    @property
    def total_marks(self) -> int:
        return 60 if self is ExamType.END_TERM else 30


class Difficulty(str, Enum):
    """Difficulty bucket of a predicted question."""

    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"
