# SQLAlchemy models
from .base import Base
from .exams import Exam, ExamQuestion
from .predictions import Prediction, PredictionQuestion
from .syllabus import Subject, Syllabus, SyllabusModule, SyllabusTopic

__all__ = [
    # Base
    "Base",
    # Curriculum
    "Subject",
    "Syllabus",
    "SyllabusModule",
    "SyllabusTopic",
    # History
    "Exam",
    "ExamQuestion",
    # Output
    "Prediction",
    "PredictionQuestion",
]
