"""
Unit tests for historical question loading and summaries.
"""

from datetime import date

from examcast.enums import ExamType
from examcast.prediction.history import (
    HistoricalQuestion,
    load_history,
    summarize_history,
    truncate_text,
)
from examcast.prediction.ingestion import NewQuestion, record_exam


def _record(db_session, subject, exam_type, questions, exam_date=date(2024, 11, 20)):
    return record_exam(
        db_session,
        subject.id,
        exam_type,
        questions,
        exam_date=exam_date,
        academic_year="2024-25",
        as_of=date(2025, 1, 1),
    )


class TestTruncateText:
    def test_short_text_untouched(self):
        assert truncate_text("Define a process.", 100) == "Define a process."

    def test_long_text_ends_with_ellipsis(self):
        cut = truncate_text("word " * 50, 20)
        assert len(cut) <= 20
        assert cut.endswith("...")

    def test_whitespace_collapsed(self):
        assert truncate_text("Define\n\n  a   process.", 100) == "Define a process."


class TestLoadHistory:
    def test_empty_history(self, db_session, seeded_subject):
        assert load_history(db_session, seeded_subject.id) == []

    def test_unknown_subject_is_empty(self, db_session):
        assert load_history(db_session, "not-a-uuid") == []

    def test_labels_and_exam_fields(self, db_session, seeded_subject):
        _record(
            db_session,
            seeded_subject,
            ExamType.MIDTERM_1,
            [NewQuestion("Explain paging.", 5, module=2, topic="Paging")],
        )
        history = load_history(db_session, seeded_subject.id)

        assert len(history) == 1
        q = history[0]
        assert q.exam_type is ExamType.MIDTERM_1
        assert q.module == "Memory Management"
        assert q.topic == "Paging"
        assert q.academic_year == "2024-25"

    def test_limit(self, db_session, seeded_subject):
        _record(
            db_session,
            seeded_subject,
            ExamType.END_TERM,
            [NewQuestion(f"Question {i}", 2) for i in range(6)],
        )
        assert len(load_history(db_session, seeded_subject.id, limit=4)) == 4
        assert load_history(db_session, seeded_subject.id, limit=0) == []

    def test_char_budget_bounds_sample(self, db_session, seeded_subject):
        _record(
            db_session,
            seeded_subject,
            ExamType.END_TERM,
            [NewQuestion("x" * 100 + str(i), 2) for i in range(10)],
        )
        history = load_history(db_session, seeded_subject.id, char_budget=350)
        assert len(history) == 3
        assert sum(len(q.text) for q in history) <= 350

    def test_per_question_cap(self, db_session, seeded_subject):
        _record(db_session, seeded_subject, ExamType.END_TERM, [NewQuestion("y" * 1000, 10)])
        history = load_history(db_session, seeded_subject.id, max_question_chars=50)
        assert len(history[0].text) == 50


class TestSummarizeHistory:
    def test_counts(self):
        questions = [
            HistoricalQuestion("a", 5, ExamType.MIDTERM_1, "M1", "Threads"),
            HistoricalQuestion("b", 5, ExamType.MIDTERM_1, "M1", "Threads"),
            HistoricalQuestion("c", 10, ExamType.END_TERM, "M2", "Paging"),
        ]
        summary = summarize_history(questions, ExamType.MIDTERM_1)

        assert summary.total_questions == 3
        assert summary.by_exam_type == {"MIDTERM_1": 2, "MIDTERM_2": 0, "END_TERM": 1}
        assert summary.marks_distribution == {5: 2, 10: 1}
        assert summary.module_frequency == {"M1": 2, "M2": 1}
        assert summary.repeated_topics == {"Threads": 2}
        assert summary.target_exam_questions == 2

    def test_empty(self):
        summary = summarize_history([], ExamType.END_TERM)
        assert summary.total_questions == 0
        assert summary.by_exam_type == {"MIDTERM_1": 0, "MIDTERM_2": 0, "END_TERM": 0}
        assert summary.repeated_topics == {}
