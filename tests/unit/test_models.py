"""Tests for the ORM schema."""

import examcast.db.database as database
from examcast.db.models.syllabus import Syllabus


def test_syllabus_columns():
    assert set(Syllabus.__table__.columns.keys()) == {"id", "subject_id", "version", "created_at"}


def test_single_session_dependency():
    assert hasattr(database, "get_session")
    assert not hasattr(database, "get_db")
