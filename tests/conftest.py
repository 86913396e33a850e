"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import os
import sys
from datetime import date
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Settings are cached on first import; point them at throwaway stores
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FILE"] = ""
os.environ.pop("GEMINI_API_KEY", None)

from loguru import logger  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from examcast.db.database import build_engine  # noqa: E402
from examcast.db.models import Base, Subject, Syllabus, SyllabusModule, SyllabusTopic  # noqa: E402
from examcast.prediction.client import GenerationClient  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (API + database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# ========================================
# Database
# ========================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with all tables."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Session bound to the in-memory database."""
    factory = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)
    session = factory()
    yield session
    session.close()


SYLLABUS_MODULES = [
    ("Process Management", ["Processes", "Threads", "CPU Scheduling"]),
    ("Memory Management", ["Paging", "Segmentation"]),
]


@pytest.fixture
def seeded_subject(db_session):
    """Operating Systems subject with two modules (3 + 2 topics) and no history."""
    subject = Subject(code="CS301", name="Operating Systems")
    syllabus = Syllabus(version="2024")
    for number, (module_name, topics) in enumerate(SYLLABUS_MODULES, start=1):
        module = SyllabusModule(number=number, name=module_name, hours=10)
        module.topics = [
            SyllabusTopic(name=topic, order_index=index) for index, topic in enumerate(topics)
        ]
        syllabus.modules.append(module)
    subject.syllabi.append(syllabus)

    db_session.add(subject)
    db_session.commit()
    return subject


@pytest.fixture
def empty_subject(db_session):
    """Subject without any syllabus."""
    subject = Subject(code="MA101", name="Calculus")
    db_session.add(subject)
    db_session.commit()
    return subject


# ========================================
# Generation backend
# ========================================


class FakeBackend:
    """
    Scripted stand-in for the Gemini backend.

    `script` maps model name -> reply text, or an exception to raise.
    Unknown models raise RuntimeError.
    """

    def __init__(self, script=None):
        self.script = dict(script or {})
        self.calls = []

    def __call__(self, model_name, prompt):
        self.calls.append((model_name, prompt))
        outcome = self.script.get(model_name, RuntimeError(f"model {model_name} unavailable"))
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def models_called(self):
        return [name for name, _ in self.calls]


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def fake_client(fake_backend):
    """GenerationClient over the scripted backend."""
    return GenerationClient(fake_backend, time_budget_seconds=30)


VALID_REPLY = """{
  "predictions": [
    {"id": "pred_1", "text": "Explain round-robin scheduling with an example.", "probability": 0.9,
     "module": "Process Management", "topic": "CPU Scheduling", "difficulty": "MEDIUM",
     "marks": 10, "reasoning": ["Not asked recently"]},
    {"id": "pred_2", "text": "Compare paging and segmentation.", "probability": 0.5,
     "module": "Memory Management", "topic": "Paging", "difficulty": "EASY",
     "marks": 5, "reasoning": ["Frequently paired topics"]},
    {"id": "pred_3", "text": "Describe the thread lifecycle.", "probability": 0.7,
     "module": "Process Management", "topic": "Threads", "difficulty": "HARD",
     "marks": 10, "reasoning": []}
  ]
}"""


@pytest.fixture
def valid_reply():
    """Well-formed model reply with probabilities 0.9, 0.5, 0.7."""
    return VALID_REPLY


# ========================================
# Logging
# ========================================


@pytest.fixture
def log_records():
    """Capture loguru output as (level, message) tuples."""
    records = []
    handler_id = logger.add(
        lambda message: records.append((message.record["level"].name, message.record["message"])),
        level="DEBUG",
    )
    yield records
    logger.remove(handler_id)


@pytest.fixture
def as_of():
    return date(2025, 6, 1)
