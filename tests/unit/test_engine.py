"""
Unit tests for the prediction engine pipeline.
"""

from datetime import date, datetime

import pytest
from sqlalchemy import func, select

from examcast.db.models import Prediction, PredictionQuestion
from examcast.enums import Difficulty, ExamType
from examcast.prediction.client import ModelSettings
from examcast.prediction.engine import (
    EngineConfig,
    PredictionEngine,
    default_target,
    run_prediction,
)
from examcast.prediction.errors import (
    AllModelsExhaustedError,
    NotFoundError,
    UnparsableResponseError,
    ValidationError,
)
from examcast.prediction.ingestion import NewQuestion, record_exam
from examcast.prediction.schemas import PredictionRequest
from examcast.prediction.scope import ModuleScope, TopicScope

MODELS = ModelSettings(pro="pro-model", fast="fast-model", fallbacks=("fast-model", "lite-model"))
NOW = datetime(2025, 3, 15, 10, 0)


@pytest.fixture
def engine_config():
    return EngineConfig(models=MODELS, time_budget_seconds=30)


@pytest.fixture
def make_engine(db_session, fake_client, engine_config):
    def _make():
        return PredictionEngine(db_session, fake_client, engine_config, clock=lambda: NOW)

    return _make


def _count(db_session, model):
    return db_session.scalar(select(func.count()).select_from(model))


class TestPredict:
    @pytest.mark.asyncio
    async def test_successful_prediction_is_stored(
        self, db_session, seeded_subject, fake_backend, make_engine, valid_reply
    ):
        fake_backend.script = {"pro-model": valid_reply}
        request = PredictionRequest(subject_id=str(seeded_subject.id), exam_type=ExamType.END_TERM)

        result = await make_engine().predict(request)

        assert len(result.predictions) == 3
        assert result.confidence == pytest.approx(0.7)
        assert result.metadata.model_used == "pro-model"
        assert result.metadata.subject_code == "CS301"
        assert result.metadata.total_questions_analyzed == 0
        assert result.metadata.modules_included == [
            "Module 1: Process Management",
            "Module 2: Memory Management",
        ]

        stored = db_session.get(Prediction, result.prediction_id)
        assert stored.subject_code == "CS301"
        assert stored.target_exam_type is ExamType.END_TERM
        assert (stored.target_year, stored.target_semester) == (2025, 1)
        assert stored.model_version == "pro-model"
        assert stored.confidence == pytest.approx(0.7)
        assert [q.position for q in stored.questions] == [0, 1, 2]
        assert stored.questions[0].difficulty is Difficulty.MEDIUM
        assert stored.questions[0].reasoning == ["Not asked recently"]

    @pytest.mark.asyncio
    async def test_prompt_reflects_scope(self, seeded_subject, fake_backend, make_engine, valid_reply):
        fake_backend.script = {"pro-model": valid_reply}
        request = PredictionRequest(
            subject_id=str(seeded_subject.id),
            exam_type=ExamType.MIDTERM_1,
            syllabus_scope=[
                ModuleScope(module_number=2, included=False),
                ModuleScope(module_number=1, topics=(TopicScope(name="Threads", included=False),)),
            ],
            question_count=4,
        )

        await make_engine().predict(request)

        prompt = fake_backend.calls[0][1]
        assert "Paging" not in prompt
        assert "Threads" not in prompt
        assert "CPU Scheduling" in prompt
        assert "exactly 4 predicted exam questions" in prompt
        assert "## HISTORICAL QUESTIONS" not in prompt

    @pytest.mark.asyncio
    async def test_history_reaches_prompt(self, db_session, seeded_subject, fake_backend, make_engine, valid_reply):
        record_exam(
            db_session,
            seeded_subject.id,
            ExamType.MIDTERM_1,
            [NewQuestion("Explain the producer-consumer problem.", 5, module=1, topic="Processes")],
            exam_date=date(2024, 9, 10),
        )
        fake_backend.script = {"pro-model": valid_reply}

        result = await make_engine().predict(
            PredictionRequest(subject_id=str(seeded_subject.id), exam_type=ExamType.MIDTERM_1)
        )

        prompt = fake_backend.calls[0][1]
        assert "## HISTORICAL QUESTIONS" in prompt
        assert "producer-consumer" in prompt
        assert result.metadata.total_questions_analyzed == 1
        assert result.metadata.questions_by_exam_type["MIDTERM_1"] == 1

    @pytest.mark.asyncio
    async def test_fast_mode_and_fallback(self, seeded_subject, fake_backend, make_engine, valid_reply):
        fake_backend.script = {"fast-model": RuntimeError("503"), "lite-model": valid_reply}
        request = PredictionRequest(
            subject_id=str(seeded_subject.id), exam_type=ExamType.END_TERM, use_thinking_model=False
        )

        result = await make_engine().predict(request)

        assert fake_backend.models_called == ["fast-model", "lite-model"]
        assert result.metadata.model_used == "lite-model"
        assert result.failed_attempts == [("fast-model", "503")]

    @pytest.mark.asyncio
    async def test_trend_hints_with_web_search(self, seeded_subject, fake_backend, make_engine, valid_reply):
        fake_backend.script = {"pro-model": valid_reply}
        request = PredictionRequest(
            subject_id=str(seeded_subject.id), exam_type=ExamType.END_TERM, use_web_search=True
        )

        await make_engine().predict(request)

        assert "## CURRENT TRENDS" in fake_backend.calls[0][1]

    @pytest.mark.asyncio
    async def test_unknown_subject(self, make_engine):
        request = PredictionRequest(
            subject_id="00000000-0000-0000-0000-000000000000", exam_type=ExamType.END_TERM
        )
        with pytest.raises(NotFoundError):
            await make_engine().predict(request)

    @pytest.mark.asyncio
    async def test_no_syllabus(self, empty_subject, make_engine):
        request = PredictionRequest(subject_id=str(empty_subject.id), exam_type=ExamType.END_TERM)
        with pytest.raises(NotFoundError, match="upload a syllabus"):
            await make_engine().predict(request)

    @pytest.mark.asyncio
    async def test_empty_scope(self, seeded_subject, fake_backend, make_engine):
        request = PredictionRequest(
            subject_id=str(seeded_subject.id),
            exam_type=ExamType.END_TERM,
            syllabus_scope=[
                ModuleScope(module_number=1, included=False),
                ModuleScope(module_number=2, included=False),
            ],
        )
        with pytest.raises(ValidationError, match="at least one module"):
            await make_engine().predict(request)
        assert fake_backend.calls == []

    @pytest.mark.asyncio
    async def test_failures_store_nothing(self, db_session, seeded_subject, fake_backend, make_engine, log_records):
        fake_backend.script = {"pro-model": "I cannot help with that."}
        request = PredictionRequest(subject_id=str(seeded_subject.id), exam_type=ExamType.END_TERM)

        with pytest.raises(UnparsableResponseError):
            await make_engine().predict(request)

        assert _count(db_session, Prediction) == 0
        assert _count(db_session, PredictionQuestion) == 0
        assert any(level == "ERROR" and "failed" in msg for level, msg in log_records)

    @pytest.mark.asyncio
    async def test_all_models_failing(self, db_session, seeded_subject, make_engine):
        request = PredictionRequest(subject_id=str(seeded_subject.id), exam_type=ExamType.END_TERM)

        with pytest.raises(AllModelsExhaustedError):
            await make_engine().predict(request)

        assert _count(db_session, Prediction) == 0

    @pytest.mark.asyncio
    async def test_explicit_target(self, db_session, seeded_subject, fake_backend, make_engine, valid_reply):
        fake_backend.script = {"pro-model": valid_reply}
        request = PredictionRequest(
            subject_id=str(seeded_subject.id),
            exam_type=ExamType.MIDTERM_2,
            target_year=2026,
            target_semester=2,
        )

        result = await make_engine().predict(request)

        stored = db_session.get(Prediction, result.prediction_id)
        assert (stored.target_year, stored.target_semester) == (2026, 2)


class TestRunPrediction:
    @pytest.mark.asyncio
    async def test_success_envelope(self, db_session, seeded_subject, fake_backend, fake_client, engine_config, valid_reply):
        fake_backend.script = {"pro-model": valid_reply}

        envelope = await run_prediction(
            db_session,
            fake_client,
            {"subjectId": str(seeded_subject.id), "examType": "END_TERM"},
            engine_config,
        )

        assert envelope["success"] is True
        assert len(envelope["predictions"]) == 3
        assert envelope["predictions"][0]["difficulty"] == "MEDIUM"
        assert envelope["metadata"]["modelUsed"] == "pro-model"
        assert envelope["metadata"]["examType"] == "END_TERM"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload, message",
        [
            ({"examType": "END_TERM"}, "Subject ID is required"),
            ({"subjectId": "x"}, "Exam type is required"),
        ],
    )
    async def test_missing_fields(self, db_session, fake_client, payload, message):
        envelope = await run_prediction(db_session, fake_client, payload)
        assert envelope == {"success": False, "error": message, "errorCode": "validation_error"}

    @pytest.mark.asyncio
    async def test_invalid_exam_type(self, db_session, fake_client):
        envelope = await run_prediction(
            db_session, fake_client, {"subjectId": "x", "examType": "FINAL"}
        )
        assert envelope["errorCode"] == "validation_error"
        assert envelope["error"].startswith("Invalid prediction request")

    @pytest.mark.asyncio
    async def test_error_code_preserved(self, db_session, seeded_subject, fake_client, engine_config):
        envelope = await run_prediction(
            db_session,
            fake_client,
            {"subjectId": str(seeded_subject.id), "examType": "END_TERM"},
            engine_config,
        )
        assert envelope["success"] is False
        assert envelope["errorCode"] == "all_models_exhausted"


class TestConfig:
    def test_default_target(self):
        assert default_target(datetime(2025, 6, 30)) == (2025, 1)
        assert default_target(datetime(2025, 7, 1)) == (2025, 2)

    def test_from_settings(self):
        from config import Settings

        settings = Settings(
            prediction_model_pro="p",
            prediction_model_fast="f",
            prediction_model_fallbacks="f, l ,",
            prediction_time_budget_seconds=45,
            freshness_half_life_days=100,
        )
        config = EngineConfig.from_settings(settings)

        assert config.models == ModelSettings(pro="p", fast="f", fallbacks=("f", "l"))
        assert config.time_budget_seconds == 45
        assert config.freshness.half_life_days == 100
