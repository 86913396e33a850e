"""
Prediction Engine.

Runs one prediction request as a single sequential chain:

    PENDING -> SCOPE_RESOLVED -> PROMPT_COMPILED -> MODEL_INVOKED
            -> RESPONSE_VALIDATED | FAILED

Nothing intermediate is stored; only a validated result is written. Requests
share no in-process state, so concurrent runs for the same subject need no
coordination beyond the database.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger
from sqlalchemy.orm import Session

from config import Settings
from examcast.db.models import Prediction, PredictionQuestion, Syllabus
from examcast.db.queries import get_current_syllabus, get_subject

from .client import (
    GeminiBackend,
    GenerationClient,
    ModelSettings,
    build_model_preferences,
)
from .errors import NotFoundError, PredictionError, ValidationError
from .freshness import FreshnessEntry, FreshnessModel
from .history import load_history, summarize_history
from .parser import PredictedQuestion, compute_confidence, parse_predictions
from .prompts import DEFAULT_TOP_K, PromptConfig, compile_prompt, derive_trend_hints
from .schemas import PredictionMetadata, PredictionRequest, PredictionResult
from .scope import ScopedModule, apply_scope, included_topics


class PredictionStage(str, Enum):
    """Lifecycle of a single prediction request."""

    PENDING = "pending"
    SCOPE_RESOLVED = "scope_resolved"
    PROMPT_COMPILED = "prompt_compiled"
    MODEL_INVOKED = "model_invoked"
    RESPONSE_VALIDATED = "response_validated"
    FAILED = "failed"


@dataclass(frozen=True)
class EngineConfig:
    """Explicit pipeline configuration; the engine never reads the environment."""

    models: ModelSettings = field(default_factory=ModelSettings)
    time_budget_seconds: float = 120.0
    default_question_count: int = 10
    history_limit: int = 20
    history_max_chars: int = 600
    history_char_budget: int = 8000
    top_k: int = DEFAULT_TOP_K
    freshness: FreshnessModel = field(default_factory=FreshnessModel)

    @classmethod
    def from_settings(cls, settings: Settings) -> EngineConfig:
        cfg = settings.get_prediction_config()
        return cls(
            models=ModelSettings(
                pro=cfg["models"]["pro"],
                fast=cfg["models"]["fast"],
                fallbacks=tuple(cfg["models"]["fallbacks"]),
            ),
            time_budget_seconds=cfg["time_budget_seconds"],
            default_question_count=cfg["default_question_count"],
            history_limit=cfg["history"]["limit"],
            history_max_chars=cfg["history"]["max_question_chars"],
            history_char_budget=cfg["history"]["char_budget"],
            top_k=cfg["freshness"]["top_k"],
            freshness=FreshnessModel(
                half_life_days=cfg["freshness"]["half_life_days"],
                frequency_weight=cfg["freshness"]["frequency_weight"],
            ),
        )


def build_client(settings: Settings) -> GenerationClient:
    """Gemini-backed client from settings (raises ValueError without an API key)."""
    backend = GeminiBackend(
        api_key=settings.gemini_api_key,
        temperature=settings.generation_temperature,
        max_output_tokens=settings.generation_max_output_tokens,
        request_timeout=settings.prediction_request_timeout_seconds,
    )
    return GenerationClient(backend, time_budget_seconds=settings.prediction_time_budget_seconds)


def default_target(as_of: datetime) -> tuple[int, int]:
    """(year, semester) a prediction targets when the caller does not say."""
    return as_of.year, 1 if as_of.month <= 6 else 2


class PredictionEngine:
    """
    Turns a syllabus and its question history into stored predictions.

    Pipeline:
    1. Resolve the effective scope (stored syllabus + caller edits)
    2. Rank topic freshness within the scope
    3. Load a bounded historical sample
    4. Compile the prompt
    5. Call the model through the fallback chain
    6. Parse/validate the reply and persist it
    """

    def __init__(
        self,
        session: Session,
        client: GenerationClient,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session = session
        self.client = client
        self.config = config or EngineConfig()
        self._clock = clock

    # =========================================================================
    # Stage helpers
    # =========================================================================

    def _rank_topics(
        self,
        syllabus: Syllabus,
        scoped: list[ScopedModule],
        as_of: datetime,
    ) -> list[FreshnessEntry]:
        wanted = {m.number: {t.casefold() for t in m.topics} for m in scoped}
        entries = []
        for module in syllabus.modules:
            names = wanted.get(module.number)
            if not names:
                continue
            for topic in module.topics:
                if topic.name.casefold() not in names:
                    continue
                entries.append(
                    self.config.freshness.entry(
                        module_number=module.number,
                        module_name=module.name,
                        topic=topic.name,
                        times_asked=topic.times_asked or 0,
                        last_asked_date=topic.last_asked_date,
                        as_of=as_of,
                    )
                )
        return FreshnessModel.rank(entries)

    def _persist(
        self,
        request: PredictionRequest,
        subject_id,
        subject_code: str,
        questions: list[PredictedQuestion],
        confidence: float,
        model_used: str,
        as_of: datetime,
    ) -> Prediction:
        year, semester = default_target(as_of)
        record = Prediction(
            subject_id=subject_id,
            subject_code=subject_code,
            target_exam_type=request.exam_type,
            target_year=request.target_year or year,
            target_semester=request.target_semester or semester,
            confidence=confidence,
            model_version=model_used,
            questions=[
                PredictionQuestion(
                    position=index,
                    generated_text=q.text,
                    probability=q.probability,
                    reasoning=list(q.reasoning),
                    suggested_marks=q.marks,
                    difficulty=q.difficulty,
                    target_module=q.module or None,
                    target_topic=q.topic or None,
                )
                for index, q in enumerate(questions)
            ],
        )
        self.session.add(record)
        try:
            self.session.commit()
        except Exception:  # Intentionally broad - rollback on any error before re-raising
            self.session.rollback()
            raise
        return record

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def predict(self, request: PredictionRequest) -> PredictionResult:
        """
        Run the full pipeline for one request.

        Raises:
            NotFoundError: Unknown subject or no syllabus uploaded
            ValidationError: Scope excludes every module/topic
            AllModelsExhaustedError: Every candidate model failed
            GenerationTimeoutError: Overall time budget exceeded
            UnparsableResponseError: Reply could not be parsed/validated
        """
        stage = PredictionStage.PENDING
        logger.info(
            f"Prediction requested: subject={request.subject_id} exam={request.exam_type.value}"
        )

        try:
            subject = get_subject(self.session, request.subject_id)
            if subject is None:
                raise NotFoundError(f"Subject not found: {request.subject_id}")
            syllabus = get_current_syllabus(self.session, subject.id)
            if syllabus is None:
                raise NotFoundError(
                    "No syllabus found for this subject. Please upload a syllabus first."
                )

            scope = apply_scope(syllabus, request.syllabus_scope)
            scoped = included_topics(scope)
            if not scoped:
                raise ValidationError(
                    "No modules/topics included in scope. Please select at least one module."
                )
            stage = PredictionStage.SCOPE_RESOLVED
            logger.debug(f"Stage {stage.value}: {len(scoped)} modules in scope")

            as_of = self._clock()
            ranking = self._rank_topics(syllabus, scoped, as_of)
            history = load_history(
                self.session,
                subject.id,
                self.config.history_limit,
                max_question_chars=self.config.history_max_chars,
                char_budget=self.config.history_char_budget,
            )
            summary = summarize_history(history, request.exam_type) if history else None

            prompt_config = PromptConfig(
                subject_name=subject.name,
                subject_code=subject.code,
                exam_type=request.exam_type,
                question_count=request.question_count or self.config.default_question_count,
                as_of=as_of.date(),
                top_k=self.config.top_k,
                use_web_search=request.use_web_search,
                trend_hints=derive_trend_hints(subject.name, ranking)
                if request.use_web_search
                else (),
            )
            prompt = compile_prompt(prompt_config, scoped, ranking, history, summary)
            stage = PredictionStage.PROMPT_COMPILED
            logger.debug(f"Stage {stage.value}: {len(prompt)} chars, {len(history)} PYQs")

            preferences = build_model_preferences(
                request.model, request.use_thinking_model, self.config.models
            )
            generation = await self.client.generate(
                prompt, preferences, self.config.time_budget_seconds
            )
            stage = PredictionStage.MODEL_INVOKED
            logger.debug(f"Stage {stage.value}: answered by {generation.model}")

            questions = parse_predictions(generation.text)
            confidence = compute_confidence(questions)
            stage = PredictionStage.RESPONSE_VALIDATED

        except PredictionError as e:
            logger.error(
                f"Prediction failed after {stage.value} -> {PredictionStage.FAILED.value}: "
                f"[{e.error_code}] {e.message}"
            )
            raise

        record = self._persist(
            request, subject.id, subject.code, questions, confidence, generation.model, as_of
        )
        logger.info(
            f"Stage {stage.value}: stored prediction {record.id} "
            f"({len(questions)} questions, confidence {confidence:.2f})"
        )

        metadata = PredictionMetadata(
            subject_name=subject.name,
            subject_code=subject.code,
            exam_type=request.exam_type,
            total_questions_analyzed=len(history),
            questions_by_exam_type=summary.by_exam_type
            if summary
            else summarize_history([], request.exam_type).by_exam_type,
            modules_included=[m.label() for m in scoped],
            generated_at=as_of,
            model_used=generation.model,
            confidence=confidence,
        )
        return PredictionResult(
            prediction_id=record.id,
            predictions=questions,
            metadata=metadata,
            failed_attempts=list(generation.failed_attempts),
        )


async def run_prediction(
    session: Session,
    client: GenerationClient,
    payload: dict[str, Any] | PredictionRequest,
    config: EngineConfig | None = None,
) -> dict[str, Any]:
    """
    Convenience wrapper returning the response envelope.

    Taxonomy errors become {"success": False, "error", "errorCode"};
    anything else propagates.
    """
    try:
        request = (
            payload
            if isinstance(payload, PredictionRequest)
            else PredictionRequest.from_payload(payload)
        )
        result = await PredictionEngine(session, client, config).predict(request)
    except PredictionError as e:
        return e.to_dict()
    return result.to_dict()
