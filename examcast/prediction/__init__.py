"""
Exam question prediction pipeline.

Scope resolution -> freshness ranking -> history sampling -> prompt
compilation -> model fallback chain -> response validation -> storage.
"""

from .client import (
    GeminiBackend,
    GenerationClient,
    GenerationResult,
    ModelSettings,
    build_model_preferences,
)
from .engine import EngineConfig, PredictionEngine, PredictionStage, build_client, run_prediction
from .errors import (
    AllModelsExhaustedError,
    GenerationTimeoutError,
    NotFoundError,
    PredictionError,
    ResponseSchemaError,
    UnparsableResponseError,
    ValidationError,
)
from .freshness import FreshnessEntry, FreshnessModel, compute_freshness
from .history import HistoricalQuestion, HistorySummary, load_history, summarize_history
from .ingestion import NewQuestion, record_exam, refresh_freshness
from .parser import PredictedQuestion, compute_confidence, parse_predictions
from .prompts import PromptConfig, compile_prompt
from .schemas import PredictionRequest, PredictionResult
from .scope import ModuleScope, TopicScope, apply_scope, included_topics, resolve_scope

__all__ = [
    # Errors
    "PredictionError",
    "NotFoundError",
    "ValidationError",
    "AllModelsExhaustedError",
    "GenerationTimeoutError",
    "UnparsableResponseError",
    "ResponseSchemaError",
    # Freshness
    "FreshnessEntry",
    "FreshnessModel",
    "compute_freshness",
    # Scope
    "ModuleScope",
    "TopicScope",
    "resolve_scope",
    "apply_scope",
    "included_topics",
    # History
    "HistoricalQuestion",
    "HistorySummary",
    "load_history",
    "summarize_history",
    "NewQuestion",
    "record_exam",
    "refresh_freshness",
    # Prompt
    "PromptConfig",
    "compile_prompt",
    # Generation
    "GeminiBackend",
    "GenerationClient",
    "GenerationResult",
    "ModelSettings",
    "build_model_preferences",
    # Parsing
    "PredictedQuestion",
    "parse_predictions",
    "compute_confidence",
    # Engine
    "EngineConfig",
    "PredictionEngine",
    "PredictionStage",
    "PredictionRequest",
    "PredictionResult",
    "build_client",
    "run_prediction",
]
