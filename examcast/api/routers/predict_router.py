"""
Prediction router.

Endpoints for:
- Running a prediction for a subject and exam type
- Listing stored predictions
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy.orm import Session

from config import get_settings
from examcast.db.database import get_session
from examcast.db.models import Prediction
from examcast.db.queries import list_predictions
from examcast.prediction.client import GenerationClient
from examcast.prediction.engine import EngineConfig, PredictionEngine, build_client
from examcast.prediction.schemas import PredictionRequest

router = APIRouter()


# ========================================
# Dependencies
# ========================================


def get_generation_client() -> GenerationClient:
    """Gemini-backed generation client; 503 when no API key is configured."""
    settings = get_settings()
    if not settings.has_ai_configured():
        raise HTTPException(status_code=503, detail="Gemini API key not configured")
    return build_client(settings)


def get_engine_config() -> EngineConfig:
    return EngineConfig.from_settings(get_settings())


# ========================================
# Serialization
# ========================================


def prediction_to_dict(record: Prediction) -> dict[str, Any]:
    """Stored prediction in the wire shape used by the web client."""
    return {
        "id": str(record.id),
        "subjectId": str(record.subject_id) if record.subject_id else None,
        "subjectCode": record.subject_code,
        "targetExamType": record.target_exam_type.value,
        "targetYear": record.target_year,
        "targetSemester": record.target_semester,
        "confidence": record.confidence,
        "modelVersion": record.model_version,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
        "validated": record.validated,
        "accuracyScore": record.accuracy_score,
        "questions": [
            {
                "text": q.generated_text,
                "probability": q.probability,
                "module": q.target_module,
                "topic": q.target_topic,
                "difficulty": q.difficulty.value,
                "marks": q.suggested_marks,
                "reasoning": q.reasoning or [],
            }
            for q in record.questions
        ],
    }


# ========================================
# Endpoints
# ========================================


@router.post("/predict", summary="Predict exam questions")
def predict(
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_session),
    client: GenerationClient = Depends(get_generation_client),
    config: EngineConfig = Depends(get_engine_config),
) -> dict[str, Any]:
    """
    Run the prediction pipeline.

    Runs in the worker threadpool under its own event loop; session work
    stays off the server loop. Failures come back as
    {success: false, error, errorCode} with the matching HTTP status.
    """
    request = PredictionRequest.from_payload(payload)
    result = asyncio.run(PredictionEngine(db, client, config).predict(request))
    if result.failed_attempts:
        logger.info(f"Prediction {result.prediction_id} needed {len(result.failed_attempts)} fallback(s)")
    return result.to_dict()


@router.get("/predictions", summary="List stored predictions")
def get_predictions(
    subject_id: str | None = Query(None, alias="subjectId"),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_session),
) -> dict[str, Any]:
    """Latest predictions, newest first, optionally for one subject."""
    records = list_predictions(db, subject_id, limit)
    return {
        "success": True,
        "predictions": [prediction_to_dict(r) for r in records],
    }
