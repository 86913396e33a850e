"""
FastAPI application for examcast.

Provides REST API for:
- Syllabus scope lookup
- Exam question prediction and prediction history
- Past paper ingestion and topic freshness maintenance
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from examcast import __version__
from examcast.db.database import get_engine, init_db
from examcast.logging_config import setup_logging
from examcast.prediction.errors import PredictionError

settings = get_settings()

# Taxonomy tag -> HTTP status
STATUS_BY_ERROR_CODE = {
    "not_found": 404,
    "validation_error": 400,
    "all_models_exhausted": 502,
    "timeout": 504,
    "unparsable_response": 502,
}


def _check_database_health() -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok", None
    except SQLAlchemyError as e:
        return "error", str(e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    setup_logging(settings.log_level, settings.log_file)
    logger.info("Starting examcast service...")
    init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    logger.info("Shutting down examcast service...")


app = FastAPI(
    title="examcast",
    description="""
    Exam question prediction from a syllabus and its past papers.

    ## Flow

    ```
    Syllabus + caller scope
        ↓ freshness ranking
    Prompt (scope, ranking, past questions)
        ↓ model fallback chain
    Validated predictions (stored)
    ```
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ========================================
# Error envelope
# ========================================


@app.exception_handler(PredictionError)
async def prediction_error_handler(request: Request, exc: PredictionError) -> JSONResponse:
    status_code = STATUS_BY_ERROR_CODE.get(exc.error_code, 500)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": problems, "errorCode": "validation_error"},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": str(exc) or "Internal server error", "errorCode": "internal_error"},
    )


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "examcast",
        "version": __version__,
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = _check_database_health()

    result: dict[str, Any] = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {
            "database": db_status,
            "ai": "configured" if settings.has_ai_configured() else "not_configured",
        },
        "models": settings.get_prediction_config()["models"],
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return result


# ========================================
# Import and mount routers
# ========================================

from examcast.api.routers import history_router, predict_router, syllabus_router

app.include_router(syllabus_router.router, prefix="/api", tags=["Syllabus"])
app.include_router(predict_router.router, prefix="/api", tags=["Predictions"])
app.include_router(history_router.router, prefix="/api/subjects", tags=["History"])
