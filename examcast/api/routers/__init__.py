"""API routers for examcast."""

from examcast.api.routers import history_router, predict_router, syllabus_router

__all__ = [
    "syllabus_router",
    "predict_router",
    "history_router",
]
