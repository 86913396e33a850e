"""
Syllabus scope router.

The web client fetches the default scope, lets the user toggle modules and
topics, and sends the edited scope back with a prediction request.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from examcast.db.database import get_session
from examcast.prediction.errors import ValidationError
from examcast.prediction.scope import resolve_scope

router = APIRouter()


@router.get("/syllabus-scope", summary="Default syllabus scope for a subject")
def get_syllabus_scope(
    subject_id: str | None = Query(None, alias="subjectId"),
    db: Session = Depends(get_session),
) -> dict[str, Any]:
    """
    Every module and topic of the subject's current syllabus, all included.

    Returns {success, modules} with camelCase module entries.
    """
    if not subject_id:
        raise ValidationError("Subject ID is required")

    modules = resolve_scope(db, subject_id)
    return {
        "success": True,
        "modules": [m.model_dump(by_alias=True, mode="json") for m in modules],
    }
