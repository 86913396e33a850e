"""
Error taxonomy for the prediction pipeline.

Every error is terminal for the current request. Each carries a stable
`error_code` so callers can give actionable guidance without parsing
messages.
"""

from __future__ import annotations

from typing import Any


class PredictionError(Exception):
    """Base class for all prediction pipeline failures."""

    error_code: str = "prediction_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.message, "errorCode": self.error_code}


class NotFoundError(PredictionError):
    """No syllabus (or no subject) exists for the requested subject."""

    error_code = "not_found"


class ValidationError(PredictionError):
    """A required request field is missing or invalid, or the scope is empty."""

    error_code = "validation_error"


class AllModelsExhaustedError(PredictionError):
    """Every candidate model in the preference list failed."""

    error_code = "all_models_exhausted"

    def __init__(
        self,
        message: str,
        last_error: BaseException | None = None,
        attempts: list[tuple[str, str]] | None = None,
    ):
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts or []


class GenerationTimeoutError(PredictionError, TimeoutError):
    """The overall time budget ran out before a model answered."""

    error_code = "timeout"

    def __init__(self, message: str, attempted_models: list[str] | None = None):
        super().__init__(message)
        self.attempted_models = attempted_models or []


class UnparsableResponseError(PredictionError):
    """The model reply could not be reduced to valid JSON."""

    error_code = "unparsable_response"

    SNIPPET_LENGTH = 500

    def __init__(self, message: str, text: str = ""):
        super().__init__(message)
        self.snippet = (text or "")[: self.SNIPPET_LENGTH]


class ResponseSchemaError(UnparsableResponseError):
    """The reply was valid JSON but violated the declared question schema."""

    def __init__(self, message: str, text: str = "", index: int | None = None):
        super().__init__(message, text)
        self.index = index
