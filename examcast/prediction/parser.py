"""
Response Validator/Normalizer.

Treats model output as an untrusted wire format:
1. Strip markdown code fences
2. Locate the balanced JSON object/array that looks like the payload if prose surrounds it
3. Parse, failing loudly (never an empty list) when that is impossible
4. Validate and coerce every question; one bad item rejects the batch
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from examcast.enums import Difficulty

from .errors import ResponseSchemaError, UnparsableResponseError

_FENCE_OPEN = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\r?\n?")
_FENCE_LINE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\r?\n", re.MULTILINE)
_FENCE_CLOSE = "```"
_PAIRS = {"{": "}", "[": "]"}


@dataclass(frozen=True)
class PredictedQuestion:
    """A validated predicted exam question."""

    id: str
    text: str
    probability: float
    module: str = ""
    topic: str = ""
    difficulty: Difficulty = Difficulty.MEDIUM
    marks: int = 0
    reasoning: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        """Wire shape, identical to what the prompt asks the model for."""
        return {
            "id": self.id,
            "text": self.text,
            "probability": self.probability,
            "module": self.module,
            "topic": self.topic,
            "difficulty": self.difficulty.value,
            "marks": self.marks,
            "reasoning": list(self.reasoning),
        }


# =========================================================================
# Stage 1-2: Repair
# =========================================================================


def strip_code_fence(text: str) -> str:
    """
    Remove a ```json ... ``` (or bare ```) wrapper.

    The fence must open the reply or sit on its own line after leading
    prose; the body runs to the last closing fence, so backticks inside
    question text survive.
    """
    stripped = text.strip()
    opener = _FENCE_OPEN.match(stripped) if stripped.startswith(_FENCE_CLOSE) else None
    if opener is None:
        opener = _FENCE_LINE.search(stripped)
    if opener is None:
        return stripped

    body_start = opener.end()
    end = stripped.rfind(_FENCE_CLOSE)
    body = stripped[body_start:end] if end >= body_start else stripped[body_start:]
    return body.strip()


def find_json_span(text: str) -> str | None:
    """
    Balanced {...} or [...] span most likely to be the payload.

    Candidates are matched string- and escape-aware. The first one that
    parses to an object (or to a list holding objects) wins, then the first
    one that parses at all, then the first balanced one.
    """
    first_balanced = None
    first_parsed = None
    for start, char in enumerate(text):
        if char not in _PAIRS:
            continue
        span = _match_from(text, start)
        if span is None:
            continue
        first_balanced = first_balanced or span
        try:
            value = json.loads(span)
        except json.JSONDecodeError:
            continue
        if _is_payload(value):
            return span
        first_parsed = first_parsed or span
    return first_parsed or first_balanced


def _is_payload(value: Any) -> bool:
    if isinstance(value, dict):
        return True
    return isinstance(value, list) and any(isinstance(item, dict) for item in value)


def _match_from(text: str, start: int) -> str | None:
    stack = [_PAIRS[text[start]]]
    in_string = False
    escaped = False

    for index in range(start + 1, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in _PAIRS:
            stack.append(_PAIRS[char])
        elif char in ("}", "]"):
            if char != stack[-1]:
                return None
            stack.pop()
            if not stack:
                return text[start : index + 1]
    return None


def extract_json_text(raw_text: str) -> str:
    """
    Apply the repair steps and return the candidate JSON text.

    Each step runs only when the previous one did not yield parseable JSON.
    """
    text = (raw_text or "").strip()
    if _is_json(text):
        return text
    unfenced = strip_code_fence(text)
    if _is_json(unfenced):
        return unfenced
    return find_json_span(unfenced) or unfenced


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except json.JSONDecodeError:
        return False
    return True


# =========================================================================
# Stage 4: Field coercion
# =========================================================================


def _coerce_probability(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    number = float(value)
    if not math.isfinite(number):
        return None
    return min(1.0, max(0.0, number))


def _coerce_difficulty(value: Any) -> Difficulty:
    if isinstance(value, str):
        try:
            return Difficulty(value.strip().upper())
        except ValueError:
            pass
    return Difficulty.MEDIUM


def _coerce_marks(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number) or number < 0:
        return 0
    return int(number)


def _coerce_reasoning(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value if item is not None)
    return (str(value),)


def _coerce_label(value: Any) -> str:
    return "" if value is None else str(value).strip()


def validate_question(item: Any, index: int, raw_text: str = "") -> PredictedQuestion:
    """
    Validate one parsed item into a PredictedQuestion.

    Raises:
        ResponseSchemaError: Not an object, empty text, or unusable probability
    """
    if not isinstance(item, dict):
        raise ResponseSchemaError(
            f"Prediction {index + 1} is not an object", raw_text, index=index
        )

    text = item.get("text")
    if not isinstance(text, str) or not text.strip():
        raise ResponseSchemaError(
            f"Prediction {index + 1} has no question text", raw_text, index=index
        )

    probability = _coerce_probability(item.get("probability"))
    if probability is None:
        raise ResponseSchemaError(
            f"Prediction {index + 1} has an invalid probability: {item.get('probability')!r}",
            raw_text,
            index=index,
        )

    raw_id = item.get("id")
    return PredictedQuestion(
        id=str(raw_id).strip() if raw_id not in (None, "") else f"pred_{index + 1}",
        text=text.strip(),
        probability=probability,
        module=_coerce_label(item.get("module")),
        topic=_coerce_label(item.get("topic")),
        difficulty=_coerce_difficulty(item.get("difficulty")),
        marks=_coerce_marks(item.get("marks")),
        reasoning=_coerce_reasoning(item.get("reasoning")),
    )


def _question_items(data: Any, raw_text: str) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if "predictions" in data:
            items = data["predictions"]
            if not isinstance(items, list):
                raise ResponseSchemaError('"predictions" is not an array', raw_text)
            return items
        if "text" in data:
            return [data]
    raise ResponseSchemaError(
        'Expected a "predictions" array or a list of questions', raw_text
    )


# =========================================================================
# Public API
# =========================================================================


def parse_predictions(raw_text: str) -> list[PredictedQuestion]:
    """
    Parse a free-text model reply into validated questions.

    Raises:
        UnparsableResponseError: No JSON could be recovered from the reply
        ResponseSchemaError: JSON recovered but any question violates the schema
    """
    candidate = extract_json_text(raw_text)
    if not candidate:
        raise UnparsableResponseError("Model returned an empty response", raw_text or "")

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {e}; response starts with: {candidate[:200]!r}")
        raise UnparsableResponseError(
            f"Could not parse model response as JSON: {e.msg}", candidate
        ) from e

    items = _question_items(data, candidate)
    try:
        questions = [validate_question(item, i, candidate) for i, item in enumerate(items)]
    except ResponseSchemaError as e:
        logger.error(f"Rejecting batch of {len(items)} predictions: {e.message}")
        raise

    logger.debug(f"Parsed {len(questions)} predictions")
    return questions


def compute_confidence(questions: list[PredictedQuestion]) -> float:
    """Arithmetic mean of probabilities; 0.0 for an empty batch."""
    if not questions:
        return 0.0
    return math.fsum(q.probability for q in questions) / len(questions)
