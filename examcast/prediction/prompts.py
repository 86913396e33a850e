"""
Prompt Compiler for exam question prediction.

Builds one deterministic prompt from:
1. Subject/exam configuration
2. The effective syllabus scope (included modules and topics only)
3. The freshness ranking (top K topics)
4. The historical question sample and its pattern summary

The OUTPUT FORMAT section is a contract with the model: the response parser
expects exactly this shape, so it is kept as a constant and never rebuilt
from request data.
"""
from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date

from examcast.enums import ExamType

from .freshness import FreshnessEntry
from .history import HistoricalQuestion, HistorySummary
from .scope import ScopedModule

DEFAULT_TOP_K = 15

# =============================================================================
# Fixed Prompt Sections
# =============================================================================

ROLE_PROMPT = """You are an expert exam question predictor for university examinations. Your task is to predict likely questions for an upcoming {exam_label} exam."""

OUTPUT_FORMAT = """## OUTPUT FORMAT
Return ONLY valid JSON in this exact format:
{
  "predictions": [
    {
      "id": "pred_1",
      "text": "Full question text exactly as it would appear in exam paper",
      "probability": 0.85,
      "module": "Module Name",
      "topic": "Topic Name",
      "difficulty": "EASY" | "MEDIUM" | "HARD",
      "marks": 5,
      "reasoning": [
        "Short justification 1",
        "Short justification 2"
      ]
    }
  ]
}

Field rules:
- "probability" is a number between 0.0 and 1.0
- "difficulty" is exactly one of EASY, MEDIUM, HARD
- "marks" is a non-negative integer
- "reasoning" is an array of short strings

Return ONLY the JSON, no markdown or extra text."""

CRITICAL_RULES = """CRITICAL RULES:
- Generate questions ONLY from the topics listed in SYLLABUS SCOPE
- Do NOT generate questions from excluded modules or topics
- Use the exact module and topic names from SYLLABUS SCOPE
- Match the question style to {exam_label} format"""


@dataclass(frozen=True)
class PromptConfig:
    """Request-level inputs to the compiler. `as_of` is the only notion of "now"."""

    subject_name: str
    subject_code: str
    exam_type: ExamType
    question_count: int = 10
    as_of: date | None = None
    top_k: int = DEFAULT_TOP_K
    use_web_search: bool = False
    trend_hints: tuple[str, ...] = field(default_factory=tuple)


# =============================================================================
# Section Builders
# =============================================================================


def _json(value) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def _subject_section(config: PromptConfig) -> str:
    lines = [
        "## SUBJECT INFORMATION",
        f"- Subject: {config.subject_name}",
        f"- Code: {config.subject_code}",
        f"- Target Exam: {config.exam_type.label}",
        f"- Total Marks: {config.exam_type.total_marks}",
        f"- Questions Requested: {config.question_count}",
    ]
    if config.as_of is not None:
        lines.append(f"- Reference Date: {config.as_of.isoformat()}")
    return "\n".join(lines)


def _scope_section(scope: Sequence[ScopedModule]) -> str:
    payload = [
        {"module": m.number, "name": m.name, "topics": list(m.topics)}
        for m in scope
    ]
    return "## SYLLABUS SCOPE (Topics to focus on for this exam)\n" + _json(payload)


def _freshness_section(ranking: Sequence[FreshnessEntry], top_k: int) -> str:
    ordered = sorted(ranking, key=lambda e: (-e.score, e.topic, e.module_number))[:top_k]
    return (
        "## TOPIC FRESHNESS RANKING (Higher score = more likely to appear)\n"
        + _json([entry.to_dict() for entry in ordered])
    )


def _patterns_section(summary: HistorySummary, exam_type: ExamType) -> str:
    lines = [
        "## QUESTION PATTERNS",
        f"Total historical questions analyzed: {summary.total_questions}",
        f"Questions from previous {exam_type.label} exams: {summary.target_exam_questions}",
        "",
        "### Questions by Exam Type:",
        _json(summary.by_exam_type),
        "",
        "### Marks Distribution:",
        _json({str(k): v for k, v in summary.marks_distribution.items()}),
    ]
    if summary.module_frequency:
        lines += ["", "### Module Frequency:", _json(summary.module_frequency)]
    if summary.repeated_topics:
        lines += ["", "### Repeated Topics (asked multiple times):", _json(summary.repeated_topics)]
    return "\n".join(lines)


def _history_section(history: Sequence[HistoricalQuestion]) -> str:
    return "## HISTORICAL QUESTIONS (style reference)\n" + _json(
        [q.to_dict() for q in history]
    )


def _trends_section(hints: Sequence[str]) -> str:
    return "## CURRENT TRENDS\n" + "\n".join(f"{i}. {hint}" for i, hint in enumerate(hints, 1))


def _instructions_section(config: PromptConfig) -> str:
    label = config.exam_type.label
    return f"""## INSTRUCTIONS
Generate exactly {config.question_count} predicted exam questions for {label}. For each question:

1. Prioritize topics with high freshness scores (not asked recently)
2. Favor topics that repeat across exams
3. Match the style and marks pattern of previous {label} papers
4. Balance questions across the included modules
5. Provide short reasoning explaining WHY each question is predicted

{CRITICAL_RULES.format(exam_label=label)}"""


# =============================================================================
# Public API
# =============================================================================


def derive_trend_hints(subject_name: str, ranking: Sequence[FreshnessEntry]) -> tuple[str, ...]:
    """Deterministic trend hints from the top-ranked topics (no external search)."""
    ordered = sorted(ranking, key=lambda e: (-e.score, e.topic, e.module_number))
    topics = [e.topic for e in ordered[:3]]
    while len(topics) < 3:
        topics.append(subject_name)
    return (
        f"Recent focus on practical applications of {topics[0]}",
        f"Increased emphasis on problem-solving around {topics[1]}",
        f"Conceptual understanding of {topics[2]} expected in descriptive answers",
    )


def compile_prompt(
    config: PromptConfig,
    scope: Sequence[ScopedModule],
    freshness_ranking: Sequence[FreshnessEntry],
    history: Sequence[HistoricalQuestion],
    summary: HistorySummary | None = None,
) -> str:
    """
    Assemble the prediction prompt.

    Sections without data are omitted rather than emitted empty: with no
    history there are no pattern or historical-question sections at all.

    Returns:
        The complete prompt; identical inputs always give identical output
    """
    label = config.exam_type.label
    sections = [
        ROLE_PROMPT.format(exam_label=label),
        _subject_section(config),
        _scope_section(scope),
        _freshness_section(freshness_ranking, config.top_k),
    ]

    if history:
        if summary is not None:
            sections.append(_patterns_section(summary, config.exam_type))
        sections.append(_history_section(history))

    if config.use_web_search and config.trend_hints:
        sections.append(_trends_section(config.trend_hints))

    sections.append(_instructions_section(config))
    sections.append(OUTPUT_FORMAT)

    return "\n\n".join(sections)
