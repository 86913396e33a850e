"""
Syllabus Scope Resolver.

A scope is the caller-editable inclusion/exclusion selection over a
syllabus's modules and topics for a single prediction request. Scopes are
immutable values rebuilt from storage on every request; caller edits are
layered on top with `apply_scope`.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from examcast.db.models import Syllabus
from examcast.db.queries import get_current_syllabus, get_subject

from .errors import NotFoundError

_SCOPE_CONFIG = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class TopicScope(BaseModel):
    """Inclusion flag for one topic."""

    model_config = _SCOPE_CONFIG

    name: str
    included: bool = True


class ModuleScope(BaseModel):
    """Inclusion flags for one module and its topics.

    Serialises with camelCase keys (moduleNumber, moduleName, excludedTopics)
    and accepts either camelCase or snake_case on input.
    """

    model_config = _SCOPE_CONFIG

    module_number: int = Field(..., ge=1)
    module_name: str = ""
    included: bool = True
    topics: tuple[TopicScope, ...] = ()
    excluded_topics: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScopedModule:
    """An included module reduced to its included topic names."""

    number: int
    name: str
    topics: tuple[str, ...]

    def label(self) -> str:
        return f"Module {self.number}: {self.name}"


def build_scope_snapshot(syllabus: Syllabus) -> list[ModuleScope]:
    """Default scope for a syllabus: everything included, stored order."""
    modules = sorted(syllabus.modules, key=lambda m: m.number)
    return [
        ModuleScope(
            module_number=module.number,
            module_name=module.name,
            included=True,
            topics=tuple(
                TopicScope(name=topic.name, included=True)
                for topic in sorted(module.topics, key=lambda t: (t.order_index, t.name))
            ),
            excluded_topics=(),
        )
        for module in modules
    ]


def resolve_scope(session: Session, subject_id: str | UUID) -> list[ModuleScope]:
    """
    Load the current syllabus of a subject as a default scope.

    Raises:
        NotFoundError: Unknown subject, or the subject has no syllabus yet
    """
    if get_subject(session, subject_id) is None:
        raise NotFoundError(f"Subject not found: {subject_id}")

    syllabus = get_current_syllabus(session, subject_id)
    if syllabus is None:
        raise NotFoundError(
            "No syllabus found for this subject. Please upload a syllabus first."
        )

    return build_scope_snapshot(syllabus)


def _normalize_exclusions(values: Sequence[str]) -> tuple[str, ...]:
    seen: list[str] = []
    for value in values:
        cleaned = value.strip()
        if cleaned and cleaned.casefold() not in {s.casefold() for s in seen}:
            seen.append(cleaned)
    return tuple(seen)


def _is_excluded(topic_name: str, exclusions: tuple[str, ...]) -> bool:
    name = topic_name.casefold()
    return any(excluded.casefold() in name for excluded in exclusions)


def apply_scope(
    stored: Syllabus | Sequence[ModuleScope],
    caller_scope: Sequence[ModuleScope] | None,
) -> list[ModuleScope]:
    """
    Layer a caller-edited scope onto the authoritative topic list.

    Stored modules/topics decide what exists and in which order; the caller
    only decides inclusion. Topics the caller has not seen (the syllabus
    gained them since) default to included, while caller entries that are
    no longer stored are dropped. Applying the result again is a no-op.
    """
    snapshot = build_scope_snapshot(stored) if isinstance(stored, Syllabus) else list(stored)
    if not caller_scope:
        return snapshot

    overrides: dict[int, ModuleScope] = {}
    for entry in caller_scope:
        overrides.setdefault(entry.module_number, entry)

    stored_numbers = {m.module_number for m in snapshot}
    dropped = sorted(set(overrides) - stored_numbers)
    if dropped:
        logger.debug(f"Dropping scope entries for modules no longer stored: {dropped}")

    effective: list[ModuleScope] = []
    for module in snapshot:
        override = overrides.get(module.module_number)
        if override is None:
            effective.append(module)
            continue

        flags: dict[str, bool] = {}
        for topic in override.topics:
            flags.setdefault(topic.name.casefold(), topic.included)
        exclusions = _normalize_exclusions(override.excluded_topics)

        topics = tuple(
            TopicScope(
                name=topic.name,
                included=flags.get(topic.name.casefold(), True)
                and not _is_excluded(topic.name, exclusions),
            )
            for topic in module.topics
        )
        effective.append(
            ModuleScope(
                module_number=module.module_number,
                module_name=module.module_name,
                included=override.included,
                topics=topics,
                excluded_topics=exclusions,
            )
        )

    return effective


def included_topics(scope: Sequence[ModuleScope]) -> list[ScopedModule]:
    """Included modules that still have at least one included topic."""
    filtered = []
    for module in scope:
        if not module.included:
            continue
        names = tuple(t.name for t in module.topics if t.included)
        if names:
            filtered.append(ScopedModule(module.module_number, module.module_name, names))
    return filtered
