"""
Topic Freshness Model.

Scores how "due" a topic is for re-examination. A topic that was never
asked, or asked long ago, scores higher than one asked recently or often.

    recency   = 1                                     (never asked)
              = 1 - 2 ** (-days_since / half_life)    (asked before)
    frequency = 1 / (1 + weight * times_asked)
    score     = clamp(recency * frequency, 0, 1)

Both factors are monotonic, so the score never rises as the last appearance
gets closer to `as_of` or as `times_asked` grows, and a never-asked topic
always gets the maximum for its frequency.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

DEFAULT_HALF_LIFE_DAYS = 365.0
DEFAULT_FREQUENCY_WEIGHT = 0.5


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def compute_freshness(
    times_asked: int,
    last_asked_date: date | datetime | None,
    as_of: date | datetime,
    *,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
    frequency_weight: float = DEFAULT_FREQUENCY_WEIGHT,
) -> float:
    """Freshness score in [0, 1] for a topic's stored history fields."""
    if half_life_days <= 0:
        raise ValueError("half_life_days must be positive")

    if last_asked_date is None:
        recency = 1.0
    else:
        # A future date counts as "asked today"
        days_since = max(0, (_as_date(as_of) - _as_date(last_asked_date)).days)
        recency = 1.0 - 2.0 ** (-days_since / half_life_days)

    frequency = 1.0 / (1.0 + max(0.0, frequency_weight) * max(0, times_asked or 0))
    return min(1.0, max(0.0, recency * frequency))


@dataclass(frozen=True)
class FreshnessEntry:
    """One ranked topic."""

    module_number: int
    module_name: str
    topic: str
    score: float
    times_asked: int = 0
    last_asked_date: date | None = None

    def to_dict(self) -> dict:
        return {
            "module": self.module_name,
            "topic": self.topic,
            "freshnessScore": round(self.score, 3),
            "timesAsked": self.times_asked,
            "lastAsked": self.last_asked_date.isoformat() if self.last_asked_date else None,
        }


@dataclass(frozen=True)
class FreshnessModel:
    """Binds the decay parameters; pure over the values it is given."""

    half_life_days: float = DEFAULT_HALF_LIFE_DAYS
    frequency_weight: float = DEFAULT_FREQUENCY_WEIGHT

    def score(
        self,
        times_asked: int,
        last_asked_date: date | datetime | None,
        as_of: date | datetime,
    ) -> float:
        return compute_freshness(
            times_asked,
            last_asked_date,
            as_of,
            half_life_days=self.half_life_days,
            frequency_weight=self.frequency_weight,
        )

    def entry(
        self,
        module_number: int,
        module_name: str,
        topic: str,
        times_asked: int,
        last_asked_date: date | datetime | None,
        as_of: date | datetime,
    ) -> FreshnessEntry:
        last = _as_date(last_asked_date) if last_asked_date is not None else None
        return FreshnessEntry(
            module_number=module_number,
            module_name=module_name,
            topic=topic,
            score=self.score(times_asked, last, as_of),
            times_asked=times_asked or 0,
            last_asked_date=last,
        )

    @staticmethod
    def rank(entries: list[FreshnessEntry], top_k: int | None = None) -> list[FreshnessEntry]:
        """Sort by score descending, ties broken by topic name then module."""
        ranked = sorted(entries, key=lambda e: (-e.score, e.topic, e.module_number))
        return ranked if top_k is None else ranked[:top_k]
