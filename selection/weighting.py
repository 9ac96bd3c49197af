"""
Selection weights for daily and random reflections.

final_weight = base_weight x marked_boost x source_weight x rating_multiplier

Layer 1: Spaced repetition. Unseen passages get a flat high weight; seen
         passages are suppressed after each view and recharge over time.
Layer 2: Marked boost for editorially highlighted passages.
Layer 3: Source priority (same table as search, undamped).
Layer 4: Reader feedback from the most recent ratings.
"""

import math
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from shared.config import CorpusConfig, SelectionConfig


@dataclass
class EntryStub:
    """The fields of a passage that selection needs."""

    id: int
    source: str
    marked: bool = False
    view_count: int = 0
    last_seen: Optional[datetime] = None
    avg_rating: Optional[float] = None


@dataclass
class WeightedEntry(EntryStub):
    weight: float = 0.0


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def calculate_base_weight(
    entry: EntryStub,
    now: Optional[datetime] = None,
    config: Optional[SelectionConfig] = None,
) -> float:
    """
    Spaced-repetition weight.

    recharged = min(days_since_last_seen / recharge_days, max_recharge)
    base      = recharged / log2(view_count + 1)
    """
    config = config or SelectionConfig()
    if not entry.view_count:
        return config.never_seen_weight

    if entry.last_seen is None:
        days = config.recharge_days
    else:
        now = _as_utc(now or datetime.now(timezone.utc))
        elapsed = now - _as_utc(entry.last_seen)
        days = max(elapsed.total_seconds() / 86400, 0.0)

    recharged = min(days / config.recharge_days, config.max_recharge)
    return recharged / math.log2(entry.view_count + 1)


def rating_multiplier(avg_rating: Optional[float], config: Optional[SelectionConfig] = None) -> float:
    """Map the recent average rating, rounded half up, through the feedback table."""
    config = config or SelectionConfig()
    if avg_rating is None:
        return 1.0
    return config.rating_multipliers.get(math.floor(avg_rating + 0.5), 1.0)


def calculate_entry_weight(
    entry: EntryStub,
    now: Optional[datetime] = None,
    config: Optional[SelectionConfig] = None,
    corpus: Optional[CorpusConfig] = None,
) -> float:
    """
    Calculate the selection weight for a single passage.

    Args:
        entry: Passage stub with view aggregates
        now: Reference time for recency (defaults to the current UTC time)
        config: Weighting constants
        corpus: Source priority table

    Returns:
        Non-negative weight
    """
    config = config or SelectionConfig()
    corpus = corpus or CorpusConfig()

    base = calculate_base_weight(entry, now, config)
    marked_boost = config.marked_boost if entry.marked else 1.0
    source_weight = corpus.source_weight(entry.source)

    return base * marked_boost * source_weight * rating_multiplier(entry.avg_rating, config)


def weigh_entries(
    entries: Sequence[EntryStub],
    now: Optional[datetime] = None,
    config: Optional[SelectionConfig] = None,
    corpus: Optional[CorpusConfig] = None,
) -> List[WeightedEntry]:
    """Attach weights to a list of stubs."""
    weighted = []
    for e in entries:
        stub_fields = {f.name: getattr(e, f.name) for f in fields(EntryStub)}
        weighted.append(
            WeightedEntry(**stub_fields, weight=calculate_entry_weight(e, now, config, corpus))
        )
    return weighted
