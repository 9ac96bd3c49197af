"""
Weighted random selection for daily and random reflections.

Used for:
- Daily: date-seeded PRNG, so everyone sees the same passage on a given day
- Random: unseeded, different result each call

Selection is single-pass weighted reservoir sampling: O(n) time, O(1) space,
probability exactly proportional to weight regardless of input order.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Callable, Optional, Sequence

import numpy as np

from shared.config import CorpusConfig, SelectionConfig

from .weighting import EntryStub, WeightedEntry, weigh_entries

logger = logging.getLogger(__name__)

_MASK32 = 0xFFFFFFFF

RandomSource = Callable[[], float]


def _imul(a: int, b: int) -> int:
    """32-bit integer multiply, wrapping."""
    return (a * b) & _MASK32


def mulberry32(seed: int) -> RandomSource:
    """
    Mulberry32 seeded PRNG.

    Returns a function producing deterministic floats in [0, 1).
    Same seed always produces the same sequence.
    """
    state = seed & _MASK32

    def next_float() -> float:
        nonlocal state
        state = (state + 0x6D2B79F5) & _MASK32
        t = state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296

    return next_float


def date_seed(date_str: str) -> int:
    """Polynomial (x31) character hash of a date string, modulo 2**32."""
    seed = 0
    for ch in date_str:
        seed = (seed * 31 + ord(ch)) & _MASK32
    return seed


def weighted_random_selection(entries: Sequence[WeightedEntry], rng: RandomSource) -> WeightedEntry:
    """
    Select one entry using weighted reservoir sampling.

    Args:
        entries: Entries with pre-calculated weights (at least one)
        rng: Random number generator returning floats in [0, 1)

    Raises:
        ValueError: if entries is empty
    """
    if not entries:
        raise ValueError("Cannot select from an empty entry list")

    total_weight = 0.0
    selected = entries[0]

    for entry in entries:
        total_weight += entry.weight
        if rng() * total_weight < entry.weight:
            selected = entry

    return selected


def start_of_day(date_str: str) -> Optional[datetime]:
    """UTC midnight of an ISO date string, or None if it does not parse."""
    try:
        day = date.fromisoformat(date_str[:10])
    except ValueError:
        return None
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def select_daily_entry(
    entries: Sequence[EntryStub],
    date_str: str,
    now: Optional[datetime] = None,
    config: Optional[SelectionConfig] = None,
    corpus: Optional[CorpusConfig] = None,
) -> int:
    """
    Select the daily passage using date-seeded weighted selection.

    Recency is measured from the start of that (UTC) day unless `now` is
    given. Build the stubs with `daily_stubs` so views recorded later that
    day are not counted and repeated calls during the day agree.

    Returns:
        The selected entry's id
    """
    reference = now or start_of_day(date_str)
    rng = mulberry32(date_seed(date_str))
    weighted = weigh_entries(entries, reference, config, corpus)
    selected = weighted_random_selection(weighted, rng)

    logger.debug(f"Daily selection for {date_str}: entry {selected.id} of {len(entries)}")
    return selected.id


def select_random_entry(
    entries: Sequence[EntryStub],
    rng: Optional[RandomSource] = None,
    now: Optional[datetime] = None,
    config: Optional[SelectionConfig] = None,
    corpus: Optional[CorpusConfig] = None,
) -> int:
    """
    Select a random passage using weighted selection.

    Returns:
        The selected entry's id
    """
    if rng is None:
        generator = np.random.default_rng()
        rng = generator.random

    weighted = weigh_entries(entries, now, config, corpus)
    return weighted_random_selection(weighted, rng).id


def select_entry(
    entries: Sequence[EntryStub],
    seed: Optional[str] = None,
    now: Optional[datetime] = None,
    config: Optional[SelectionConfig] = None,
    corpus: Optional[CorpusConfig] = None,
) -> int:
    """Daily selection when a date seed is given, random selection otherwise."""
    if seed is not None:
        return select_daily_entry(entries, seed, now, config, corpus)
    return select_random_entry(entries, now=now, config=config, corpus=corpus)
