"""
Reflection Selection Module.

Picks one passage for the daily or random reflection:
- Multiplicative weights (spaced repetition, marked boost, source, feedback)
- Single-pass weighted reservoir sampling
- Mulberry32 date seeding for the daily pick

Usage:
    from selection import build_stubs, daily_stubs, select_daily_entry, select_random_entry

    stubs = daily_stubs(store.reflectable_entries(), view_log, "2025-03-14")
    daily_id = select_daily_entry(stubs, "2025-03-14")
    random_id = select_random_entry(build_stubs(store.reflectable_entries(), view_log))
"""

from .sampler import (
    date_seed,
    mulberry32,
    select_daily_entry,
    select_entry,
    select_random_entry,
    start_of_day,
    weighted_random_selection,
)
from .views import ViewAggregate, ViewLog, ViewRecord, ViewType, build_stubs, daily_stubs
from .weighting import (
    EntryStub,
    WeightedEntry,
    calculate_base_weight,
    calculate_entry_weight,
    rating_multiplier,
    weigh_entries,
)

__all__ = [
    "EntryStub",
    "WeightedEntry",
    "calculate_base_weight",
    "calculate_entry_weight",
    "rating_multiplier",
    "weigh_entries",
    "mulberry32",
    "date_seed",
    "weighted_random_selection",
    "select_daily_entry",
    "select_random_entry",
    "select_entry",
    "ViewLog",
    "ViewRecord",
    "ViewType",
    "ViewAggregate",
    "build_stubs",
    "daily_stubs",
    "start_of_day",
]
