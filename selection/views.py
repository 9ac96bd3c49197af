"""
View and rating aggregates for selection.

Every time a passage is shown a view record is written; readers may rate it
afterwards. Selection only sees per-passage aggregates: view count, last
seen time and the average of the most recent ratings.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional

from shared.config import SelectionConfig

from .sampler import start_of_day
from .weighting import EntryStub

logger = logging.getLogger(__name__)

VALID_RATINGS = (1, 2, 3)


class ViewType(str, Enum):
    DAILY = "daily"
    RANDOM = "random"
    SEARCH = "search"


@dataclass
class ViewRecord:
    """One presentation of a passage."""

    id: int
    entry_id: int
    viewed_at: datetime
    view_type: ViewType = ViewType.DAILY
    rating: Optional[int] = None


@dataclass
class ViewAggregate:
    view_count: int = 0
    last_seen: Optional[datetime] = None
    avg_rating: Optional[float] = None


class ViewLog:
    """
    In-memory view history.

    At most one daily view is kept per passage per UTC day; recording it
    again returns the existing record.

    Usage:
        log = ViewLog()
        record = log.record_view(entry_id=42, view_type=ViewType.DAILY)
        log.rate(record.id, 3)
        stats = log.aggregate(42)
    """

    def __init__(self, config: Optional[SelectionConfig] = None):
        self.config = config or SelectionConfig()
        self._records: Dict[int, ViewRecord] = {}
        self._by_entry: Dict[int, List[ViewRecord]] = {}

    def record_view(
        self,
        entry_id: int,
        view_type: ViewType = ViewType.DAILY,
        viewed_at: Optional[datetime] = None,
    ) -> ViewRecord:
        viewed_at = viewed_at or datetime.now(timezone.utc)
        if viewed_at.tzinfo is None:
            viewed_at = viewed_at.replace(tzinfo=timezone.utc)
        view_type = ViewType(view_type)

        if view_type is ViewType.DAILY:
            day = viewed_at.astimezone(timezone.utc).date()
            for existing in self._by_entry.get(entry_id, []):
                if (
                    existing.view_type is ViewType.DAILY
                    and existing.viewed_at.astimezone(timezone.utc).date() == day
                ):
                    return existing

        record = ViewRecord(
            id=len(self._records) + 1,
            entry_id=entry_id,
            viewed_at=viewed_at,
            view_type=view_type,
        )
        self._records[record.id] = record
        self._by_entry.setdefault(entry_id, []).append(record)
        logger.debug(f"Recorded {view_type.value} view {record.id} for entry {entry_id}")
        return record

    def rate(self, record_id: int, rating: int) -> ViewRecord:
        """
        Attach a rating to an existing view.

        Raises:
            KeyError: unknown view record
            ValueError: rating outside 1..3
        """
        if rating not in VALID_RATINGS:
            raise ValueError(f"Rating must be one of {VALID_RATINGS}, got {rating}")
        record = self._records.get(record_id)
        if record is None:
            raise KeyError(f"Unknown view record: {record_id}")
        record.rating = rating
        return record

    def aggregate(self, entry_id: int, before: Optional[datetime] = None) -> ViewAggregate:
        """Aggregates over this passage's views, only those strictly before `before` if given."""
        records = self._by_entry.get(entry_id, [])
        if before is not None:
            if before.tzinfo is None:
                before = before.replace(tzinfo=timezone.utc)
            records = [r for r in records if r.viewed_at < before]
        if not records:
            return ViewAggregate()

        ordered = sorted(records, key=lambda r: r.viewed_at, reverse=True)
        ratings = [r.rating for r in ordered if r.rating is not None][: self.config.recent_ratings]

        return ViewAggregate(
            view_count=len(records),
            last_seen=ordered[0].viewed_at,
            avg_rating=sum(ratings) / len(ratings) if ratings else None,
        )


def build_stubs(
    entries: Iterable,
    view_log: Optional[ViewLog] = None,
    before: Optional[datetime] = None,
) -> List[EntryStub]:
    """
    Selection stubs for reflectable passages that have ids.

    Args:
        entries: Passages (retrieval.Entry or anything with the same fields)
        view_log: View history; every passage counts as unseen without one
        before: Only count views strictly before this time
    """
    stubs = []
    for entry in entries:
        if not entry.reflectable or entry.id is None:
            continue
        stats = view_log.aggregate(entry.id, before) if view_log else ViewAggregate()
        stubs.append(
            EntryStub(
                id=entry.id,
                source=entry.source,
                marked=bool(entry.marked),
                view_count=stats.view_count,
                last_seen=stats.last_seen,
                avg_rating=stats.avg_rating,
            )
        )
    return stubs


def daily_stubs(entries: Iterable, view_log: Optional[ViewLog], date_str: str) -> List[EntryStub]:
    """
    Stubs for the daily pick on date_str.

    Views from that day onwards are ignored, so recording the day's view does
    not change the pick for later callers.
    """
    return build_stubs(entries, view_log, before=start_of_day(date_str))
