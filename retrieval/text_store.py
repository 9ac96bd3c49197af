"""
Keyed passage store.

Search needs point lookups by (source, book, entry) and a bounded substring
scan over an allow-list of sources. InMemoryTextStore is the reference
adapter; a full-corpus scan is fine at a few thousand passages.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

EntryKey = Tuple[str, int, str]


@dataclass(frozen=True)
class Entry:
    """An immutable passage, unique by (source, book, entry)."""

    source: str
    book: int
    entry: str
    text: str
    marked: bool = False
    reflectable: bool = True
    id: Optional[int] = None
    heading: Optional[str] = None

    @property
    def key(self) -> EntryKey:
        return (self.source, self.book, self.entry)


class TextStore(ABC):
    """Read interface the retrieval core needs from a passage store."""

    @abstractmethod
    def get(self, source: str, book: int, entry: str) -> Optional[Entry]:
        """Exact key lookup."""

    def get_many(self, keys: Iterable[EntryKey]) -> Dict[EntryKey, Entry]:
        """Lookup several keys; missing keys are absent from the result."""
        rows = {}
        for key in dict.fromkeys(keys):
            row = self.get(*key)
            if row is not None:
                rows[key] = row
        return rows

    @abstractmethod
    def find_by_reference(
        self, book: int, entry: str, sources: Sequence[str]
    ) -> List[Entry]:
        """All passages numbered book.entry within the given sources."""

    @abstractmethod
    def scan_contains(
        self, terms: Sequence[str], sources: Sequence[str], limit: int
    ) -> List[Entry]:
        """Passages whose lowercased text contains any term, up to limit."""


class InMemoryTextStore(TextStore):
    """
    Dict-backed passage store.

    Usage:
        store = InMemoryTextStore()
        store.add_entries(entries)
        row = store.get("meditations", 6, "26")
    """

    def __init__(self, entries: Optional[Iterable[Entry]] = None):
        self._entries: Dict[EntryKey, Entry] = {}
        self._next_id = 1
        if entries:
            self.add_entries(entries)

    def add(self, entry: Entry) -> Entry:
        """
        Insert a passage, assigning an id if it has none.

        Raises:
            ValueError: if the (source, book, entry) key already exists
        """
        if entry.key in self._entries:
            raise ValueError(f"Duplicate entry key: {entry.key}")

        if entry.id is None:
            entry = replace(entry, id=self._next_id)
        self._next_id = max(self._next_id, entry.id) + 1

        self._entries[entry.key] = entry
        return entry

    def add_entries(self, entries: Iterable[Entry]) -> List[Entry]:
        added = [self.add(e) for e in entries]
        logger.info(f"Added {len(added)} entries to text store")
        return added

    def get(self, source: str, book: int, entry: str) -> Optional[Entry]:
        return self._entries.get((source, book, entry))

    def find_by_reference(
        self, book: int, entry: str, sources: Sequence[str]
    ) -> List[Entry]:
        allowed = set(sources)
        return [
            row
            for row in self._entries.values()
            if row.book == book and row.entry == entry and row.source in allowed
        ]

    def scan_contains(
        self, terms: Sequence[str], sources: Sequence[str], limit: int
    ) -> List[Entry]:
        needles = [t.lower() for t in terms if t]
        if not needles or limit <= 0:
            return []

        allowed = set(sources)
        rows = []
        for row in self._entries.values():
            if row.source not in allowed:
                continue
            text = row.text.lower()
            if any(needle in text for needle in needles):
                rows.append(row)
                if len(rows) >= limit:
                    break
        return rows

    def set_reflectable(self, key: EntryKey, reflectable: bool) -> Entry:
        """Toggle daily/random eligibility for one passage."""
        current = self._entries.get(key)
        if current is None:
            raise KeyError(f"Unknown entry: {key}")
        updated = replace(current, reflectable=reflectable)
        self._entries[key] = updated
        return updated

    def reflectable_entries(self) -> List[Entry]:
        return [row for row in self._entries.values() if row.reflectable]

    def count(self) -> int:
        return len(self._entries)
