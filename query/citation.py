"""
Citation detection for queries like "meditations 6.26" or "4.3".
"""

import re
from dataclasses import dataclass
from typing import Optional

from shared.config import CorpusConfig


@dataclass(frozen=True)
class Citation:
    """A parsed "[source] book.entry" reference."""

    book: int
    entry: str
    source: Optional[str] = None

    def matches(self, source: str, book: int, entry: str) -> bool:
        """Whether a passage key is the cited passage."""
        return (
            book == self.book
            and entry.lower() == self.entry
            and (self.source is None or source == self.source)
        )


def _citation_pattern(corpus: CorpusConfig) -> re.Pattern:
    sources = "|".join(re.escape(s) for s in corpus.searchable_sources)
    return re.compile(rf"^(?:({sources})\s+)?(\d+)\.(\d+[a-z]?)$", re.IGNORECASE)


def parse_citation(raw_query: str, corpus: Optional[CorpusConfig] = None) -> Optional[Citation]:
    """
    Parse a query that is exactly a citation.

    Extra words around the reference mean it is not a citation query.

    Example:
        >>> parse_citation("Meditations 6.26")
        Citation(book=6, entry='26', source='meditations')
        >>> parse_citation("what does 6.26 say") is None
        True
    """
    corpus = corpus or CorpusConfig()
    match = _citation_pattern(corpus).match(raw_query.strip())
    if not match:
        return None

    source = match.group(1)
    return Citation(
        source=source.lower() if source else None,
        book=int(match.group(2)),
        entry=match.group(3).lower(),
    )
