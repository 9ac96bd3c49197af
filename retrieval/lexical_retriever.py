"""
Lexical retrieval and scoring.

Pure vector retrieval misses exact phrases and numbered references
("meditations 6.26"). Substring matching captures them; the lexical score
then reranks whatever candidates survive.
"""

import logging
from typing import List, Optional, Sequence

from query.citation import Citation
from query.normalize import QueryTerms, normalize_text
from shared.config import CorpusConfig, SearchConfig

from .text_store import Entry, TextStore

logger = logging.getLogger(__name__)


def count_occurrences(haystack: str, needle: str) -> int:
    """Non-overlapping occurrences of needle in haystack."""
    if not needle:
        return 0
    return haystack.count(needle)


def lexical_score(
    entry: Entry,
    terms: QueryTerms,
    citation: Optional[Citation] = None,
    config: Optional[SearchConfig] = None,
) -> float:
    """
    Lexical relevance of a passage to a query.

    score = 1.2 * [phrase present]
          + 1.2 * (matched core tokens / core tokens)
          + 0.8 * min(capped occurrences / (core tokens * 2), 1)
          + 0.25 * (matched expansions / expansions)
          + 2.5 * [passage is the cited one]

    Terms with an empty denominator contribute nothing.

    Args:
        entry: Passage to score
        terms: Prepared query terms
        citation: Parsed citation, if the query was one
        config: Scoring weights

    Returns:
        Raw (unnormalized) lexical score
    """
    config = config or SearchConfig()
    text = normalize_text(entry.text)
    score = 0.0

    if terms.normalized_query and terms.normalized_query in text:
        score += config.phrase_weight

    core = terms.core_tokens
    if core:
        matched = 0
        frequency = 0
        for token in core:
            if token in text:
                matched += 1
            frequency += min(count_occurrences(text, token), config.frequency_cap)
        score += (matched / len(core)) * config.coverage_weight
        score += min(frequency / (len(core) * 2), 1.0) * config.frequency_weight

    expanded = terms.expanded_tokens
    if expanded:
        matched_expansions = sum(1 for token in expanded if token in text)
        score += (matched_expansions / len(expanded)) * config.expansion_weight

    if citation and citation.matches(entry.source, entry.book, entry.entry):
        score += config.citation_weight

    return score


def is_strong_lexical_rescue(
    entry: Entry,
    terms: QueryTerms,
    config: Optional[SearchConfig] = None,
) -> bool:
    """
    Whether a lexical-only hit is strong enough to join semantic results.

    Either the whole query appears verbatim, or enough core tokens do.
    """
    config = config or SearchConfig()
    text = normalize_text(entry.text)

    query = terms.normalized_query
    if len(query) >= config.rescue_min_phrase_chars and query in text:
        return True

    core = terms.core_tokens
    if len(core) >= 2:
        matches = sum(1 for token in core if token in text)
        return matches >= min(config.rescue_token_matches, len(core))

    return False


class LexicalRetriever:
    """
    Substring and citation lookups restricted to searchable sources.

    Usage:
        retriever = LexicalRetriever(store)
        rows = retriever.retrieve(terms.lexical_terms, limit=120)
        cited = retriever.retrieve_citation(citation)
    """

    def __init__(self, text_store: TextStore, corpus: Optional[CorpusConfig] = None):
        self.text_store = text_store
        self.corpus = corpus or CorpusConfig()

    def retrieve(self, lexical_terms: Sequence[str], limit: int) -> List[Entry]:
        """Bounded full scan for passages containing any term."""
        if not lexical_terms:
            return []

        rows = self.text_store.scan_contains(
            lexical_terms, self.corpus.searchable_sources, limit
        )
        logger.debug(f"Lexical scan: {len(lexical_terms)} terms -> {len(rows)} rows")
        return rows

    def retrieve_citation(self, citation: Optional[Citation]) -> List[Entry]:
        """Direct lookup of the cited passage(s)."""
        if citation is None:
            return []

        if citation.source:
            if not self.corpus.is_searchable(citation.source):
                return []
            row = self.text_store.get(citation.source, citation.book, citation.entry)
            return [row] if row else []

        return self.text_store.find_by_reference(
            citation.book, citation.entry, self.corpus.searchable_sources
        )
