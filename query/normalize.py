"""
Query normalization and token expansion.

Pipeline: raw query -> normalized text -> core tokens -> synonym expansions

Normalized text is the same form the lexical scorer compares against, so a
query and a passage normalize identically.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from shared.config import CorpusConfig, SearchConfig

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9\s]+")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class QueryTerms:
    """Normalized query plus the token lists used for lexical retrieval and scoring."""

    normalized_query: str
    core_tokens: List[str] = field(default_factory=list)
    expanded_tokens: List[str] = field(default_factory=list)
    lexical_terms: List[str] = field(default_factory=list)


def normalize_text(text: str) -> str:
    """
    Lowercase, collapse punctuation and whitespace runs to single spaces, trim.

    Example:
        >>> normalize_text("  Don't  fear, DEATH! ")
        'don t fear death'
    """
    text = _NON_ALNUM.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def tokenize_query(
    normalized_query: str,
    corpus: Optional[CorpusConfig] = None,
    config: Optional[SearchConfig] = None,
) -> List[str]:
    """Deduplicated content tokens in first-occurrence order."""
    corpus = corpus or CorpusConfig()
    config = config or SearchConfig()

    tokens = []
    seen = set()
    for token in normalized_query.split(" "):
        token = token.strip()
        if len(token) < config.min_token_length or token in corpus.stop_words:
            continue
        if token not in seen:
            seen.add(token)
            tokens.append(token)

    return tokens[: config.max_core_tokens]


def expand_tokens(
    tokens: List[str],
    corpus: Optional[CorpusConfig] = None,
    config: Optional[SearchConfig] = None,
) -> List[str]:
    """Synonym expansions of the core tokens that are not core tokens themselves."""
    corpus = corpus or CorpusConfig()
    config = config or SearchConfig()

    expanded = {}
    for token in tokens:
        for alias in corpus.synonyms.get(token, ()):
            if len(alias) >= config.min_token_length and alias not in tokens:
                expanded[alias] = None

    return list(expanded)


def prepare_query(
    raw_query: str,
    corpus: Optional[CorpusConfig] = None,
    config: Optional[SearchConfig] = None,
) -> QueryTerms:
    """
    Build every term list a search needs from the raw query.

    Args:
        raw_query: Free-text query as typed by the user
        corpus: Stopword and synonym tables
        config: Length limits

    Returns:
        QueryTerms
    """
    corpus = corpus or CorpusConfig()
    config = config or SearchConfig()

    normalized = normalize_text(raw_query)[: config.max_query_chars]
    core = tokenize_query(normalized, corpus, config)
    expanded = expand_tokens(core, corpus, config)

    lexical = [
        term
        for term in dict.fromkeys([normalized, *core, *expanded])
        if len(term.strip()) >= config.min_token_length
    ][: config.max_lexical_terms]

    logger.debug(f"Query '{normalized}': core={core}, expanded={expanded}")

    return QueryTerms(
        normalized_query=normalized,
        core_tokens=core,
        expanded_tokens=expanded,
        lexical_terms=lexical,
    )
