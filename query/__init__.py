"""
Query Understanding Module.

Turns a raw query into the pieces retrieval and scoring need:
- Normalized text and core tokens (stopwords removed)
- Domain synonym expansions
- Explicit "source book.entry" citations

Usage:
    from query import prepare_query, parse_citation

    terms = prepare_query("How do I control anger?")
    citation = parse_citation("meditations 6.26")
"""

from .citation import Citation, parse_citation
from .normalize import QueryTerms, expand_tokens, normalize_text, prepare_query, tokenize_query

__all__ = [
    "Citation",
    "parse_citation",
    "QueryTerms",
    "normalize_text",
    "tokenize_query",
    "expand_tokens",
    "prepare_query",
]
