"""
Hybrid Retrieval Module.

This module implements:
- Vector retrieval (semantic similarity) with validated metadata
- Lexical retrieval (substring scan) and citation lookup
- Hybrid score fusion with a dampened source tie-break
- Source diversification of the top-K
- Reciprocal rank fusion across query variants

Usage:
    from retrieval import HybridRetriever, InMemoryTextStore

    retriever = HybridRetriever(InMemoryTextStore(entries), vector_index, embed_fn)
    results = retriever.search("What is in my control?")
"""

from .diversity import diversify_by_source
from .hybrid_retriever import HybridRetriever, get_retriever, resolve_options
from .lexical_retriever import LexicalRetriever, is_strong_lexical_rescue, lexical_score
from .query_fusion import search_fused, search_fused_async
from .score_fusion import (
    BlendMode,
    FusedResult,
    ScoredEntry,
    blend_scores,
    normalize_semantic_score,
    reciprocal_rank_fusion,
    source_weight_for_search,
)
from .text_store import Entry, InMemoryTextStore, TextStore
from .vector_retriever import ChromaVectorIndex, SemanticCandidate, SemanticRetriever, VectorIndex

__all__ = [
    "Entry",
    "TextStore",
    "InMemoryTextStore",
    "VectorIndex",
    "ChromaVectorIndex",
    "SemanticCandidate",
    "SemanticRetriever",
    "LexicalRetriever",
    "lexical_score",
    "is_strong_lexical_rescue",
    "BlendMode",
    "ScoredEntry",
    "FusedResult",
    "blend_scores",
    "normalize_semantic_score",
    "source_weight_for_search",
    "reciprocal_rank_fusion",
    "diversify_by_source",
    "HybridRetriever",
    "resolve_options",
    "get_retriever",
    "search_fused",
    "search_fused_async",
]
