"""
Topic retrieval across several phrasings of the same question.

Each phrasing runs the full hybrid search; rankings merge with reciprocal
rank fusion so passages that rank well for many phrasings beat a single
spectacular hit.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from shared.config import FusionConfig
from shared.schemas import SearchOptions

from .hybrid_retriever import HybridRetriever
from .score_fusion import FusedResult, reciprocal_rank_fusion

logger = logging.getLogger(__name__)


def unique_queries(queries: Sequence[str], max_queries: int = 6) -> List[str]:
    """Stripped, non-empty, deduplicated queries in input order."""
    stripped = (q.strip() for q in queries)
    return list(dict.fromkeys(q for q in stripped if q))[:max_queries]


async def search_fused_async(
    retriever: HybridRetriever,
    queries: Sequence[str],
    max_results: Optional[int] = None,
    config: Optional[FusionConfig] = None,
) -> List[FusedResult]:
    """
    Search every query variant concurrently and fuse the rankings.

    Args:
        retriever: Hybrid retriever to run per query
        queries: Related query strings
        max_results: Result cap (defaults to the fusion config)
        config: Fusion constant and per-query limits

    Returns:
        Fused results, best first
    """
    config = config or FusionConfig()
    if max_results is None:
        max_results = config.default_max_results

    variants = unique_queries(queries, config.max_queries)
    if not variants:
        return []

    options = SearchOptions(
        top_k=max(max_results, config.min_top_k),
        semantic_top_k=config.semantic_top_k,
        lexical_limit=config.lexical_limit,
        diversity_soft_cap=config.diversity_soft_cap,
    )
    per_query = await asyncio.gather(
        *[retriever.search_async(query, options) for query in variants]
    )

    fused = reciprocal_rank_fusion(per_query, k=config.rrf_k)
    logger.debug(f"Fused {len(variants)} query variants into {len(fused)} passages")
    return fused[:max_results]


def search_fused(
    retriever: HybridRetriever,
    queries: Sequence[str],
    max_results: Optional[int] = None,
    config: Optional[FusionConfig] = None,
) -> List[FusedResult]:
    """Sync wrapper for search_fused_async."""
    return asyncio.run(search_fused_async(retriever, queries, max_results, config))
