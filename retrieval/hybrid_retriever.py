"""
Hybrid retrieval combining vector + lexical + citation lookups.

Semantic-first tradeoff:
- semantic candidates are always pooled
- lexical-only rows join only as citations or strong exact hits
- when semantic retrieval fails or finds nothing, ranking is lexical-only

Score fusion: score = (w_vec * s_vec + w_lex * s_lex) * source_boost
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from monitoring.latency_metrics import LatencyCollector, SearchLatency, get_latency_collector
from query.citation import Citation, parse_citation
from query.normalize import QueryTerms, prepare_query
from shared.config import CorpusConfig, SearchConfig, get_settings
from shared.schemas import SearchOptions, SearchResult

from .diversity import diversify_by_source
from .lexical_retriever import LexicalRetriever, is_strong_lexical_rescue, lexical_score
from .score_fusion import BlendMode, ScoredEntry, blend_scores
from .text_store import Entry, EntryKey, TextStore
from .vector_retriever import EmbedFunction, SemanticRetriever, VectorIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedOptions:
    """Search limits after defaults and clamping."""

    top_k: int
    semantic_top_k: int
    lexical_limit: int
    rescue_limit: int
    diversity_soft_cap: int


def resolve_options(
    options: Optional[SearchOptions] = None,
    config: Optional[SearchConfig] = None,
) -> ResolvedOptions:
    """Apply defaults and clamp caller options to the configured bounds."""
    options = options or SearchOptions()
    config = config or SearchConfig()

    top_k = options.top_k if options.top_k is not None else config.default_top_k
    top_k = min(max(top_k, 1), config.max_top_k)

    semantic_top_k = options.semantic_top_k
    if semantic_top_k is None:
        semantic_top_k = max(top_k * config.semantic_top_k_multiplier, config.semantic_top_k_floor)
    semantic_top_k = min(max(semantic_top_k, top_k), config.semantic_top_k_ceiling)

    lexical_limit = options.lexical_limit if options.lexical_limit is not None else config.lexical_limit
    lexical_limit = max(lexical_limit, top_k * config.lexical_limit_per_k)

    rescue_limit = min(
        max(top_k * config.rescue_limit_multiplier, config.rescue_limit_floor),
        config.rescue_limit_ceiling,
    )

    soft_cap = (
        options.diversity_soft_cap
        if options.diversity_soft_cap is not None
        else config.diversity_soft_cap
    )

    return ResolvedOptions(
        top_k=top_k,
        semantic_top_k=semantic_top_k,
        lexical_limit=lexical_limit,
        rescue_limit=rescue_limit,
        diversity_soft_cap=max(soft_cap, 1),
    )


class HybridRetriever:
    """
    Hybrid retrieval with score fusion and source diversification.

    Usage:
        retriever = HybridRetriever(store, vector_index, embed_fn)
        results = retriever.search("how should I deal with anger?", SearchOptions(top_k=5))

    Without a vector index or embedding function every request is lexical-only.
    """

    def __init__(
        self,
        text_store: TextStore,
        vector_index: Optional[VectorIndex] = None,
        embed_fn: Optional[EmbedFunction] = None,
        config: Optional[SearchConfig] = None,
        corpus: Optional[CorpusConfig] = None,
        latency_collector: Optional[LatencyCollector] = None,
    ):
        """
        Args:
            text_store: Passage store for lookups and substring scans
            vector_index: Nearest-neighbour index over passage embeddings
            embed_fn: Query embedding function matching the index
            config: Search limits and weights
            corpus: Source and vocabulary tables
            latency_collector: Where per-request timings are recorded
        """
        self.text_store = text_store
        self.config = config or SearchConfig()
        self.corpus = corpus or CorpusConfig()
        self.latency_collector = latency_collector or get_latency_collector()

        self.lexical = LexicalRetriever(text_store, self.corpus)
        self.semantic: Optional[SemanticRetriever] = None
        if vector_index is not None and embed_fn is not None:
            self.semantic = SemanticRetriever(embed_fn, vector_index, self.corpus)

    def search(self, raw_query: str, options: Optional[SearchOptions] = None) -> List[SearchResult]:
        """Sync wrapper for search_async."""
        return asyncio.run(self.search_async(raw_query, options))

    async def search_async(
        self,
        raw_query: str,
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        """
        Rank passages for a free-text query.

        Args:
            raw_query: Query as typed
            options: top_k, semantic_top_k, lexical_limit, diversity_soft_cap

        Returns:
            Ranked list of SearchResult (empty when nothing matches)
        """
        start = time.perf_counter()
        opts = resolve_options(options, self.config)
        latency = SearchLatency()

        terms = prepare_query(raw_query, self.corpus, self.config)
        citation = parse_citation(raw_query, self.corpus)
        loop = asyncio.get_running_loop()

        # 1. Semantic candidates, restricted to passages the store knows about
        with latency.stage("semantic"):
            semantic_scores, semantic_rows = await self._fetch_semantic(
                terms.normalized_query or raw_query.strip(), opts.semantic_top_k, latency
            )

        mode = BlendMode.for_request(bool(semantic_scores))
        lexical_cap = opts.rescue_limit if mode is BlendMode.SEMANTIC_BLEND else opts.lexical_limit

        # 2. Lexical scan and citation lookup are independent
        with latency.stage("lexical"):
            lexical_rows, citation_rows = await asyncio.gather(
                loop.run_in_executor(None, self.lexical.retrieve, terms.lexical_terms, lexical_cap),
                loop.run_in_executor(None, self.lexical.retrieve_citation, citation),
            )

        # 3. Pool, score, blend, diversify
        with latency.stage("scoring"):
            pool = self._build_pool(
                mode, terms, citation, semantic_scores, semantic_rows, lexical_rows + citation_rows
            )
            ranked = blend_scores(pool, mode, self.config, self.corpus)
            diversified = diversify_by_source(ranked, opts.top_k, opts.diversity_soft_cap)
            results = [self._to_result(s) for s in diversified]

        latency.total_ms = (time.perf_counter() - start) * 1000
        self.latency_collector.record(latency)

        logger.debug(
            f"Search '{terms.normalized_query}' ({mode.value}): pool={len(pool)}, "
            f"returned={len(results)}, {latency.total_ms:.1f}ms"
        )
        return results

    async def _fetch_semantic(
        self,
        query: str,
        top_k: int,
        latency: SearchLatency,
    ):
        """
        Semantic scores and rows by key.

        Embedding or index failures degrade to no semantic candidates.
        """
        if self.semantic is None or not query:
            return {}, {}

        loop = asyncio.get_running_loop()
        try:
            candidates = await loop.run_in_executor(None, self.semantic.retrieve, query, top_k)
        except Exception as e:
            logger.warning(f"Semantic retrieval failed, falling back to lexical: {e}")
            latency.semantic_fallback = True
            return {}, {}

        rows = await loop.run_in_executor(
            None, self.text_store.get_many, [c.key for c in candidates]
        )

        scores: Dict[EntryKey, float] = {}
        for candidate in candidates:
            if candidate.key not in rows:
                continue
            existing = scores.get(candidate.key)
            if existing is None or candidate.score > existing:
                scores[candidate.key] = candidate.score

        return scores, rows

    def _build_pool(
        self,
        mode: BlendMode,
        terms: QueryTerms,
        citation: Optional[Citation],
        semantic_scores: Dict[EntryKey, float],
        semantic_rows: Dict[EntryKey, Entry],
        lexical_rows: List[Entry],
    ) -> List[ScoredEntry]:
        pool: Dict[EntryKey, ScoredEntry] = {}

        for key, score in semantic_scores.items():
            row = semantic_rows[key]
            pool[key] = ScoredEntry(
                entry=row,
                semantic_score=score,
                lexical_score=lexical_score(row, terms, citation, self.config),
            )

        for row in lexical_rows:
            key = row.key
            if (
                mode is BlendMode.SEMANTIC_BLEND
                and key not in semantic_scores
                and not (citation and citation.matches(row.source, row.book, row.entry))
                and not is_strong_lexical_rescue(row, terms, self.config)
            ):
                continue

            score = lexical_score(row, terms, citation, self.config)
            existing = pool.get(key)
            if existing is None:
                pool[key] = ScoredEntry(entry=row, semantic_score=None, lexical_score=score)
            elif score > existing.lexical_score:
                existing.lexical_score = score

        return list(pool.values())

    def _to_result(self, scored: ScoredEntry) -> SearchResult:
        precision = self.config.score_precision
        row = scored.entry
        return SearchResult(
            source=row.source,
            book=row.book,
            entry=row.entry,
            text=row.text,
            score=round(scored.semantic_score or 0.0, precision),
            weighted_score=round(scored.weighted_score, precision),
        )


# Convenience functions
_retriever: Optional[HybridRetriever] = None


def get_retriever(text_store: Optional[TextStore] = None) -> HybridRetriever:
    """
    Get or create the global retriever wired from settings.

    The first call must supply the text store.
    """
    global _retriever
    if _retriever is None:
        if text_store is None:
            raise ValueError("A text store is required to build the retriever")

        from embeddings import EmbeddingConfig, get_embedding_service

        from .vector_retriever import ChromaVectorIndex

        settings = get_settings()
        service = get_embedding_service(EmbeddingConfig(model_name=settings.EMBEDDING_MODEL))
        vector_index = ChromaVectorIndex(
            path=settings.CHROMA_PATH,
            collection_name=settings.COLLECTION_NAME,
            host=settings.CHROMA_HOST,
            port=settings.CHROMA_PORT,
        )
        _retriever = HybridRetriever(
            text_store,
            vector_index=vector_index,
            embed_fn=service.embed_query,
            config=settings.search,
            corpus=settings.corpus,
        )
    return _retriever
