"""
Score fusion utilities for hybrid retrieval.

Combines scores from multiple retrieval methods:
- Vector similarity (semantic), normalized per query
- Lexical relevance, normalized by the query's best lexical hit
- Dampened source priority as a tie-breaker
- Reciprocal rank fusion across query variants
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from shared.config import CorpusConfig, SearchConfig

from .text_store import Entry, EntryKey

logger = logging.getLogger(__name__)


class BlendMode(Enum):
    """How semantic and lexical signals combine for one request."""

    SEMANTIC_BLEND = "semantic_blend"
    LEXICAL_ONLY = "lexical_only"

    @classmethod
    def for_request(cls, has_semantic_candidates: bool) -> "BlendMode":
        return cls.SEMANTIC_BLEND if has_semantic_candidates else cls.LEXICAL_ONLY

    def weights(self, config: SearchConfig) -> Tuple[float, float]:
        """(semantic_weight, lexical_weight)"""
        if self is BlendMode.SEMANTIC_BLEND:
            return config.semantic_blend, config.lexical_blend
        return 0.0, 1.0


@dataclass
class ScoredEntry:
    """A pooled candidate with raw and blended scores."""

    entry: Entry
    semantic_score: Optional[float]
    lexical_score: float
    weighted_score: float = 0.0

    @property
    def source(self) -> str:
        return self.entry.source


@dataclass
class FusedResult:
    """Result after reciprocal rank fusion."""

    source: str
    book: int
    entry: str
    text: str
    score: float
    rank: int = 0


def normalize_score(value: float, min_s: float, max_s: float) -> float:
    """Min-max scaling with guards for non-positive and constant ranges."""
    if max_s <= 0:
        return 0.0
    if max_s == min_s:
        return 1.0
    return (value - min_s) / (max_s - min_s)


def normalize_semantic_score(
    value: float,
    min_s: float,
    max_s: float,
    tight_spread: float = 0.05,
) -> float:
    """
    Normalize a semantic score to [0, 1].

    A near-constant set of cosine scores is not stretched to the full unit
    interval; scores already in [0, 1] are used as-is and scores in [-1, 1]
    are mapped linearly from that range.
    """
    if max_s <= 0:
        return 0.0

    if max_s - min_s < tight_spread:
        if min_s >= 0 and max_s <= 1:
            return float(np.clip(value, 0.0, 1.0))
        if min_s >= -1 and max_s <= 1:
            return float(np.clip((value + 1) / 2, 0.0, 1.0))

    return float(np.clip(normalize_score(value, min_s, max_s), 0.0, 1.0))


def source_weight_for_search(
    source: str,
    corpus: Optional[CorpusConfig] = None,
    damping: float = 0.4,
) -> float:
    """Source priority dampened so relevance dominates."""
    corpus = corpus or CorpusConfig()
    return 1 + (corpus.source_weight(source) - 1) * damping


def blend_scores(
    pool: Sequence[ScoredEntry],
    mode: BlendMode,
    config: Optional[SearchConfig] = None,
    corpus: Optional[CorpusConfig] = None,
) -> List[ScoredEntry]:
    """
    Compute weighted scores and sort.

    Formula: weighted = (sem_norm * w_sem + lex_norm * w_lex) * source_boost

    Sorted by weighted score, then raw semantic score, both descending.
    """
    config = config or SearchConfig()
    corpus = corpus or CorpusConfig()

    if not pool:
        return []

    semantic = np.array([s.semantic_score for s in pool if s.semantic_score is not None])
    lexical = np.array([s.lexical_score for s in pool])

    sem_min = float(semantic.min()) if semantic.size else 0.0
    sem_max = float(semantic.max()) if semantic.size else 0.0
    lex_max = float(lexical.max()) if lexical.size else 0.0
    w_sem, w_lex = mode.weights(config)

    for scored in pool:
        if scored.semantic_score is None:
            # Lexical-only rows never inherit semantic credit from the range
            sem_norm = 0.0
        else:
            sem_norm = normalize_semantic_score(
                scored.semantic_score, sem_min, sem_max, config.tight_spread
            )
        lex_norm = scored.lexical_score / lex_max if lex_max > 0 else 0.0
        boost = source_weight_for_search(scored.source, corpus, config.source_boost_damping)
        scored.weighted_score = (sem_norm * w_sem + lex_norm * w_lex) * boost

    return sorted(
        pool,
        key=lambda s: (s.weighted_score, s.semantic_score or 0.0),
        reverse=True,
    )


def reciprocal_rank_fusion(
    ranked_lists: Sequence[Sequence],
    k: int = 30,
) -> List[FusedResult]:
    """
    Merge ranked lists: score = sum(1 / (k + rank + 1)) with 0-based ranks.

    Items are keyed by (source, book, entry); ties keep first-seen order.

    Args:
        ranked_lists: Lists of results exposing source, book, entry, text
        k: Fusion constant

    Returns:
        Sorted list of FusedResult
    """
    fused: Dict[EntryKey, FusedResult] = {}

    for results in ranked_lists:
        for i, row in enumerate(results):
            key = (row.source, row.book, row.entry)
            contribution = 1 / (k + i + 1)
            existing = fused.get(key)
            if existing:
                existing.score += contribution
            else:
                fused[key] = FusedResult(
                    source=row.source,
                    book=row.book,
                    entry=row.entry,
                    text=row.text,
                    score=contribution,
                )

    results = sorted(fused.values(), key=lambda x: x.score, reverse=True)

    # Assign ranks
    for i, result in enumerate(results):
        result.rank = i + 1

    return results
