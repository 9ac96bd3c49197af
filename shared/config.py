"""
Configuration module for the Stoic Sage retrieval core.
Holds the static tables (sources, priorities, stopwords, synonyms) and tuned
constants for search, selection and fusion, plus environment-driven settings.

All config objects are frozen: build a new one to substitute tables in tests.
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, FrozenSet, Optional, Tuple

SEARCHABLE_SOURCES: Tuple[str, ...] = (
    "meditations",
    "discourses",
    "enchiridion",
    "fragments",
    "seneca-tranquillity",
    "seneca-shortness",
)

# Source priorities, shared by search (dampened) and selection (undamped)
SOURCE_WEIGHTS: Dict[str, float] = {
    "meditations": 1.0,
    "discourses": 0.85,
    "enchiridion": 0.85,
    "fragments": 0.75,
}

STOP_WORDS: FrozenSet[str] = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "but", "by", "for",
        "from", "how", "i", "in", "is", "it", "of", "on", "or", "that",
        "the", "their", "this", "to", "was", "what", "when", "where",
        "which", "who", "why", "with", "you", "your",
    }
)

STOIC_EXPANSIONS: Dict[str, Tuple[str, ...]] = {
    "anger": ("rage", "temper", "provocation"),
    "anxiety": ("worry", "fear", "unease", "calm"),
    "control": ("choice", "judgment", "agency", "dichotomy"),
    "courage": ("bravery", "fortitude"),
    "death": ("mortality", "memento", "mori"),
    "fate": ("amor", "fati", "acceptance"),
    "grief": ("loss", "mourning"),
    "justice": ("fairness", "duty"),
    "resilience": ("adversity", "hardship", "endurance"),
    "virtue": ("wisdom", "justice", "courage", "temperance"),
    "wisdom": ("judgment", "reason"),
}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class CorpusConfig:
    """Corpus-specific vocabulary and source tables."""
    searchable_sources: Tuple[str, ...] = SEARCHABLE_SOURCES
    default_source: str = "meditations"  # vectors indexed before multi-source support
    source_weights: Dict[str, float] = field(default_factory=lambda: dict(SOURCE_WEIGHTS))
    stop_words: FrozenSet[str] = STOP_WORDS
    synonyms: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: dict(STOIC_EXPANSIONS))

    def source_weight(self, source: str) -> float:
        return self.source_weights.get(source, 1.0)

    def is_searchable(self, source: str) -> bool:
        return source in self.searchable_sources


@dataclass(frozen=True)
class SearchConfig:
    """Hybrid search limits, blend weights and lexical scoring weights."""
    default_top_k: int = 5
    max_top_k: int = 20
    max_query_chars: int = 500
    min_token_length: int = 3
    max_core_tokens: int = 12
    max_lexical_terms: int = 12

    # semantic_top_k = min(max(top_k * multiplier, floor), ceiling)
    semantic_top_k_multiplier: int = 6
    semantic_top_k_floor: int = 30
    semantic_top_k_ceiling: int = 80

    lexical_limit: int = 120
    lexical_limit_per_k: int = 4

    # Lexical cap once semantic candidates exist
    rescue_limit_multiplier: int = 2
    rescue_limit_floor: int = 20
    rescue_limit_ceiling: int = 40
    rescue_min_phrase_chars: int = 4
    rescue_token_matches: int = 3

    diversity_soft_cap: int = 2

    semantic_blend: float = 0.9
    lexical_blend: float = 0.1
    source_boost_damping: float = 0.4
    tight_spread: float = 0.05

    phrase_weight: float = 1.2
    coverage_weight: float = 1.2
    frequency_weight: float = 0.8
    frequency_cap: int = 3
    expansion_weight: float = 0.25
    citation_weight: float = 2.5

    score_precision: int = 8


@dataclass(frozen=True)
class SelectionConfig:
    """Weighting layers for daily/random selection."""
    never_seen_weight: float = 10.0
    recharge_days: float = 30.0
    max_recharge: float = 5.0
    marked_boost: float = 1.3
    rating_multipliers: Dict[int, float] = field(
        default_factory=lambda: {1: 0.7, 2: 1.0, 3: 1.3}
    )
    recent_ratings: int = 3


@dataclass(frozen=True)
class FusionConfig:
    """Reciprocal rank fusion across query variants."""
    rrf_k: int = 30
    max_queries: int = 6
    default_max_results: int = 8
    min_top_k: int = 6
    semantic_top_k: int = 30
    lexical_limit: int = 100
    diversity_soft_cap: int = 2


@dataclass
class Settings:
    """Main application settings loaded from environment."""

    # Chroma settings
    CHROMA_PATH: str = field(default_factory=lambda: os.getenv("CHROMA_PATH", "./data/chroma"))
    CHROMA_HOST: Optional[str] = field(default_factory=lambda: os.getenv("CHROMA_HOST"))
    CHROMA_PORT: int = field(default_factory=lambda: int(os.getenv("CHROMA_PORT", "8000")))
    COLLECTION_NAME: str = field(default_factory=lambda: os.getenv("COLLECTION_NAME", "meditations-index"))

    # Embedding model used to build the index; queries must match it
    EMBEDDING_MODEL: str = field(
        default_factory=lambda: os.getenv("EMBEDDING_MODEL", "BAAI/bge-base-en-v1.5")
    )

    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Nested configs
    corpus: CorpusConfig = field(default_factory=CorpusConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    fusion: FusionConfig = field(default_factory=FusionConfig)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging with the service format."""
    level_name = (level or get_settings().LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)


settings = get_settings()
