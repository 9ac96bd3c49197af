"""
Shared configuration and schemas.

Usage:
    from shared import get_settings, SearchOptions

    settings = get_settings()
    options = SearchOptions(top_k=5)
"""

from .config import (
    CorpusConfig,
    FusionConfig,
    SearchConfig,
    SelectionConfig,
    Settings,
    configure_logging,
    get_settings,
)
from .schemas import SearchOptions, SearchResult, VectorMatch, VectorMatchMetadata

__all__ = [
    "Settings",
    "CorpusConfig",
    "SearchConfig",
    "SelectionConfig",
    "FusionConfig",
    "get_settings",
    "configure_logging",
    "SearchOptions",
    "SearchResult",
    "VectorMatch",
    "VectorMatchMetadata",
]
