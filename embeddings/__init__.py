"""
Embeddings Module.

CRITICAL: Never query an index with vectors from a different model.

This module provides the search-side embedding function:
- Lazy model loading (sentence-transformers)
- Deterministic preprocessing
- Unit-length normalization for cosine similarity

Usage:
    from embeddings import get_embedding_service

    service = get_embedding_service()
    vector = service.embed_query("on the shortness of life")
"""

from .embedder import EmbeddingConfig, EmbeddingError, EmbeddingService, get_embedding_service

__all__ = [
    "EmbeddingService",
    "EmbeddingConfig",
    "EmbeddingError",
    "get_embedding_service",
]
