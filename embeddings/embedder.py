"""
Query embedding service.

CRITICAL: Queries must be embedded with the same model that built the index.

Version the model with the index:
    COLLECTION_NAME and EMBEDDING_MODEL travel together in settings.

When you change the model, the index has to be rebuilt elsewhere.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)


class EmbeddingError(RuntimeError):
    """The embedding model did not return a usable vector."""


@dataclass
class EmbeddingConfig:
    """
    Embedding model configuration.

    IMPORTANT: When changing any value, the index must be re-embedded!
    """

    model_name: str = "BAAI/bge-base-en-v1.5"
    normalize: bool = True
    dimension: int = 768  # Matches bge-base-en-v1.5
    max_seq_length: int = 512


class EmbeddingService:
    """
    Embedding service used as the search-side embedding function.

    Key practices:
    - Same model and preprocessing as the indexed passages
    - Normalize vectors to unit length for cosine similarity
    - Deterministic preprocessing

    Usage:
        service = EmbeddingService()
        vector = service.embed_query("how to face death")

        # As the retriever's embedding function
        retriever = HybridRetriever(store, vector_index, embed_fn=service.embed_query)
    """

    def __init__(self, config: Optional[EmbeddingConfig] = None):
        self.config = config or EmbeddingConfig()
        self._model: Optional[SentenceTransformer] = None
        self._preprocessing_hash = self._compute_preprocessing_hash()

    def _compute_preprocessing_hash(self) -> str:
        """Short hash of the preprocessing config, logged with the model so index mismatches are traceable."""
        config_str = f"{self.config.model_name}:{self.config.normalize}"
        return hashlib.md5(config_str.encode()).hexdigest()[:8]

    @property
    def model(self) -> SentenceTransformer:
        """Lazy load the model."""
        if self._model is None:
            logger.info(
                f"Loading embedding model: {self.config.model_name} "
                f"(preprocessing {self._preprocessing_hash})"
            )
            self._model = SentenceTransformer(self.config.model_name)
        return self._model

    def preprocess_text(self, text: str) -> str:
        """
        Deterministic text preprocessing.

        IMPORTANT: Keep this consistent with how passages were embedded.
        """
        text = " ".join(text.split())

        max_chars = self.config.max_seq_length * 4  # Approximate
        if len(text) > max_chars:
            text = text[:max_chars]

        return text

    def embed_texts(self, texts: List[str]) -> np.ndarray:
        """Embed a batch of texts into a (n, dimension) array."""
        processed = [self.preprocess_text(t) for t in texts]
        vectors = np.asarray(self.model.encode(processed, convert_to_numpy=True))

        if vectors.ndim != 2 or vectors.shape[0] != len(texts):
            raise EmbeddingError(
                f"Embedding model returned shape {vectors.shape} for {len(texts)} texts"
            )

        # Normalize to unit length for cosine similarity
        if self.config.normalize:
            norms = np.linalg.norm(vectors, axis=1, keepdims=True)
            vectors = vectors / (norms + 1e-10)  # Avoid division by zero

        return vectors

    def embed_query(self, query: str) -> List[float]:
        """Embed one query; raises EmbeddingError if the model yields nothing."""
        if not query.strip():
            raise EmbeddingError("Cannot embed an empty query")
        return self.embed_texts([query])[0].tolist()


# Global embedding service instance
_embedding_service: Optional[EmbeddingService] = None


def get_embedding_service(config: Optional[EmbeddingConfig] = None) -> EmbeddingService:
    """
    Get or create the global embedding service.

    Args:
        config: Optional custom configuration

    Returns:
        EmbeddingService instance
    """
    global _embedding_service
    if _embedding_service is None or config is not None:
        _embedding_service = EmbeddingService(config)
    return _embedding_service
