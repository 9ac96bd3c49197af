"""
Vector retrieval against an existing index.

Supports:
- Any index behind the VectorIndex interface (ChromaDB adapter included)
- Strict parsing of loosely-typed match metadata into candidates
- Deduplication by (source, book, entry), keeping the best score

The index is built elsewhere; this module only queries it.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

import chromadb
import numpy as np
from chromadb.config import Settings as ChromaSettings
from pydantic import ValidationError

from shared.config import CorpusConfig
from shared.schemas import VectorMatch, VectorMatchMetadata

from .text_store import EntryKey

logger = logging.getLogger(__name__)

EmbedFunction = Callable[[str], Sequence[float]]


@dataclass(frozen=True)
class SemanticCandidate:
    """A passage surfaced by vector similarity."""

    source: str
    book: int
    entry: str
    score: float

    @property
    def key(self) -> EntryKey:
        return (self.source, self.book, self.entry)


class VectorIndex(ABC):
    """Nearest-neighbour lookup returning [{"id", "score", "metadata"}]."""

    @abstractmethod
    def query(self, vector: Sequence[float], top_k: int) -> List[Dict[str, Any]]:
        """Higher score means more similar; no other ordering is promised."""


class ChromaVectorIndex(VectorIndex):
    """
    VectorIndex over a ChromaDB collection in cosine space.

    Usage:
        index = ChromaVectorIndex(path="./data/chroma", collection_name="meditations-index")
        matches = index.query(vector, top_k=30)
    """

    def __init__(
        self,
        path: str = None,
        collection_name: str = None,
        host: str = None,
        port: int = None,
    ):
        """
        Args:
            path: Local storage path
            collection_name: Collection name
            host: Remote Chroma host (optional)
            port: Remote Chroma port
        """
        self.path = path or "./data/chroma"
        self.collection_name = collection_name or "meditations-index"
        self.host = host
        self.port = port or 8000

        self._client: Optional[chromadb.ClientAPI] = None
        self._collection = None

    @property
    def client(self) -> chromadb.ClientAPI:
        """Get or create Chroma client."""
        if self._client is None:
            if self.host:
                # Remote client
                self._client = chromadb.HttpClient(host=self.host, port=self.port)
            else:
                # Local persistent client
                self._client = chromadb.PersistentClient(
                    path=self.path, settings=ChromaSettings(anonymized_telemetry=False)
                )
        return self._client

    @property
    def collection(self):
        """Get the existing collection."""
        if self._collection is None:
            self._collection = self.client.get_collection(name=self.collection_name)
        return self._collection

    def query(self, vector: Sequence[float], top_k: int) -> List[Dict[str, Any]]:
        embedding = vector.tolist() if isinstance(vector, np.ndarray) else list(vector)
        results = self.collection.query(
            query_embeddings=[embedding],
            n_results=top_k,
            include=["metadatas", "distances"],
        )

        ids = (results.get("ids") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        matches = []
        for match_id, meta, distance in zip(ids, metadatas, distances):
            # Cosine distance is 1 - cosine similarity
            matches.append(
                {"id": match_id, "score": 1.0 - float(distance), "metadata": meta or {}}
            )
        return matches


def parse_match(raw: Any, corpus: CorpusConfig) -> Optional[SemanticCandidate]:
    """
    Validate one raw index match into a candidate.

    Returns None for matches without a usable book/entry or outside the
    searchable sources.
    """
    try:
        match = VectorMatch.model_validate(raw)
        meta = VectorMatchMetadata.model_validate(match.metadata)
    except ValidationError as e:
        logger.debug(f"Dropping malformed vector match: {e.error_count()} error(s)")
        return None

    source = meta.source or corpus.default_source
    if not corpus.is_searchable(source):
        return None

    return SemanticCandidate(source=source, book=meta.book, entry=meta.entry, score=match.score)


def dedupe_candidates(candidates: Sequence[SemanticCandidate]) -> List[SemanticCandidate]:
    """Keep the highest-scoring candidate per key, in first-seen order."""
    best: Dict[EntryKey, SemanticCandidate] = {}
    for candidate in candidates:
        current = best.get(candidate.key)
        if current is None or candidate.score > current.score:
            best[candidate.key] = candidate
    return list(best.values())


class SemanticRetriever:
    """
    Embed a query and fetch semantic candidates.

    Errors from the embedding function or the index propagate; the hybrid
    retriever decides how to degrade.
    """

    def __init__(
        self,
        embed_fn: EmbedFunction,
        vector_index: VectorIndex,
        corpus: Optional[CorpusConfig] = None,
    ):
        self.embed_fn = embed_fn
        self.vector_index = vector_index
        self.corpus = corpus or CorpusConfig()

    def retrieve(self, query: str, top_k: int) -> List[SemanticCandidate]:
        vector = self.embed_fn(query)
        raw_matches = self.vector_index.query(vector, top_k) or []

        parsed = [parse_match(m, self.corpus) for m in raw_matches]
        candidates = dedupe_candidates([c for c in parsed if c is not None])

        logger.debug(
            f"Semantic retrieval: {len(raw_matches)} matches -> {len(candidates)} candidates"
        )
        return candidates
