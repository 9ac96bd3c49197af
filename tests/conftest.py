"""
Shared fixtures: a small multi-source corpus and fake vector indexes.
"""

from typing import Any, Dict, List, Sequence

import pytest

from monitoring.latency_metrics import LatencyCollector
from retrieval.hybrid_retriever import HybridRetriever
from retrieval.text_store import Entry, InMemoryTextStore
from retrieval.vector_retriever import VectorIndex

CORPUS = [
    Entry("meditations", 2, "1", "Begin the morning by saying to thyself, I shall meet with the busy-body, the ungrateful, arrogant, deceitful, envious, unsocial.", marked=True),
    Entry("meditations", 6, "26", "Take care that thou art not made into a Caesar, that thou art not dyed with this dye."),
    Entry("meditations", 11, "18", "How much more grievous are the consequences of anger and vexation than the acts themselves which arouse our anger."),
    Entry("meditations", 4, "3", "Men seek retreats for themselves, houses in the country, sea-shores, and mountains."),
    Entry("discourses", 1, "1", "Of things some are in our power, and others are not; make the best use of what is in your control."),
    Entry("enchiridion", 1, "1", "Some things are in our control and others not. Things in our control are opinion, pursuit, desire."),
    Entry("enchiridion", 5, "5a", "Men are disturbed not by things, but by the opinions about things. Death is nothing terrible."),
    Entry("fragments", 1, "4", "Anger is a short madness; rage consumes the one who holds it."),
    Entry("seneca-shortness", 1, "1", "It is not that we have a short time to live, but that we waste a lot of it."),
    Entry("seneca-tranquillity", 2, "3", "What you seek is a great thing, the tranquillity of a mind not shaken by fear or worry.", reflectable=False),
    Entry("letters", 1, "1", "Anger everywhere, anger always."),
]


def fake_embed(query: str) -> List[float]:
    return [0.1, 0.2, 0.3]


def match(source, book, entry, score: float) -> Dict[str, Any]:
    return {
        "id": f"{source}-{book}-{entry}",
        "score": score,
        "metadata": {"source": source, "book": book, "entry": entry},
    }


class FakeVectorIndex(VectorIndex):
    """Returns canned matches and remembers what it was asked."""

    def __init__(self, matches: Sequence[Dict[str, Any]]):
        self.matches = list(matches)
        self.calls = []

    def query(self, vector, top_k):
        self.calls.append((list(vector), top_k))
        return self.matches[:top_k]


class FailingVectorIndex(VectorIndex):
    def query(self, vector, top_k):
        raise ConnectionError("vector index unavailable")


@pytest.fixture
def store():
    return InMemoryTextStore(CORPUS)


@pytest.fixture
def collector():
    return LatencyCollector()


@pytest.fixture
def make_retriever(store, collector):
    def _make(vector_index=None, **kwargs):
        return HybridRetriever(
            store,
            vector_index=vector_index,
            embed_fn=fake_embed if vector_index is not None else None,
            latency_collector=collector,
            **kwargs,
        )

    return _make
