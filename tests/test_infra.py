"""
Tests for settings, latency metrics and the embedding service.
"""

import logging
from unittest.mock import MagicMock

import numpy as np
import pytest

from monitoring.latency_metrics import LatencyCollector, SearchLatency
from shared.config import CorpusConfig, Settings, configure_logging, get_settings


class TestSettings:
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("COLLECTION_NAME", "stoic-v2")
        monkeypatch.setenv("CHROMA_PORT", "9000")
        settings = Settings()
        assert settings.COLLECTION_NAME == "stoic-v2"
        assert settings.CHROMA_PORT == 9000
        assert settings.search.default_top_k == 5
        assert settings.fusion.rrf_k == 30

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("COLLECTION_NAME", raising=False)
        monkeypatch.delenv("CHROMA_HOST", raising=False)
        settings = Settings()
        assert settings.COLLECTION_NAME == "meditations-index"
        assert settings.CHROMA_HOST is None

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_corpus_tables(self):
        corpus = CorpusConfig()
        assert corpus.source_weight("fragments") == 0.75
        assert corpus.source_weight("seneca-tranquillity") == 1.0
        assert corpus.is_searchable("seneca-shortness")
        assert not corpus.is_searchable("letters")

    def test_configure_logging_accepts_level_names(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
        configure_logging("debug")
        assert calls[0]["level"] == logging.DEBUG


class TestLatencyCollector:
    def test_stage_timer_accumulates(self):
        latency = SearchLatency()
        with latency.stage("lexical"):
            pass
        with latency.stage("lexical"):
            pass
        assert set(latency.stages) == {"lexical"}
        assert latency.stages["lexical"] >= 0.0

    def test_percentiles(self):
        collector = LatencyCollector(window_size=100)
        for ms in range(1, 101):
            collector.record(SearchLatency(total_ms=float(ms), stages={"semantic": 1.0}))

        total = collector.get_percentiles()
        assert total["p50"] == 51.0
        assert total["p99"] == 100.0
        assert total["min"] == 1.0
        assert collector.get_percentiles("semantic")["mean"] == 1.0

    def test_fallbacks_and_reset(self):
        collector = LatencyCollector()
        collector.record(SearchLatency(total_ms=3.0, semantic_fallback=True))
        assert collector.get_summary()["semantic_fallbacks"] == 1

        collector.reset()
        summary = collector.get_summary()
        assert summary["requests"] == 0
        assert summary["total"]["p50"] == 0.0
        assert summary["stages"] == {}


class TestEmbeddingService:
    @pytest.fixture
    def service(self):
        pytest.importorskip("sentence_transformers")
        from embeddings.embedder import EmbeddingService

        service = EmbeddingService()
        service._model = MagicMock()
        return service

    def test_embed_query_normalizes(self, service):
        service._model.encode.return_value = np.array([[3.0, 4.0]])
        vector = service.embed_query("  how   to face death ")
        assert vector == pytest.approx([0.6, 0.8])
        service._model.encode.assert_called_once_with(["how to face death"], convert_to_numpy=True)

    def test_empty_query_rejected(self, service):
        from embeddings.embedder import EmbeddingError

        with pytest.raises(EmbeddingError):
            service.embed_query("   ")

    def test_bad_model_output_rejected(self, service):
        from embeddings.embedder import EmbeddingError

        service._model.encode.return_value = np.array([0.1, 0.2])
        with pytest.raises(EmbeddingError):
            service.embed_texts(["one"])

    def test_model_load_logs_preprocessing_hash(self, monkeypatch, caplog):
        pytest.importorskip("sentence_transformers")
        import embeddings.embedder as embedder

        loader = MagicMock()
        monkeypatch.setattr(embedder, "SentenceTransformer", loader)
        service = embedder.EmbeddingService()

        with caplog.at_level(logging.INFO, logger="embeddings.embedder"):
            assert service.model is loader.return_value
            assert service.model is loader.return_value

        loader.assert_called_once_with("BAAI/bge-base-en-v1.5")
        assert len(service._preprocessing_hash) == 8
        assert service._preprocessing_hash in caplog.text
