# tests/unit/embeddings/test_model_bundle.py — v2
"""Tests for embeddings/model_bundle.py — bundle description and hash."""

from __future__ import annotations

from songmatch.config.settings import Settings
from songmatch.embeddings.model_bundle import (
    AlgorithmVersions,
    EmbeddingModelConfig,
    EnrichmentConfig,
    ModelBundle,
    ModelBundleProvider,
    RerankerModelConfig,
)
from songmatch.embeddings.ollama_embedder import OllamaEmbedder
from songmatch.embeddings.openai_embedder import OpenAIEmbedder


def _bundle(**kwargs) -> ModelBundle:
    return ModelBundle(
        embedding=EmbeddingModelConfig(model="m", dims=8, provider="p"), **kwargs
    )


class TestModelBundle:
    def test_hash_prefix(self):
        assert _bundle().hash().startswith("mb_")

    def test_hash_stable(self):
        assert _bundle().hash() == _bundle().hash()

    def test_model_changes_hash(self):
        other = ModelBundle(embedding=EmbeddingModelConfig(model="m2", dims=8, provider="p"))
        assert _bundle().hash() != other.hash()

    def test_algorithm_version_changes_hash(self):
        bumped = _bundle(algorithms=AlgorithmVersions(matching="matching_v3"))
        assert _bundle().hash() != bumped.hash()

    def test_enrichment_changes_hash(self):
        other = _bundle(enrichment=EnrichmentConfig(genre_source="spotify"))
        assert _bundle().hash() != other.hash()

    def test_reranker_max_length_not_hashed(self):
        a = _bundle(reranker=RerankerModelConfig(model="r", provider="p", max_length=512))
        b = _bundle(reranker=RerankerModelConfig(model="r", provider="p", max_length=8192))
        assert a.hash() == b.hash()

    def test_instruction_flag_not_hashed(self):
        a = ModelBundle(embedding=EmbeddingModelConfig(model="m", dims=8, provider="p", is_instruction_tuned=False))
        assert a.hash() == _bundle().hash()

    def test_payload_versions(self):
        payload = _bundle().version_payload()
        assert payload["algorithms"]["matching"] == "matching_v2"
        assert payload["reranker"] is None


class TestModelBundleProvider:
    def test_hash_memoised(self):
        provider = ModelBundleProvider(_bundle())
        first = provider.get_hash()
        assert provider.get_hash() is first
        assert first == provider.bundle.hash()

    def test_from_embedder(self):
        embedder = OpenAIEmbedder(model="text-embedding-3-small", dimensions=1536)
        settings = Settings(_env_file=None, emotion_enabled=True)
        bundle = ModelBundleProvider.from_embedder(embedder, settings).bundle
        assert bundle.embedding.model == "text-embedding-3-small"
        assert bundle.embedding.dims == 1536
        assert bundle.embedding.provider == "openai"
        assert bundle.enrichment.emotion_enabled is True

    def test_from_embedder_without_settings(self):
        embedder = OllamaEmbedder(model="nomic-embed-text", dimensions=768)
        bundle = ModelBundleProvider.from_embedder(embedder).bundle
        assert bundle.embedding.provider == "ollama"
        assert bundle.embedding.dims == 768
        assert bundle.enrichment == EnrichmentConfig()

    def test_provider_changes_hash(self):
        openai = OpenAIEmbedder(model="m", dimensions=768)
        ollama = OllamaEmbedder(model="m", dimensions=768)
        assert (
            ModelBundleProvider.from_embedder(openai).get_hash()
            != ModelBundleProvider.from_embedder(ollama).get_hash()
        )
