# src/embeddings/model_bundle.py — v2
"""Model bundle: the embedding model, algorithm versions and enrichment
settings that together determine what a cached match means.

The bundle's ``mb_`` hash goes into every match-context hash. Changing the
embedding model or bumping an algorithm version therefore changes every
context hash and old cache entries are simply never hit again.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel

from songmatch.cache.hashing import hash_model_bundle
from songmatch.version import (
    EMBEDDING_SCHEMA_VERSION,
    EXTRACTOR_VERSION,
    MATCHING_ALGO_VERSION,
    PLAYLIST_PROFILE_VERSION,
)

if TYPE_CHECKING:
    from songmatch.config.settings import Settings
    from songmatch.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)


class EmbeddingModelConfig(BaseModel):
    model: str
    dims: int
    provider: str
    is_instruction_tuned: bool = True


class RerankerModelConfig(BaseModel):
    model: str
    provider: str
    max_length: int = 8192


class AlgorithmVersions(BaseModel):
    extractor: int = EXTRACTOR_VERSION
    schema_version: int = EMBEDDING_SCHEMA_VERSION
    profile: int = PLAYLIST_PROFILE_VERSION
    matching: str = MATCHING_ALGO_VERSION


class EnrichmentConfig(BaseModel):
    genre_source: Literal["lastfm", "spotify", "combined"] = "lastfm"
    emotion_enabled: bool = False


class ModelBundle(BaseModel):
    """Everything that versions a set of embeddings and match results."""

    embedding: EmbeddingModelConfig
    reranker: RerankerModelConfig | None = None
    algorithms: AlgorithmVersions = AlgorithmVersions()
    enrichment: EnrichmentConfig = EnrichmentConfig()
    version: int = 1

    def version_payload(self) -> dict[str, Any]:
        """Fields that take part in the bundle hash."""
        return {
            "embedding": {
                "model": self.embedding.model,
                "dims": self.embedding.dims,
                "provider": self.embedding.provider,
            },
            "reranker": (
                {"model": self.reranker.model, "provider": self.reranker.provider}
                if self.reranker is not None
                else None
            ),
            "algorithms": self.algorithms.model_dump(),
            "enrichment": self.enrichment.model_dump(),
            "version": self.version,
        }

    def hash(self) -> str:
        return hash_model_bundle(self.version_payload())


class ModelBundleProvider:
    """Builds the active bundle and memoises its hash for this instance."""

    def __init__(self, bundle: ModelBundle) -> None:
        self._bundle = bundle
        self._hash: str | None = None

    @classmethod
    def from_embedder(
        cls,
        embedder: BaseEmbedder,
        settings: Settings | None = None,
    ) -> ModelBundleProvider:
        """Describe the bundle from a configured embedder."""
        enrichment = EnrichmentConfig()
        if settings is not None:
            enrichment = EnrichmentConfig(
                genre_source=settings.genre_source,
                emotion_enabled=settings.emotion_enabled,
            )
        bundle = ModelBundle(
            embedding=EmbeddingModelConfig(
                model=embedder.model_name,
                dims=embedder.dimensions,
                provider=embedder.provider_name,
            ),
            enrichment=enrichment,
        )
        return cls(bundle)

    @property
    def bundle(self) -> ModelBundle:
        return self._bundle

    def get_hash(self) -> str:
        if self._hash is None:
            self._hash = self._bundle.hash()
            logger.debug("Model bundle hash: %s", self._hash)
        return self._hash
