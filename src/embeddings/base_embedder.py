# src/embeddings/base_embedder.py — v2
"""Abstract embeddings interface consumed by the semantic matcher."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseEmbedder(ABC):
    """Unified interface for all embedding providers.

    Adapters raise ``EmbeddingError`` when the backend cannot produce a
    vector; a missing optional package raises ``ImportError``.
    """

    @abstractmethod
    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts into vectors."""

    @abstractmethod
    async def embed_query(self, query: str) -> list[float]:
        """Embed a single query string."""

    async def embed_text(self, text: str, prefix: str = "") -> list[float]:
        """Embed arbitrary text, optionally with an instruction prefix."""
        return await self.embed_query(f"{prefix}{text}")

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Output vector dimensions."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier."""
