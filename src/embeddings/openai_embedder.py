# src/embeddings/openai_embedder.py — v3
"""OpenAI embedding adapter (text-embedding-3-small / -large)."""

from __future__ import annotations

import logging

from songmatch.core.errors import EmbeddingError
from songmatch.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)


class OpenAIEmbedder(BaseEmbedder):
    """Embeddings via the OpenAI API."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        dimensions: int = 1536,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._dimensions = dimensions
        self.__client = None

    @property
    def _client(self):
        if self.__client is None:
            try:
                import openai
            except ImportError as e:
                raise ImportError(
                    "openai package required: pip install openai"
                ) from e
            self.__client = openai.AsyncOpenAI(api_key=self._api_key)
        return self.__client

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        client = self._client
        import openai

        try:
            response = await client.embeddings.create(
                input=texts, model=self._model
            )
        except openai.OpenAIError as e:
            raise EmbeddingError(f"OpenAI embedding failed: {e}") from e
        return [item.embedding for item in response.data]

    async def embed_query(self, query: str) -> list[float]:
        vectors = await self.embed_texts([query])
        if not vectors:
            raise EmbeddingError(f"OpenAI returned no embedding for model {self._model}")
        return vectors[0]

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model
