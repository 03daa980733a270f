# src/embeddings/ollama_embedder.py — v3
"""Ollama embedding adapter (local REST API).

Labels are sent to ``/api/embed`` in batches: the endpoint accepts a list
``input`` and answers with one vector per item, in order.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.request

from songmatch.core.errors import EmbeddingError
from songmatch.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 32


class OllamaEmbedder(BaseEmbedder):
    """Local embeddings via the Ollama API."""

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: str = "http://localhost:11434",
        dimensions: int = 768,
        timeout: float = 30.0,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self._model_name = model
        self._endpoint = f"{base_url.rstrip('/')}/api/embed"
        self._dimensions = dimensions
        self._timeout = timeout
        self._batch_size = batch_size

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = texts[start:start + self._batch_size]
            vectors.extend(await asyncio.to_thread(self._post, batch))
        return vectors

    async def embed_query(self, query: str) -> list[float]:
        vectors = await self.embed_texts([query])
        return vectors[0]

    def _post(self, batch: list[str]) -> list[list[float]]:
        payload = json.dumps({"model": self._model_name, "input": batch}).encode("utf-8")
        req = urllib.request.Request(
            self._endpoint, data=payload, headers={"Content-Type": "application/json"}
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                data = json.loads(resp.read().decode("utf-8"))
        except (urllib.error.URLError, TimeoutError, ValueError) as e:
            raise EmbeddingError(f"Ollama request failed: {e}") from e

        embeddings = data.get("embeddings") or []
        if len(embeddings) != len(batch):
            raise EmbeddingError(
                f"Ollama returned {len(embeddings)} embeddings for {len(batch)} "
                f"inputs (model {self._model_name})"
            )
        return embeddings

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "ollama"

    @property
    def model_name(self) -> str:
        return self._model_name
