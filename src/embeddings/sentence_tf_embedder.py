# src/embeddings/sentence_tf_embedder.py — v3
"""Sentence Transformers embedding adapter (local inference).

Default model is the instruction-tuned multilingual E5, which expects a
"query: " prefix on short lookup strings. Mood, theme and context labels
repeat heavily across a batch, so each distinct text is encoded once.
"""

from __future__ import annotations

import asyncio
import logging

from songmatch.core.errors import EmbeddingError
from songmatch.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 64


class SentenceTransformerEmbedder(BaseEmbedder):
    """Local embeddings via sentence-transformers."""

    def __init__(
        self,
        model: str = "intfloat/multilingual-e5-large-instruct",
        dimensions: int = 1024,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self._model_name = model
        self._dimensions = dimensions
        self._batch_size = batch_size
        self.__model = None

    @property
    def _model(self):
        if self.__model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise ImportError(
                    "sentence-transformers package required: "
                    "pip install sentence-transformers"
                ) from e
            self.__model = SentenceTransformer(self._model_name)
            self._dimensions = self.__model.get_sentence_embedding_dimension()
            logger.info(
                "Loaded sentence-transformers model %s (%d dims)",
                self._model_name, self._dimensions,
            )
        return self.__model

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed labels off the event loop, one encode per distinct text."""
        if not texts:
            return []
        unique = list(dict.fromkeys(texts))
        model = self._model
        try:
            vectors = await asyncio.to_thread(
                model.encode,
                unique,
                batch_size=self._batch_size,
                show_progress_bar=False,
                normalize_embeddings=True,
            )
        except (RuntimeError, ValueError) as e:
            raise EmbeddingError(f"sentence-transformers encode failed: {e}") from e
        by_text = {text: vector.tolist() for text, vector in zip(unique, vectors)}
        return [by_text[text] for text in texts]

    async def embed_query(self, query: str) -> list[float]:
        vectors = await self.embed_texts([query])
        return vectors[0]

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "sentence_transformers"

    @property
    def model_name(self) -> str:
        return self._model_name
