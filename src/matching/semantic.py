# src/matching/semantic.py — v2
"""Semantic string matcher.

Compares free-text labels (moods, themes, listening contexts) via embedding
cosine similarity, with fast paths for exact and substring equality.
Embeddings are cached per normalised string in a TTL map owned by the
instance.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

import numpy as np
from pydantic import BaseModel

from songmatch.cache.ttl_map import TTLMap
from songmatch.core.errors import EmbeddingError
from songmatch.core.similarity import (
    cosine_similarity,
    cosine_similarity_matrix,
    has_vector,
)
from songmatch.matching.config import SEMANTIC_THRESHOLDS

if TYPE_CHECKING:
    from songmatch.config.settings import Settings
    from songmatch.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 60 * 60
DEFAULT_MAX_CACHE_SIZE = 1000
DEFAULT_QUERY_PREFIX = "query: "


class SimilarResult(BaseModel):
    value: str
    similarity: float


class SemanticMatcher:
    """Embedding-backed similarity between short strings."""

    def __init__(
        self,
        embedder: BaseEmbedder | None = None,
        threshold: float = SEMANTIC_THRESHOLDS["similar"],
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        max_cache_size: int = DEFAULT_MAX_CACHE_SIZE,
        query_prefix: str = DEFAULT_QUERY_PREFIX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._embedder = embedder
        self._threshold = threshold
        self._query_prefix = query_prefix
        self._cache: TTLMap[list[float]] = TTLMap(
            cache_ttl_seconds, max_cache_size, clock
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, embedder: BaseEmbedder | None = None
    ) -> SemanticMatcher:
        return cls(
            embedder=embedder,
            threshold=settings.semantic_threshold,
            cache_ttl_seconds=settings.semantic_cache_ttl_seconds,
            max_cache_size=settings.semantic_cache_max_size,
            query_prefix=settings.semantic_query_prefix,
        )

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    async def are_similar(
        self, a: str, b: str, threshold: float | None = None
    ) -> bool:
        """True on exact or substring match, else similarity >= threshold."""
        t = self._threshold if threshold is None else threshold
        norm_a = _normalize(a)
        norm_b = _normalize(b)
        if norm_a == norm_b:
            return True
        if norm_a in norm_b or norm_b in norm_a:
            return True
        return await self.get_similarity(a, b) >= t

    async def get_similarity(self, a: str, b: str) -> float:
        """Cosine similarity of the two embeddings, 0.0 if unavailable."""
        if self._embedder is None:
            return 0.0
        emb_a, emb_b = await asyncio.gather(self._embedding(a), self._embedding(b))
        if emb_a is None or emb_b is None:
            return 0.0
        return cosine_similarity(emb_a, emb_b)

    async def find_similar(
        self,
        query: str,
        candidates: Sequence[str],
        threshold: float | None = None,
    ) -> list[SimilarResult]:
        """Candidates at or above threshold, most similar first."""
        t = self._threshold if threshold is None else threshold
        results = []
        for candidate in candidates:
            similarity = await self.get_similarity(query, candidate)
            if similarity >= t:
                results.append(SimilarResult(value=candidate, similarity=similarity))
        results.sort(key=lambda r: r.similarity, reverse=True)
        return results

    async def count_matches(
        self,
        left: Sequence[str],
        right: Sequence[str],
        threshold: float | None = None,
    ) -> int:
        """Number of ``left`` items similar to at least one ``right`` item."""
        count = 0
        for item in left:
            for other in right:
                if await self.are_similar(item, other, threshold):
                    count += 1
                    break
        return count

    async def compute_similarity_matrix(
        self, left: Sequence[str], right: Sequence[str]
    ) -> list[list[float]]:
        """Pairwise similarities, shape len(left) x len(right).

        Strings without an embedding contribute rows/columns of 0.0.
        """
        if self._embedder is None or not left or not right:
            return [[0.0] * len(right) for _ in left]

        left_vecs = [await self._embedding(s) for s in left]
        right_vecs = [await self._embedding(s) for s in right]

        widths = {len(v) for v in left_vecs + right_vecs if has_vector(v)}
        if len(widths) != 1:
            return [
                [
                    cosine_similarity(lv, rv) if has_vector(lv) and has_vector(rv) else 0.0
                    for rv in right_vecs
                ]
                for lv in left_vecs
            ]

        width = widths.pop()
        matrix = cosine_similarity_matrix(
            _stack(left_vecs, width), _stack(right_vecs, width)
        )
        return matrix.tolist()

    def clear_cache(self) -> int:
        return self._cache.clear()

    # --- Internals ---

    async def _embedding(self, text: str) -> list[float] | None:
        key = _normalize(text)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        if self._embedder is None:
            return None
        try:
            vector = await self._embedder.embed_text(text, prefix=self._query_prefix)
        except EmbeddingError as e:
            logger.warning("Embedding failed for %r: %s", key, e)
            return None
        self._cache.put(key, vector)
        return vector


def _normalize(text: str) -> str:
    return text.strip().lower()


def _stack(vectors: list[list[float] | None], width: int) -> np.ndarray:
    return np.array(
        [v if has_vector(v) else [0.0] * width for v in vectors], dtype=np.float64
    )
