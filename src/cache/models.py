# src/cache/models.py — v2
"""Cache domain models: CachedMatchEntry, CacheStats, MatchContext, StoredMatchResult."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from songmatch.core.models import MatchResult, ScoreFactors
from songmatch.matching.config import MatchingConfig


class CachedMatchEntry(BaseModel):
    """In-memory cache entry for one match context."""

    model_config = ConfigDict(frozen=True)

    context_hash: str
    matches: dict[str, list[MatchResult]]
    computed_at: float
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class CacheStats(BaseModel):
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0


class ContextMetadata(BaseModel):
    """Every hash of a matching request plus the config that was hashed."""

    context_hash: str
    candidate_set_hash: str
    playlist_set_hash: str
    config_hash: str
    model_bundle_hash: str
    effective_config: MatchingConfig


class NewMatchContext(BaseModel):
    """Insert payload for a persisted match context."""

    account_id: str
    algorithm_version: str
    embedding_model: str | None = None
    embedding_version: str | None = None
    analysis_model: str | None = None
    analysis_version: str | None = None
    weights: dict[str, float] = Field(default_factory=dict)
    config_hash: str
    playlist_set_hash: str
    candidate_set_hash: str
    context_hash: str
    playlist_count: int = 0
    song_count: int = 0


class MatchContext(NewMatchContext):
    """Persisted match context. Unique per (account_id, context_hash)."""

    id: str
    created_at: datetime


class StoredMatchResult(BaseModel):
    """Persisted match row. Unique per (context_id, song_id, playlist_id)."""

    context_id: str
    song_id: str
    playlist_id: str
    score: float
    rank: int | None = None
    factors: ScoreFactors = Field(default_factory=ScoreFactors)
