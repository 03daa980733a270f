# src/api/models.py — v2
"""API-level models: MatchRequest, MatchResponse."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from songmatch.cache.models import CacheStats
from songmatch.core.models import BatchMatchResult, PlaylistProfile, Song


class MatchRequest(BaseModel):
    """One cached matching request, as read by the CLI from JSON."""

    account_id: str | None = None
    songs: list[Song] = Field(default_factory=list)
    profiles: list[PlaylistProfile] = Field(default_factory=list)
    song_embeddings: dict[str, list[float]] = Field(default_factory=dict)
    # Partial MatchingConfig, merged over the configured defaults.
    config: dict[str, Any] | None = None


class MatchResponse(BaseModel):
    context_hash: str
    result: BatchMatchResult
    cache: CacheStats
