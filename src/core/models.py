# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

Songs and playlist profiles are read-only inputs owned by the caller's data
layer. MatchResult and ScoreFactors are produced by the engine and are
immutable once built; ranks are assigned through ``model_copy``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

AUDIO_FEATURE_NAMES: tuple[str, ...] = (
    "energy",
    "valence",
    "danceability",
    "acousticness",
    "instrumentalness",
    "speechiness",
    "liveness",
    "tempo",
    "loudness",
)


# === SONG INPUTS ===


class AudioFeatures(BaseModel):
    """Audio features of a single song. ``None`` marks a missing feature."""

    energy: float | None = None
    valence: float | None = None
    danceability: float | None = None
    acousticness: float | None = None
    instrumentalness: float | None = None
    speechiness: float | None = None
    liveness: float | None = None
    tempo: float | None = None
    loudness: float | None = None

    def get(self, feature: str) -> float | None:
        return getattr(self, feature, None)


class SongAnalysis(BaseModel):
    """Analysis payload used by the deep (tier 2) factors."""

    dominant_mood: str | None = None
    themes: list[str] = Field(default_factory=list)
    listening_contexts: dict[str, float] = Field(default_factory=dict)


class Song(BaseModel):
    """Candidate song to be matched against playlists."""

    id: str
    spotify_id: str | None = None
    name: str = ""
    artists: list[str] = Field(default_factory=list)
    genres: list[str] | None = None
    audio_features: AudioFeatures | None = None
    analysis: SongAnalysis | None = None


# === PLAYLIST INPUTS ===


class RecentSong(BaseModel):
    """Tail entry of a playlist, used for flow scoring."""

    dominant_mood: str | None = None
    energy: float | None = None
    valence: float | None = None


class PlaylistProfile(BaseModel):
    """Aggregated description of a destination playlist."""

    playlist_id: str
    embedding: list[float] | None = None
    audio_centroid: dict[str, float] = Field(default_factory=dict)
    genre_distribution: dict[str, float] = Field(default_factory=dict)
    emotion_distribution: dict[str, float] = Field(default_factory=dict)
    themes: list[str] | None = None
    listening_contexts: dict[str, float] | None = None
    recent_songs: list[RecentSong] | None = None
    method: Literal["learned_from_songs", "from_description"] | None = None


# === RESULTS ===


class ScoreFactors(BaseModel):
    """The six factor scores, each in [0, 1]."""

    model_config = ConfigDict(frozen=True)

    vector: float = 0.0
    genre: float = 0.0
    audio: float = 0.0
    semantic: float = 0.0
    context: float = 0.0
    flow: float = 0.0


class MatchResult(BaseModel):
    """Score of one song against one playlist."""

    model_config = ConfigDict(frozen=True)

    song_id: str
    playlist_id: str
    score: float
    rank: int = 0
    factors: ScoreFactors
    confidence: float
    from_cache: bool = False


class DataAvailability(BaseModel):
    """Which data sources are present for a song/playlist pair."""

    has_embedding: bool = False
    has_genres: bool = False
    has_audio_features: bool = False
    has_analysis: bool = False
    has_recent_songs: bool = False

    @property
    def available_count(self) -> int:
        return sum(
            (
                self.has_embedding,
                self.has_genres,
                self.has_audio_features,
                self.has_analysis,
                self.has_recent_songs,
            )
        )

    @property
    def confidence(self) -> float:
        """Fraction of the five tracked signals that are present."""
        return self.available_count / 5


class BatchStats(BaseModel):
    total: int = 0
    matched: int = 0
    cached: int = 0
    computed: int = 0
    failed: int = 0


class BatchMatchResult(BaseModel):
    """Ranked matches keyed by song id, plus failures and counters."""

    matches: dict[str, list[MatchResult]] = Field(default_factory=dict)
    failed: list[str] = Field(default_factory=list)
    stats: BatchStats = Field(default_factory=BatchStats)
