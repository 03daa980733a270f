# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides sample songs, playlist profiles, embeddings and a deterministic
fake embedder. No external dependencies — all I/O is local or mocked.
"""

from __future__ import annotations

import pytest

from songmatch.core.models import (
    AudioFeatures,
    PlaylistProfile,
    RecentSong,
    Song,
    SongAnalysis,
)
from songmatch.embeddings.base_embedder import BaseEmbedder
from songmatch.embeddings.model_bundle import (
    EmbeddingModelConfig,
    ModelBundle,
    ModelBundleProvider,
)
from songmatch.logging.context import clear_context


# === FIXTURES: Sample data ===


FULL_AUDIO = dict(
    energy=0.7,
    valence=0.8,
    danceability=0.6,
    acousticness=0.2,
    instrumentalness=0.0,
    speechiness=0.05,
    liveness=0.1,
    tempo=120.0,
    loudness=-6.0,
)


@pytest.fixture
def full_song() -> Song:
    """Song with every data source present."""
    return Song(
        id="song_full_0001",
        spotify_id="sp_0001",
        name="Summer Haze",
        artists=["The Waves"],
        genres=["indie rock", "dream pop", "shoegaze"],
        audio_features=AudioFeatures(**FULL_AUDIO),
        analysis=SongAnalysis(
            dominant_mood="happy",
            themes=["summer", "love"],
            listening_contexts={"driving": 0.8, "party": 0.5},
        ),
    )


@pytest.fixture
def full_profile() -> PlaylistProfile:
    """Playlist profile that matches ``full_song`` on every factor."""
    return PlaylistProfile(
        playlist_id="pl_summer",
        embedding=[1.0, 0.0, 0.5],
        audio_centroid=dict(FULL_AUDIO),
        genre_distribution={"indie rock": 5, "dream pop": 3, "shoegaze": 2},
        themes=["summer"],
        listening_contexts={"driving": 0.6},
        recent_songs=[
            RecentSong(dominant_mood="happy", energy=0.7, valence=0.8),
            RecentSong(dominant_mood="happy", energy=0.7, valence=0.8),
            RecentSong(dominant_mood="happy", energy=0.7, valence=0.8),
        ],
        method="learned_from_songs",
    )


@pytest.fixture
def full_embeddings(full_song) -> dict[str, list[float]]:
    return {full_song.id: [1.0, 0.0, 0.5]}


@pytest.fixture
def genre_only_song() -> Song:
    """Song with only genres; no audio, analysis or embedding."""
    return Song(id="song_genre_0002", name="Grey Noise", genres=["shoegaze"])


@pytest.fixture
def unrelated_profile() -> PlaylistProfile:
    """Profile that shares nothing with the sample songs."""
    return PlaylistProfile(
        playlist_id="pl_metal",
        genre_distribution={"death metal": 10},
    )


@pytest.fixture
def bundle_provider() -> ModelBundleProvider:
    return ModelBundleProvider(
        ModelBundle(
            embedding=EmbeddingModelConfig(
                model="test-embedder", dims=3, provider="fake",
            )
        )
    )


@pytest.fixture(autouse=True)
def _clean_log_context():
    clear_context()
    yield
    clear_context()


# === Fake embedder ===


class FakeEmbedder(BaseEmbedder):
    """Deterministic embedder backed by a lookup table.

    Keys are matched after stripping the instruction prefix and
    lowercasing. Unknown texts raise EmbeddingError.
    """

    def __init__(self, vectors: dict[str, list[float]], prefix: str = "query: ") -> None:
        self.vectors = vectors
        self.prefix = prefix
        self.calls: list[str] = []

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_query(t) for t in texts]

    async def embed_query(self, query: str) -> list[float]:
        from songmatch.core.errors import EmbeddingError

        self.calls.append(query)
        key = query.removeprefix(self.prefix).strip().lower()
        if key not in self.vectors:
            raise EmbeddingError(f"no vector for {key!r}")
        return self.vectors[key]

    @property
    def dimensions(self) -> int:
        return 3

    @property
    def provider_name(self) -> str:
        return "fake"

    @property
    def model_name(self) -> str:
        return "fake-embedder"


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder({
        "happy": [1.0, 0.0, 0.0],
        "joyful": [0.9, 0.1, 0.0],
        "sad": [0.0, 1.0, 0.0],
        "gloomy": [0.1, 0.95, 0.0],
        "road trip": [0.0, 0.0, 1.0],
    })
