# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: matching weights
and thresholds, cache sizing, persistent store, embeddings, logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SONGMATCH_",
        extra="ignore",
    )

    # === Factor weights ===
    weight_vector: float = 0.25
    weight_genre: float = 0.15
    weight_audio: float = 0.25
    weight_semantic: float = 0.15
    weight_context: float = 0.15
    weight_flow: float = 0.05

    # === Audio feature weights ===
    audio_weight_energy: float = 1.0
    audio_weight_valence: float = 1.0
    audio_weight_danceability: float = 0.8
    audio_weight_acousticness: float = 0.6
    audio_weight_instrumentalness: float = 0.5
    audio_weight_speechiness: float = 0.4
    audio_weight_liveness: float = 0.3
    audio_weight_tempo: float = 0.7
    audio_weight_loudness: float = 0.3

    # === Thresholds ===
    min_score_threshold: float = 0.3
    max_results_per_song: int = 10
    deep_analysis_threshold: float = 0.1
    veto_threshold: float = 0.2
    skip_vector_scoring: bool = False

    # === Match cache (in-memory tier) ===
    cache_ttl_seconds: float = 3600.0
    cache_max_entries: int = 100

    # === Persistent match store ===
    match_store_backend: Literal["none", "memory", "sqlite"] = "none"
    match_store_path: Path | None = Path("~/.songmatch/matches.db")

    # === Semantic matcher ===
    semantic_threshold: float = 0.65
    semantic_cache_ttl_seconds: float = 3600.0
    semantic_cache_max_size: int = 1000
    semantic_query_prefix: str = "query: "

    # === Embeddings ===
    embedding_provider: str = "sentence_transformers"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1024
    embedding_st_model: str = "intfloat/multilingual-e5-large-instruct"
    embedding_ollama_model: str = "nomic-embed-text"
    ollama_base_url: str = "http://localhost:11434"
    openai_api_key: str = ""

    # === Enrichment (part of the model bundle version) ===
    genre_source: Literal["lastfm", "spotify", "combined"] = "lastfm"
    emotion_enabled: bool = False

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Check weights, thresholds and sizes are usable together."""
        errors: list[str] = []

        weights = {
            name: value
            for name, value in self.__dict__.items()
            if name.startswith(("weight_", "audio_weight_"))
        }
        negative = sorted(name for name, value in weights.items() if value < 0)
        if negative:
            errors.append(f"weights must be >= 0: {', '.join(negative)}")

        for name in (
            "min_score_threshold",
            "deep_analysis_threshold",
            "veto_threshold",
            "semantic_threshold",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                errors.append(f"{name} must be within [0, 1], got {value}")

        for name in (
            "max_results_per_song",
            "cache_max_entries",
            "semantic_cache_max_size",
        ):
            if getattr(self, name) < 1:
                errors.append(f"{name} must be >= 1")

        if self.cache_ttl_seconds <= 0 or self.semantic_cache_ttl_seconds <= 0:
            errors.append("cache TTLs must be > 0")

        if self.match_store_backend == "sqlite" and self.match_store_path is None:
            errors.append("MATCH_STORE_PATH must be set when MATCH_STORE_BACKEND=sqlite")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def weights_total(self) -> float:
        """Sum of the six factor weights (1.0 by convention, not enforced)."""
        return (
            self.weight_vector
            + self.weight_genre
            + self.weight_audio
            + self.weight_semantic
            + self.weight_context
            + self.weight_flow
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
