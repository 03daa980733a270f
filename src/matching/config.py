# src/matching/config.py — v3
"""Matching configuration: factor weights, audio weights, thresholds.

Defaults were tuned empirically for music recommendation quality. Factor
weights sum to 1.0 by convention only; ``compute_adaptive_weights`` is the
one place that reshapes them.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from songmatch.core.models import DataAvailability

if TYPE_CHECKING:
    from songmatch.config.settings import Settings

# Fields a request may override; the same fields feed the config hash.
SCORING_FIELDS = ("weights", "audio_weights", "min_score_threshold")


class MatchingWeights(BaseModel):
    """Weights for combining the six score factors."""

    vector: float = Field(default=0.25, ge=0)
    genre: float = Field(default=0.15, ge=0)
    audio: float = Field(default=0.25, ge=0)
    semantic: float = Field(default=0.15, ge=0)
    context: float = Field(default=0.15, ge=0)
    flow: float = Field(default=0.05, ge=0)


class AudioFeatureWeights(BaseModel):
    """Per-feature influence on the audio score."""

    energy: float = Field(default=1.0, ge=0)  # playlist cohesion
    valence: float = Field(default=1.0, ge=0)  # mood consistency
    danceability: float = Field(default=0.8, ge=0)
    acousticness: float = Field(default=0.6, ge=0)
    instrumentalness: float = Field(default=0.5, ge=0)
    speechiness: float = Field(default=0.4, ge=0)
    liveness: float = Field(default=0.3, ge=0)
    tempo: float = Field(default=0.7, ge=0)
    loudness: float = Field(default=0.3, ge=0)


class MatchingConfig(BaseModel):
    """Full configuration consumed by the matching engine."""

    weights: MatchingWeights = Field(default_factory=MatchingWeights)
    audio_weights: AudioFeatureWeights = Field(default_factory=AudioFeatureWeights)
    min_score_threshold: float = Field(default=0.3, ge=0, le=1)
    max_results_per_song: int = Field(default=10, ge=1)
    skip_vector_scoring: bool = False
    deep_analysis_threshold: float = Field(default=0.1, ge=0, le=1)
    # Reserved: carried and validated, not read by the scoring path.
    veto_threshold: float = Field(default=0.2, ge=0, le=1)

    @classmethod
    def from_settings(cls, settings: Settings) -> MatchingConfig:
        """Build the engine config from application settings."""
        return cls(
            weights=MatchingWeights(
                vector=settings.weight_vector,
                genre=settings.weight_genre,
                audio=settings.weight_audio,
                semantic=settings.weight_semantic,
                context=settings.weight_context,
                flow=settings.weight_flow,
            ),
            audio_weights=AudioFeatureWeights(
                energy=settings.audio_weight_energy,
                valence=settings.audio_weight_valence,
                danceability=settings.audio_weight_danceability,
                acousticness=settings.audio_weight_acousticness,
                instrumentalness=settings.audio_weight_instrumentalness,
                speechiness=settings.audio_weight_speechiness,
                liveness=settings.audio_weight_liveness,
                tempo=settings.audio_weight_tempo,
                loudness=settings.audio_weight_loudness,
            ),
            min_score_threshold=settings.min_score_threshold,
            max_results_per_song=settings.max_results_per_song,
            skip_vector_scoring=settings.skip_vector_scoring,
            deep_analysis_threshold=settings.deep_analysis_threshold,
            veto_threshold=settings.veto_threshold,
        )

    def merged(self, overrides: dict[str, Any] | MatchingConfig | None) -> MatchingConfig:
        """Return a copy with top-level fields replaced by ``overrides``.

        Nested ``weights``/``audio_weights`` may be given as dicts; they are
        validated into their models.
        """
        if overrides is None:
            return self.model_copy(deep=True)
        if isinstance(overrides, MatchingConfig):
            return overrides.model_copy(deep=True)
        data = self.model_dump()
        data.update(overrides)
        return MatchingConfig.model_validate(data)

    def with_scoring_overrides(
        self, overrides: Mapping[str, Any] | MatchingConfig | None
    ) -> tuple[MatchingConfig, list[str]]:
        """Apply only the overrides listed in ``SCORING_FIELDS``.

        Returns:
            The merged config and the names of ignored override fields.
        """
        if overrides is None:
            return self.model_copy(deep=True), []
        if isinstance(overrides, MatchingConfig):
            ignored = [
                name
                for name in MatchingConfig.model_fields
                if name not in SCORING_FIELDS
                and getattr(overrides, name) != getattr(self, name)
            ]
            data = {name: getattr(overrides, name) for name in SCORING_FIELDS}
        else:
            ignored = sorted(name for name in overrides if name not in SCORING_FIELDS)
            data = {k: v for k, v in overrides.items() if k in SCORING_FIELDS}
        return self.merged(data), ignored

    def scoring_subset(self) -> dict[str, Any]:
        """Fields that change match output and therefore the config hash."""
        return {
            "weights": self.weights.model_dump(),
            "audioWeights": self.audio_weights.model_dump(),
            "minScoreThreshold": self.min_score_threshold,
        }


DEFAULT_MATCHING_WEIGHTS = MatchingWeights()
DEFAULT_AUDIO_FEATURE_WEIGHTS = AudioFeatureWeights()
DEFAULT_MATCHING_CONFIG = MatchingConfig()


# === Adaptive weights ===


def compute_adaptive_weights(
    availability: DataAvailability,
    base: MatchingWeights | None = None,
) -> MatchingWeights:
    """Redistribute the weight of unavailable factors over available ones.

    Each missing source zeroes its factor(s) and adds the freed weight to a
    pool. The pool is split evenly per available factor: vector, genre and
    audio take a full share, semantic and context half a share, flow a
    quarter share. The result is not renormalized to 1.0.

    Redistribution starts from ``base`` (the configured weights), not from
    the built-in defaults; pass no ``base`` for the default behaviour.
    """
    w = (base or DEFAULT_MATCHING_WEIGHTS).model_dump()

    unavailable_weight = 0.0
    available_factors = 0

    if not availability.has_embedding:
        unavailable_weight += w["vector"]
        w["vector"] = 0.0
    else:
        available_factors += 1

    if not availability.has_genres:
        unavailable_weight += w["genre"]
        w["genre"] = 0.0
    else:
        available_factors += 1

    if not availability.has_audio_features:
        unavailable_weight += w["audio"]
        w["audio"] = 0.0
    else:
        available_factors += 1

    if not availability.has_analysis:
        unavailable_weight += w["semantic"] + w["context"]
        w["semantic"] = 0.0
        w["context"] = 0.0
    else:
        available_factors += 2

    if not availability.has_recent_songs:
        unavailable_weight += w["flow"]
        w["flow"] = 0.0
    else:
        available_factors += 1

    if available_factors > 0 and unavailable_weight > 0:
        share = unavailable_weight / available_factors
        for factor in ("vector", "genre", "audio"):
            if w[factor] > 0:
                w[factor] += share
        for factor in ("semantic", "context"):
            if w[factor] > 0:
                w[factor] += share / 2
        if w["flow"] > 0:
            w["flow"] += share / 4

    return MatchingWeights(**w)


# === Thresholds ===

SEMANTIC_THRESHOLDS: dict[str, float] = {
    "related": 0.5,
    "similar": 0.65,
    "very_similar": 0.8,
}

SCORE_TIERS: dict[str, float] = {
    "excellent": 0.8,
    "good": 0.6,
    "fair": 0.4,
    "poor": 0.2,
}


def score_tier(score: float) -> str:
    """Name the tier a final score falls into ("veto" below ``poor``)."""
    for tier, floor in SCORE_TIERS.items():
        if score >= floor:
            return tier
    return "veto"
