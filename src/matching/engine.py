# src/matching/engine.py — v3
"""Matching engine — tiered per-pair scoring, ranking, and batch orchestration.

Scoring runs in two tiers. Vector, genre and audio factors are cheap and
always computed; their weighted subtotal (the early score) gates the
thematic, context and flow factors, which only run when the song has
analysis data and the early score clears ``deep_analysis_threshold``.

Usage:
    engine = MatchingEngine(MatchingConfig())
    result = await engine.match_batch(songs, profiles, song_embeddings)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING

from songmatch.core.errors import MatchingComputeError, MatchingDataError, MatchingError
from songmatch.core.models import (
    BatchMatchResult,
    BatchStats,
    DataAvailability,
    MatchResult,
    PlaylistProfile,
    ScoreFactors,
    Song,
)
from songmatch.core.similarity import has_vector
from songmatch.logging.context import get_context, set_job_context, set_song_context
from songmatch.matching.config import (
    DEFAULT_MATCHING_CONFIG,
    MatchingConfig,
    MatchingWeights,
    compute_adaptive_weights,
)
from songmatch.matching.scoring import (
    compute_audio_feature_score,
    compute_context_score,
    compute_flow_score,
    compute_genre_score,
    compute_thematic_score,
    cosine_similarity,
)
from songmatch.tracking.models import JobItemEvent, JobProgress
from songmatch.tracking.progress import safe_emit_item, safe_emit_progress

if TYPE_CHECKING:
    from songmatch.tracking.progress import BaseProgressSink

logger = logging.getLogger(__name__)

# Aggregate progress is emitted every N songs and on the last one.
PROGRESS_EVERY = 10


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def compute_availability(
    song: Song,
    profile: PlaylistProfile,
    song_embedding: Sequence[float] | None,
) -> DataAvailability:
    """Which data sources are usable for this song/playlist pair."""
    return DataAvailability(
        has_embedding=has_vector(song_embedding) and has_vector(profile.embedding),
        has_genres=bool(song.genres),
        has_audio_features=song.audio_features is not None
        and bool(profile.audio_centroid),
        has_analysis=song.analysis is not None,
        has_recent_songs=bool(profile.recent_songs),
    )


def song_label(song: Song) -> str:
    return song.name or f"Song {song.id[:8]}"


class MatchingEngine:
    """Score songs against playlist profiles and rank the results."""

    def __init__(
        self,
        config: MatchingConfig | None = None,
        progress_sink: BaseProgressSink | None = None,
    ) -> None:
        self._config = config or DEFAULT_MATCHING_CONFIG
        self._progress_sink = progress_sink

    @property
    def config(self) -> MatchingConfig:
        return self._config

    @property
    def progress_sink(self) -> BaseProgressSink | None:
        return self._progress_sink

    # --- Per pair ---

    def score_pair(
        self,
        song: Song,
        profile: PlaylistProfile,
        song_embedding: Sequence[float] | None = None,
    ) -> MatchResult:
        """Score one song against one playlist profile.

        Returns:
            Unranked MatchResult (rank 0, ``from_cache=False``).

        Raises:
            MatchingDataError: If the song or playlist has no identity.
            MatchingComputeError: If a scoring step fails unexpectedly.
        """
        if not song.id:
            raise MatchingDataError("Song has no id", playlist_id=profile.playlist_id)
        if not profile.playlist_id:
            raise MatchingDataError("Playlist profile has no id", song_id=song.id)

        try:
            return self._score(song, profile, song_embedding)
        except MatchingError:
            raise
        except Exception as exc:
            raise MatchingComputeError(
                f"Scoring failed for song={song.id} playlist={profile.playlist_id}",
                cause=exc,
            ) from exc

    def _score(
        self,
        song: Song,
        profile: PlaylistProfile,
        song_embedding: Sequence[float] | None,
    ) -> MatchResult:
        cfg = self._config
        availability = compute_availability(song, profile, song_embedding)
        weights = compute_adaptive_weights(availability, cfg.weights)

        # Tier 1
        vector_score = self._vector_score(song_embedding, profile.embedding)
        genre_score = compute_genre_score(song.genres, profile.genre_distribution)
        audio_score = 0.0
        if availability.has_audio_features and song.audio_features is not None:
            audio_score = compute_audio_feature_score(
                song.audio_features, profile.audio_centroid, cfg.audio_weights
            )

        early_score = (
            weights.vector * vector_score
            + weights.genre * genre_score
            + weights.audio * audio_score
        )

        # Tier 2
        semantic_score = 0.0
        context_score = 0.0
        flow_score = 0.0
        analysis = song.analysis
        if analysis is not None and early_score > cfg.deep_analysis_threshold:
            if analysis.themes and profile.themes:
                semantic_score = compute_thematic_score(analysis.themes, profile.themes)
            if analysis.listening_contexts and profile.listening_contexts:
                context_score = compute_context_score(
                    analysis.listening_contexts, profile.listening_contexts
                )
            if availability.has_recent_songs and profile.recent_songs:
                features = song.audio_features
                flow_score = compute_flow_score(
                    analysis.dominant_mood,
                    features.energy if features is not None else None,
                    features.valence if features is not None else None,
                    profile.recent_songs,
                )
        else:
            logger.debug(
                "Deep analysis skipped: song=%s playlist=%s early=%.3f",
                song.id, profile.playlist_id, early_score,
            )

        factors = ScoreFactors(
            vector=_clamp(vector_score),
            genre=_clamp(genre_score),
            audio=_clamp(audio_score),
            semantic=_clamp(semantic_score),
            context=_clamp(context_score),
            flow=_clamp(flow_score),
        )

        return MatchResult(
            song_id=song.id,
            playlist_id=profile.playlist_id,
            score=_clamp(self._final_score(factors, weights)),
            rank=0,
            factors=factors,
            confidence=availability.confidence,
            from_cache=False,
        )

    def _vector_score(
        self,
        song_embedding: Sequence[float] | None,
        playlist_embedding: Sequence[float] | None,
    ) -> float:
        if not has_vector(song_embedding) or not has_vector(playlist_embedding):
            return 0.0
        if self._config.skip_vector_scoring:
            return 0.0
        # [-1, 1] -> [0, 1]
        return _clamp((cosine_similarity(song_embedding, playlist_embedding) + 1) / 2)

    @staticmethod
    def _final_score(factors: ScoreFactors, weights: MatchingWeights) -> float:
        return (
            factors.vector * weights.vector
            + factors.genre * weights.genre
            + factors.audio * weights.audio
            + factors.semantic * weights.semantic
            + factors.context * weights.context
            + factors.flow * weights.flow
        )

    # --- Per song ---

    async def match_song(
        self,
        song: Song,
        profiles: Sequence[PlaylistProfile],
        song_embedding: Sequence[float] | None = None,
    ) -> list[MatchResult]:
        """Rank playlists for one song.

        Pairs that fail to score are skipped. Results are sorted by score
        descending, filtered by ``min_score_threshold``, capped at
        ``max_results_per_song`` and given 1-based ranks.

        Raises:
            MatchingDataError: If the song has no id.
        """
        if not song.id:
            raise MatchingDataError("Song has no id")
        if not profiles:
            return []

        results: list[MatchResult] = []
        for profile in profiles:
            try:
                results.append(self.score_pair(song, profile, song_embedding))
            except MatchingError as exc:
                logger.warning(
                    "Skipping pair song=%s playlist=%s: %s",
                    song.id, profile.playlist_id, exc,
                )

        return self.rank(results)

    def rank(self, results: Sequence[MatchResult]) -> list[MatchResult]:
        """Sort, threshold, cap and number a song's results."""
        cfg = self._config
        ordered = sorted(results, key=lambda r: r.score, reverse=True)
        kept = [r for r in ordered if r.score >= cfg.min_score_threshold]
        return [
            r.model_copy(update={"rank": i + 1})
            for i, r in enumerate(kept[: cfg.max_results_per_song])
        ]

    # --- Batch ---

    async def match_batch(
        self,
        songs: Sequence[Song],
        profiles: Sequence[PlaylistProfile],
        song_embeddings: Mapping[str, Sequence[float]] | None = None,
        job_id: str | None = None,
        on_progress: Callable[[JobProgress], None] | None = None,
    ) -> BatchMatchResult:
        """Match every song against every profile, in input order.

        A song with no qualifying match, or whose matching raised, is
        recorded in ``failed``. When ``job_id`` is set, item events are
        emitted before and after each song and a progress snapshot every
        ``PROGRESS_EVERY`` songs and on the last one.
        """
        if not songs or not profiles:
            return BatchMatchResult()

        previous_job = get_context().job_id
        if job_id:
            set_job_context(job_id)
        try:
            return await self._run_batch(
                songs, profiles, song_embeddings or {}, job_id, on_progress
            )
        finally:
            set_song_context(None)
            set_job_context(previous_job)

    async def _run_batch(
        self,
        songs: Sequence[Song],
        profiles: Sequence[PlaylistProfile],
        embeddings: Mapping[str, Sequence[float]],
        job_id: str | None,
        on_progress: Callable[[JobProgress], None] | None,
    ) -> BatchMatchResult:
        matches: dict[str, list[MatchResult]] = {}
        failed: list[str] = []
        computed = 0
        progress = JobProgress(total=len(songs))
        sink = self._progress_sink

        for index, song in enumerate(songs):
            set_song_context(song.id)
            label = song_label(song)
            safe_emit_item(sink, job_id, JobItemEvent(
                item_id=song.id, status="in_progress", label=label, index=index,
            ))

            try:
                ranked = await self.match_song(song, profiles, embeddings.get(song.id))
            except MatchingError as exc:
                logger.warning("Song %s failed to match: %s", song.id, exc)
                ranked = []

            if ranked:
                matches[song.id] = ranked
                computed += 1
                progress.succeeded += 1
                safe_emit_item(sink, job_id, JobItemEvent(
                    item_id=song.id, status="succeeded",
                    label=f"{label} -> score {ranked[0].score:.2f}", index=index,
                ))
            else:
                failed.append(song.id)
                progress.failed += 1
                safe_emit_item(sink, job_id, JobItemEvent(
                    item_id=song.id, status="failed",
                    label=f"{label} (no match)", index=index,
                ))

            progress.done += 1
            if progress.done % PROGRESS_EVERY == 0 or progress.done == len(songs):
                safe_emit_progress(sink, job_id, progress)
            if on_progress is not None:
                on_progress(progress.model_copy())

            await asyncio.sleep(0)

        logger.info(
            "Batch matched %d/%d songs against %d playlists (%d failed)",
            len(matches), len(songs), len(profiles), len(failed),
        )
        return BatchMatchResult(
            matches=matches,
            failed=failed,
            stats=BatchStats(
                total=len(songs),
                matched=len(matches),
                cached=0,
                computed=computed,
                failed=len(failed),
            ),
        )
