# src/cache/match_cache.py — v4
"""Content-addressed match cache in front of the matching engine.

Lookup order for a request:
  1. Hash the request: candidate set, playlist set, scoring config and
     model bundle, combined into a ``ctx_`` context hash.
  2. In-memory tier (TTL + insertion-order eviction).
  3. Persistent tier, only for requests with an account id. A persisted
     context counts as a hit only if it holds results for every requested
     song.
  4. Miss: run the engine, persist (best effort), fill the memory tier.

Persistent reads that fail propagate to the caller. Persistent writes that
fail are logged and the computed result is still returned.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from songmatch.cache.hashing import (
    hash_match_context,
    hash_matching_config,
    hash_profiles,
    hash_songs,
)
from songmatch.cache.models import (
    CachedMatchEntry,
    CacheStats,
    ContextMetadata,
    NewMatchContext,
    StoredMatchResult,
)
from songmatch.cache.ttl_map import TTLMap
from songmatch.core.errors import ConflictError, StorageError
from songmatch.core.models import (
    BatchMatchResult,
    BatchStats,
    MatchResult,
    PlaylistProfile,
    Song,
)
from songmatch.core.similarity import has_vector
from songmatch.logging.context import get_context, set_account_context
from songmatch.matching.config import MatchingConfig
from songmatch.matching.engine import MatchingEngine, compute_availability
from songmatch.version import MATCHING_ALGO_VERSION

if TYPE_CHECKING:
    from collections.abc import Callable

    from songmatch.cache.base_match_store import BaseMatchStore
    from songmatch.embeddings.model_bundle import ModelBundleProvider
    from songmatch.tracking.models import JobProgress

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60
DEFAULT_MAX_ENTRIES = 100


class MatchCache:
    """Two-tier (memory + persistent) cache of batch match results.

    Each instance owns its memory tier and counters; create one per tenant
    or per test as needed.
    """

    def __init__(
        self,
        engine: MatchingEngine,
        bundle_provider: ModelBundleProvider,
        store: BaseMatchStore | None = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        base_config: MatchingConfig | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._engine = engine
        self._bundle_provider = bundle_provider
        self._store = store
        self._base_config = base_config or engine.config
        self._entries: TTLMap[CachedMatchEntry] = TTLMap(
            ttl_seconds, max_entries, clock or time.time
        )
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    async def get_or_compute_matches(
        self,
        account_id: str | None,
        songs: Sequence[Song],
        profiles: Sequence[PlaylistProfile],
        song_embeddings: Mapping[str, Sequence[float]] | None = None,
        config: Mapping[str, Any] | MatchingConfig | None = None,
        job_id: str | None = None,
        on_progress: Callable[[JobProgress], None] | None = None,
    ) -> BatchMatchResult:
        """Serve matches from cache, or compute and cache them.

        Args:
            account_id: Owner for the persistent tier. None skips it.
            songs: Candidate songs.
            profiles: Destination playlist profiles.
            song_embeddings: Song id -> embedding.
            config: Overrides of the scoring fields (weights, audio_weights,
                min_score_threshold) applied on top of the base config.
                Other fields are ignored with a warning.
            job_id: Progress job id forwarded to the engine on a miss.
            on_progress: Per-song progress callback, only called on a miss.

        Raises:
            StorageError: If the persistent lookup fails.
        """
        previous_account = get_context().account_id
        set_account_context(account_id)
        try:
            return await self._lookup_or_compute(
                account_id, songs, profiles, song_embeddings or {}, config,
                job_id, on_progress,
            )
        finally:
            set_account_context(previous_account)

    async def _lookup_or_compute(
        self,
        account_id: str | None,
        songs: Sequence[Song],
        profiles: Sequence[PlaylistProfile],
        embeddings: Mapping[str, Sequence[float]],
        config: Mapping[str, Any] | MatchingConfig | None,
        job_id: str | None,
        on_progress: Callable[[JobProgress], None] | None,
    ) -> BatchMatchResult:
        metadata = self.compute_context_metadata(songs, profiles, config)
        context_hash = metadata.context_hash

        # 1. Memory tier
        cached = self._entries.get(context_hash)
        if cached is not None and cached.is_valid(self._entries.now()):
            self._hits += 1
            logger.debug("Memory cache hit: %s", context_hash)
            return _cached_result(len(songs), cached.matches)

        self._misses += 1

        # 2. Persistent tier
        store = self._store
        if account_id is not None and store is not None:
            persisted = await self._load_persisted(
                store, context_hash, account_id, songs, profiles, embeddings
            )
            if persisted is not None:
                logger.info("Persisted cache hit: %s", context_hash)
                self._remember(context_hash, persisted)
                return _cached_result(len(songs), persisted)

        # 3. Compute
        logger.info(
            "Cache miss: %s (%d songs x %d playlists)",
            context_hash, len(songs), len(profiles),
        )
        engine = self._engine_for(metadata.effective_config)
        result = await engine.match_batch(
            songs, profiles, embeddings, job_id=job_id, on_progress=on_progress
        )

        if account_id is not None and store is not None:
            try:
                await self._persist(
                    store, account_id, metadata, songs, profiles, result.matches
                )
            except StorageError:
                logger.error(
                    "Failed to persist matches for %s", context_hash, exc_info=True
                )

        self._remember(context_hash, result.matches)
        return result

    # --- Invalidation / stats ---

    def invalidate_for_playlists(self, playlist_ids: Sequence[str]) -> int:
        """Drop every entry whose matches reference any of the playlists.

        Returns:
            Number of entries removed.
        """
        targets = set(playlist_ids)
        removed = 0
        for key, entry in self._entries.items():
            if any(
                m.playlist_id in targets
                for results in entry.matches.values()
                for m in results
            ):
                self._entries.delete(key)
                removed += 1
        self._evictions += removed
        if removed:
            logger.info("Invalidated %d cache entries for %d playlists", removed, len(targets))
        return removed

    def invalidate_all(self) -> int:
        removed = self._entries.clear()
        self._evictions += removed
        return removed

    def get_stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            size=len(self._entries),
        )

    # --- Hashing ---

    def compute_context_metadata(
        self,
        songs: Sequence[Song],
        profiles: Sequence[PlaylistProfile],
        config: Mapping[str, Any] | MatchingConfig | None = None,
    ) -> ContextMetadata:
        """Compute every hash of a request in one pass."""
        effective, ignored = self._base_config.with_scoring_overrides(config)
        if ignored:
            logger.warning(
                "Ignoring config overrides outside the cache key: %s",
                ", ".join(ignored),
            )
        candidate_set_hash = hash_songs(songs)
        playlist_set_hash = hash_profiles(profiles)
        config_hash = hash_matching_config(effective.scoring_subset())
        model_bundle_hash = self._bundle_provider.get_hash()
        return ContextMetadata(
            context_hash=hash_match_context(
                candidate_set_hash, playlist_set_hash, config_hash, model_bundle_hash
            ),
            candidate_set_hash=candidate_set_hash,
            playlist_set_hash=playlist_set_hash,
            config_hash=config_hash,
            model_bundle_hash=model_bundle_hash,
            effective_config=effective,
        )

    # --- Internals ---

    def _engine_for(self, effective: MatchingConfig) -> MatchingEngine:
        if effective == self._engine.config:
            return self._engine
        return MatchingEngine(effective, progress_sink=self._engine.progress_sink)

    def _remember(self, context_hash: str, matches: dict[str, list[MatchResult]]) -> None:
        now = self._entries.now()
        entry = CachedMatchEntry(
            context_hash=context_hash,
            matches=matches,
            computed_at=now,
            expires_at=now + self._entries.ttl_seconds,
        )
        self._evictions += self._entries.put(context_hash, entry, expires_at=entry.expires_at)

    async def _load_persisted(
        self,
        store: BaseMatchStore,
        context_hash: str,
        account_id: str,
        songs: Sequence[Song],
        profiles: Sequence[PlaylistProfile],
        embeddings: Mapping[str, Sequence[float]],
    ) -> dict[str, list[MatchResult]] | None:
        context = await store.get_context_by_hash(context_hash, account_id)
        if context is None:
            return None

        song_ids = [s.id for s in songs]
        stored = await store.get_results_for_songs(context.id, song_ids)
        if len(stored) != len(song_ids):
            logger.debug(
                "Partial persisted set for %s: %d of %d songs, recomputing",
                context_hash, len(stored), len(song_ids),
            )
            return None

        songs_by_id = {s.id: s for s in songs}
        profiles_by_id = {p.playlist_id: p for p in profiles}
        matches: dict[str, list[MatchResult]] = {}
        for song_id, rows in stored.items():
            song = songs_by_id[song_id]
            embedding = embeddings.get(song_id)
            matches[song_id] = [
                MatchResult(
                    song_id=row.song_id,
                    playlist_id=row.playlist_id,
                    score=row.score,
                    rank=row.rank or 0,
                    factors=row.factors,
                    confidence=_current_confidence(
                        song, profiles_by_id.get(row.playlist_id), embedding
                    ),
                    from_cache=True,
                )
                for row in rows
            ]
        return matches

    async def _persist(
        self,
        store: BaseMatchStore,
        account_id: str,
        metadata: ContextMetadata,
        songs: Sequence[Song],
        profiles: Sequence[PlaylistProfile],
        matches: dict[str, list[MatchResult]],
    ) -> str:
        """Write the context and its results; return the context id.

        A context that already exists (concurrent writer) is re-read by
        hash. Duplicate result rows are ignored.
        """
        bundle = self._bundle_provider.bundle
        data = NewMatchContext(
            account_id=account_id,
            algorithm_version=MATCHING_ALGO_VERSION,
            embedding_model=bundle.embedding.model,
            embedding_version=metadata.model_bundle_hash,
            weights=metadata.effective_config.weights.model_dump(),
            config_hash=metadata.config_hash,
            playlist_set_hash=metadata.playlist_set_hash,
            candidate_set_hash=metadata.candidate_set_hash,
            context_hash=metadata.context_hash,
            playlist_count=len(profiles),
            song_count=len(songs),
        )

        try:
            context = await store.create_context(data)
        except ConflictError as conflict:
            existing = await store.get_context_by_hash(
                metadata.context_hash, account_id
            )
            if existing is None:
                raise StorageError(
                    f"Context {metadata.context_hash} conflicted but could not be re-read"
                ) from conflict
            logger.debug("Context %s created concurrently, reusing", metadata.context_hash)
            context = existing

        rows = [
            StoredMatchResult(
                context_id=context.id,
                song_id=r.song_id,
                playlist_id=r.playlist_id,
                score=r.score,
                rank=r.rank,
                factors=r.factors,
            )
            for results in matches.values()
            for r in results
        ]
        if rows:
            try:
                await store.insert_results(rows)
            except ConflictError:
                logger.debug("Results for %s already stored", metadata.context_hash)

        return context.id


def _current_confidence(
    song: Song,
    profile: PlaylistProfile | None,
    embedding: Sequence[float] | None,
) -> float:
    """Confidence from today's data, not from what was stored."""
    if profile is not None:
        return compute_availability(song, profile, embedding).confidence
    song_side = (
        has_vector(embedding),
        bool(song.genres),
        song.audio_features is not None,
        song.analysis is not None,
    )
    return sum(song_side) / 5


def _cached_result(total: int, matches: dict[str, list[MatchResult]]) -> BatchMatchResult:
    return BatchMatchResult(
        matches=matches,
        failed=[],
        stats=BatchStats(
            total=total,
            matched=len(matches),
            cached=len(matches),
            computed=0,
            failed=0,
        ),
    )

