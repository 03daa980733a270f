# src/api/facade.py — v3
"""Public API facade — single entry point for cached song matching.

Usage:
    from songmatch.api.facade import build_match_cache, match_songs
    cache = build_match_cache(settings)
    response = await match_songs(request, cache)

    matcher = build_semantic_matcher(settings)
    await matcher.are_similar("euphoric", "joyful")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from songmatch.api.models import MatchRequest, MatchResponse
from songmatch.cache.match_cache import MatchCache
from songmatch.cache.store_factory import create_match_store
from songmatch.config.settings import Settings
from songmatch.embeddings.embedder_factory import create_embedder
from songmatch.embeddings.model_bundle import ModelBundleProvider
from songmatch.matching.config import MatchingConfig
from songmatch.matching.engine import MatchingEngine
from songmatch.matching.semantic import SemanticMatcher

if TYPE_CHECKING:
    from collections.abc import Callable

    from songmatch.cache.base_match_store import BaseMatchStore
    from songmatch.embeddings.base_embedder import BaseEmbedder
    from songmatch.tracking.models import JobProgress
    from songmatch.tracking.progress import BaseProgressSink

logger = logging.getLogger(__name__)


def build_match_cache(
    settings: Settings | None = None,
    store: BaseMatchStore | None = None,
    embedder: BaseEmbedder | None = None,
    progress_sink: BaseProgressSink | None = None,
) -> MatchCache:
    """Wire engine, bundle provider and persistent store into a MatchCache.

    Args:
        settings: Global settings. Loaded from .env if None.
        store: Persistent store. None = built from MATCH_STORE_BACKEND.
        embedder: Active embedder; describes the model bundle. None = the
            embedder configured by EMBEDDING_PROVIDER (created lazily, no
            model is loaded here).
        progress_sink: Destination for per-job progress events.

    Returns:
        A MatchCache owning its own memory tier.
    """
    settings = settings or Settings()
    config = MatchingConfig.from_settings(settings)
    engine = MatchingEngine(config, progress_sink=progress_sink)

    if embedder is None:
        embedder = create_embedder(settings)
    bundle_provider = ModelBundleProvider.from_embedder(embedder, settings)

    if store is None:
        store = create_match_store(settings)

    logger.debug(
        "Match cache: store=%s, ttl=%ss, max_entries=%d",
        type(store).__name__ if store else "none",
        settings.cache_ttl_seconds, settings.cache_max_entries,
    )
    return MatchCache(
        engine=engine,
        bundle_provider=bundle_provider,
        store=store,
        ttl_seconds=settings.cache_ttl_seconds,
        max_entries=settings.cache_max_entries,
        base_config=config,
    )


async def match_songs(
    request: MatchRequest,
    cache: MatchCache | None = None,
    job_id: str | None = None,
    on_progress: Callable[[JobProgress], None] | None = None,
) -> MatchResponse:
    """Run one cached matching request.

    Raises:
        StorageError: If the persistent lookup fails.
    """
    cache = cache or build_match_cache()
    metadata = cache.compute_context_metadata(
        request.songs, request.profiles, request.config
    )
    result = await cache.get_or_compute_matches(
        request.account_id,
        request.songs,
        request.profiles,
        request.song_embeddings,
        request.config,
        job_id=job_id,
        on_progress=on_progress,
    )
    logger.info(
        "Matched %d/%d songs (cached=%d, failed=%d)",
        result.stats.matched, result.stats.total,
        result.stats.cached, result.stats.failed,
    )
    return MatchResponse(
        context_hash=metadata.context_hash,
        result=result,
        cache=cache.get_stats(),
    )


def build_semantic_matcher(
    settings: Settings | None = None,
    embedder: BaseEmbedder | None = None,
) -> SemanticMatcher:
    """Semantic label matcher backed by the configured embedder.

    Args:
        settings: Global settings. Loaded from .env if None.
        embedder: Embedder to use. None = built from EMBEDDING_PROVIDER.
    """
    settings = settings or Settings()
    if embedder is None:
        embedder = create_embedder(settings)
    return SemanticMatcher.from_settings(settings, embedder)
