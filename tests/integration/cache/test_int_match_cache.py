# tests/integration/cache/test_int_match_cache.py — v1
"""Integration tests — match cache end-to-end over a SQLite store."""

from __future__ import annotations

import pytest

from songmatch.api.facade import build_match_cache, match_songs
from songmatch.api.models import MatchRequest
from songmatch.cache.sqlite_store import SqliteMatchStore
from songmatch.config.settings import Settings


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        match_store_backend="sqlite",
        match_store_path=tmp_path / "matches.db",
    )


@pytest.fixture
def request_(full_song, full_profile, unrelated_profile, full_embeddings) -> MatchRequest:
    return MatchRequest(
        account_id="acct-1",
        songs=[
            full_song,
            full_song.model_copy(update={"id": "song_full_0003", "name": "Summer Haze II"}),
        ],
        profiles=[full_profile, unrelated_profile],
        song_embeddings=full_embeddings,
    )


class TestSqliteRoundTrip:
    @pytest.mark.asyncio
    async def test_persisted_hit_in_new_process(self, settings, request_):
        first_cache = build_match_cache(settings)
        first = await match_songs(request_, first_cache)
        assert first.result.stats.computed == 2
        first_cache._store.close()

        # A fresh cache with an empty memory tier, same database file.
        second_cache = build_match_cache(settings)
        second = await match_songs(request_, second_cache)
        second_cache._store.close()

        assert second.context_hash == first.context_hash
        assert second.result.stats.cached == 2
        assert second.cache.misses == 1
        for song_id, results in second.result.matches.items():
            original = first.result.matches[song_id]
            assert [r.playlist_id for r in results] == [r.playlist_id for r in original]
            assert [r.score for r in results] == pytest.approx([r.score for r in original])
            assert all(r.from_cache for r in results)

    @pytest.mark.asyncio
    async def test_context_row(self, settings, request_):
        cache = build_match_cache(settings)
        response = await match_songs(request_, cache)
        cache._store.close()

        store = SqliteMatchStore(db_path=settings.match_store_path)
        try:
            context = await store.get_latest_context("acct-1")
            assert context is not None
            assert context.context_hash == response.context_hash
            assert context.song_count == 2
            assert context.playlist_count == 2
            assert context.algorithm_version == "matching_v2"
            assert context.weights["vector"] == 0.25
            rows = await store.get_results(context.id)
            assert {r.song_id for r in rows} == {"song_full_0001", "song_full_0003"}
        finally:
            store.close()


class TestFullDataScenario:
    @pytest.mark.asyncio
    async def test_every_factor_contributes(self, settings, request_):
        cache = build_match_cache(settings)
        response = await match_songs(request_, cache)
        cache._store.close()

        best = response.result.matches["song_full_0001"][0]
        assert best.playlist_id == "pl_summer"
        assert best.rank == 1
        assert best.confidence == 1.0
        assert all(value > 0 for value in best.factors.model_dump().values())
        assert best.score > 0.8

    @pytest.mark.asyncio
    async def test_new_song_misses(self, settings, request_, genre_only_song):
        cache = build_match_cache(settings)
        await match_songs(request_, cache)
        extended = request_.model_copy(update={"songs": [*request_.songs, genre_only_song]})
        response = await match_songs(extended, cache)
        cache._store.close()

        assert response.cache.misses == 2
        assert response.result.stats.cached == 0
        assert "song_genre_0002" in response.result.failed
