# tests/unit/cache/test_unit_sqlite_store.py — v2
"""Tests for cache/sqlite_store.py — full functional tests (stdlib sqlite3)."""

from __future__ import annotations

import pytest

from songmatch.cache.models import NewMatchContext, StoredMatchResult
from songmatch.cache.sqlite_store import SqliteMatchStore
from songmatch.core.errors import ConflictError, StorageError
from songmatch.core.models import ScoreFactors


@pytest.fixture
def store(tmp_path):
    s = SqliteMatchStore(db_path=tmp_path / "matches.db")
    yield s
    s.close()


@pytest.fixture
def new_context():
    return NewMatchContext(
        account_id="acct-1",
        algorithm_version="matching_v2",
        embedding_model="test-embedder",
        embedding_version="mb_0000000000000000",
        weights={"vector": 0.25, "genre": 0.15},
        config_hash="mc_matching_v2_0000000000000000",
        playlist_set_hash="ps_0000000000000000",
        candidate_set_hash="cs_0000000000000000",
        context_hash="ctx_0000000000000001",
        playlist_count=1,
        song_count=2,
    )


class TestSqliteContexts:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store, new_context):
        created = await store.create_context(new_context)
        found = await store.get_context_by_hash("ctx_0000000000000001", "acct-1")
        assert found is not None
        assert found.id == created.id
        assert found.weights == {"vector": 0.25, "genre": 0.15}
        assert found.embedding_model == "test-embedder"
        assert found.created_at == created.created_at

    @pytest.mark.asyncio
    async def test_get_by_id(self, store, new_context):
        created = await store.create_context(new_context)
        assert (await store.get_context(created.id)).context_hash == new_context.context_hash
        assert await store.get_context("missing") is None

    @pytest.mark.asyncio
    async def test_scoped_by_account(self, store, new_context):
        await store.create_context(new_context)
        assert await store.get_context_by_hash(new_context.context_hash, "acct-2") is None

    @pytest.mark.asyncio
    async def test_conflict(self, store, new_context):
        await store.create_context(new_context)
        with pytest.raises(ConflictError):
            await store.create_context(new_context)

    @pytest.mark.asyncio
    async def test_latest(self, store, new_context):
        await store.create_context(new_context)
        second = await store.create_context(
            new_context.model_copy(update={"context_hash": "ctx_0000000000000002"})
        )
        latest = await store.get_latest_context("acct-1")
        assert latest.id == second.id

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path, new_context):
        path = tmp_path / "shared.db"
        first = SqliteMatchStore(path)
        await first.create_context(new_context)
        first.close()
        second = SqliteMatchStore(path)
        assert await second.get_context_by_hash(new_context.context_hash, "acct-1") is not None
        second.close()


class TestSqliteResults:
    @pytest.mark.asyncio
    async def test_insert_and_read(self, store, new_context):
        ctx = await store.create_context(new_context)
        await store.insert_results([
            StoredMatchResult(
                context_id=ctx.id, song_id="s1", playlist_id="p1", score=0.7,
                rank=1, factors=ScoreFactors(vector=0.9, genre=0.5),
            ),
            StoredMatchResult(
                context_id=ctx.id, song_id="s2", playlist_id="p1", score=0.4, rank=1,
            ),
        ])
        grouped = await store.get_results_for_songs(ctx.id, ["s1", "s2"])
        assert set(grouped) == {"s1", "s2"}
        assert grouped["s1"][0].factors.vector == 0.9
        assert grouped["s2"][0].factors == ScoreFactors()

    @pytest.mark.asyncio
    async def test_empty_song_list(self, store, new_context):
        ctx = await store.create_context(new_context)
        assert await store.get_results_for_songs(ctx.id, []) == {}

    @pytest.mark.asyncio
    async def test_duplicate_conflict_rolls_back(self, store, new_context):
        ctx = await store.create_context(new_context)
        row = StoredMatchResult(context_id=ctx.id, song_id="s1", playlist_id="p1", score=0.5)
        await store.insert_results([row])
        other = row.model_copy(update={"song_id": "s2"})
        with pytest.raises(ConflictError):
            await store.insert_results([other, row])
        assert len(await store.get_results(ctx.id)) == 1

    @pytest.mark.asyncio
    async def test_unreadable_factors_fall_back(self, store, new_context):
        ctx = await store.create_context(new_context)
        store._conn.execute(
            "INSERT INTO match_result (context_id, song_id, playlist_id, score, rank, factors) "
            "VALUES (?, 's1', 'p1', 0.5, 1, 'not json')",
            (ctx.id,),
        )
        rows = await store.get_results(ctx.id)
        assert rows[0].factors == ScoreFactors()

    @pytest.mark.asyncio
    async def test_read_failure_is_storage_error(self, store):
        store._conn.execute("DROP TABLE match_result")
        with pytest.raises(StorageError):
            await store.get_results("any")

    @pytest.mark.asyncio
    async def test_closed_connection(self, store):
        store.close()
        with pytest.raises(StorageError):
            await store.get_context("any")
