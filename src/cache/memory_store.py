# src/cache/memory_store.py — v1
"""Process-local match store (MATCH_STORE_BACKEND=memory).

Same constraints as the SQLite store, kept in dictionaries. Useful for
tests and single-process deployments that want the persisted-tier
semantics without a database file.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timezone

from songmatch.cache.base_match_store import BaseMatchStore
from songmatch.cache.models import MatchContext, NewMatchContext, StoredMatchResult
from songmatch.core.errors import ConflictError


class InMemoryMatchStore(BaseMatchStore):
    """Dictionary-backed match store."""

    def __init__(self) -> None:
        self._contexts: dict[str, MatchContext] = {}
        self._by_hash: dict[tuple[str, str], str] = {}
        self._results: dict[str, dict[tuple[str, str], StoredMatchResult]] = (
            defaultdict(dict)
        )

    async def get_context_by_hash(
        self, context_hash: str, account_id: str
    ) -> MatchContext | None:
        context_id = self._by_hash.get((account_id, context_hash))
        return self._contexts.get(context_id) if context_id else None

    async def get_context(self, context_id: str) -> MatchContext | None:
        return self._contexts.get(context_id)

    async def get_latest_context(self, account_id: str) -> MatchContext | None:
        owned = [c for c in self._contexts.values() if c.account_id == account_id]
        return sorted(owned, key=lambda c: c.created_at)[-1] if owned else None

    async def create_context(self, data: NewMatchContext) -> MatchContext:
        key = (data.account_id, data.context_hash)
        if key in self._by_hash:
            raise ConflictError(
                f"Context {data.context_hash} already exists for account {data.account_id}"
            )
        context = MatchContext(
            **data.model_dump(),
            id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
        )
        self._contexts[context.id] = context
        self._by_hash[key] = context.id
        return context

    async def get_results(self, context_id: str) -> list[StoredMatchResult]:
        rows = list(self._results.get(context_id, {}).values())
        return sorted(rows, key=lambda r: r.score, reverse=True)

    async def get_results_for_songs(
        self, context_id: str, song_ids: Sequence[str]
    ) -> dict[str, list[StoredMatchResult]]:
        wanted = set(song_ids)
        grouped: dict[str, list[StoredMatchResult]] = {}
        for row in await self.get_results(context_id):
            if row.song_id in wanted:
                grouped.setdefault(row.song_id, []).append(row)
        return grouped

    async def insert_results(self, rows: Sequence[StoredMatchResult]) -> None:
        seen: set[tuple[str, str, str]] = set()
        for row in rows:
            key = (row.context_id, row.song_id, row.playlist_id)
            if key in seen or (row.song_id, row.playlist_id) in self._results.get(
                row.context_id, {}
            ):
                raise ConflictError(
                    f"Result {row.song_id}->{row.playlist_id} already stored "
                    f"for context {row.context_id}"
                )
            seen.add(key)
        for row in rows:
            self._results[row.context_id][(row.song_id, row.playlist_id)] = row
