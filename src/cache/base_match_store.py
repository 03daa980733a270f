# src/cache/base_match_store.py — v2
"""Abstract persistent match store interface.

Implementations must enforce two uniqueness constraints and report
violations as ``ConflictError``:

* one context per (account_id, context_hash);
* one result per (context_id, song_id, playlist_id).

Any other I/O failure is reported as ``StorageError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from songmatch.cache.models import MatchContext, NewMatchContext, StoredMatchResult


class BaseMatchStore(ABC):
    """Persistent tier of the match cache."""

    @abstractmethod
    async def get_context_by_hash(
        self, context_hash: str, account_id: str
    ) -> MatchContext | None:
        """Find an account's context by its content hash."""

    @abstractmethod
    async def get_context(self, context_id: str) -> MatchContext | None:
        """Find a context by id."""

    @abstractmethod
    async def get_latest_context(self, account_id: str) -> MatchContext | None:
        """Most recently created context for an account."""

    @abstractmethod
    async def create_context(self, data: NewMatchContext) -> MatchContext:
        """Insert a context. Raises ConflictError if the hash already exists."""

    @abstractmethod
    async def get_results(self, context_id: str) -> list[StoredMatchResult]:
        """All results of a context, best score first."""

    @abstractmethod
    async def get_results_for_songs(
        self, context_id: str, song_ids: Sequence[str]
    ) -> dict[str, list[StoredMatchResult]]:
        """Results for the given songs, grouped by song id, best score first.

        Songs without any stored result are absent from the mapping.
        """

    @abstractmethod
    async def insert_results(self, rows: Sequence[StoredMatchResult]) -> None:
        """Bulk insert, all or nothing. Raises ConflictError on a duplicate row."""
