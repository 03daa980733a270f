# src/cache/store_factory.py — v1
"""Factory for persistent match store instantiation."""

from __future__ import annotations

from songmatch.cache.base_match_store import BaseMatchStore
from songmatch.config.settings import Settings


class UnsupportedMatchStoreError(ValueError):
    """Raised when MATCH_STORE_BACKEND names no known backend."""


def create_match_store(settings: Settings | None = None) -> BaseMatchStore | None:
    """Instantiate the configured persistent store.

    Args:
        settings: Application settings. None means no persistent tier.

    Returns:
        Configured store, or None when the backend is "none".
    """
    backend = "none" if settings is None else settings.match_store_backend

    if backend == "none":
        return None

    if backend == "memory":
        from songmatch.cache.memory_store import InMemoryMatchStore
        return InMemoryMatchStore()

    if backend == "sqlite":
        from songmatch.cache.sqlite_store import SqliteMatchStore
        if settings is None or settings.match_store_path is None:
            raise ValueError(
                "MATCH_STORE_PATH must be set when MATCH_STORE_BACKEND=sqlite"
            )
        return SqliteMatchStore(db_path=settings.match_store_path)

    raise UnsupportedMatchStoreError(f"Unsupported match store backend: {backend!r}")
