# src/core/errors.py — v1
"""Exception hierarchy for matching, storage and embedding failures."""

from __future__ import annotations


class MatchingError(Exception):
    """Base class for failures raised while scoring songs."""


class MatchingDataError(MatchingError):
    """Required scoring input is missing or malformed."""

    def __init__(
        self,
        message: str,
        song_id: str | None = None,
        playlist_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.song_id = song_id
        self.playlist_id = playlist_id


class MatchingComputeError(MatchingError):
    """Unexpected failure inside a scoring step."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class StorageError(Exception):
    """Persistent match store I/O failure."""


class ConflictError(StorageError):
    """A uniqueness constraint rejected a write."""


class EmbeddingError(Exception):
    """Embedding backend could not produce a vector."""
