# src/cache/sqlite_store.py — v2
"""SQLite-based match store (MATCH_STORE_BACKEND=sqlite).

Uses stdlib sqlite3 — no external dependency. Uniqueness of contexts per
account and of results per context is enforced by UNIQUE indexes;
``sqlite3.IntegrityError`` surfaces as ConflictError, any other
``sqlite3.Error`` as StorageError.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

from songmatch.cache.base_match_store import BaseMatchStore
from songmatch.cache.models import MatchContext, NewMatchContext, StoredMatchResult
from songmatch.core.errors import ConflictError, StorageError
from songmatch.core.models import ScoreFactors

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS match_context (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL,
    algorithm_version TEXT NOT NULL,
    embedding_model TEXT,
    embedding_version TEXT,
    analysis_model TEXT,
    analysis_version TEXT,
    weights TEXT NOT NULL DEFAULT '{}',
    config_hash TEXT NOT NULL,
    playlist_set_hash TEXT NOT NULL,
    candidate_set_hash TEXT NOT NULL,
    context_hash TEXT NOT NULL,
    playlist_count INTEGER NOT NULL DEFAULT 0,
    song_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_context_account_hash
    ON match_context(account_id, context_hash);
CREATE INDEX IF NOT EXISTS idx_context_account_created
    ON match_context(account_id, created_at);

CREATE TABLE IF NOT EXISTS match_result (
    context_id TEXT NOT NULL REFERENCES match_context(id) ON DELETE CASCADE,
    song_id TEXT NOT NULL,
    playlist_id TEXT NOT NULL,
    score REAL NOT NULL,
    rank INTEGER,
    factors TEXT NOT NULL DEFAULT '{}'
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_result_context_song_playlist
    ON match_result(context_id, song_id, playlist_id);
"""

_CONTEXT_COLUMNS = (
    "id, account_id, algorithm_version, embedding_model, embedding_version, "
    "analysis_model, analysis_version, weights, config_hash, playlist_set_hash, "
    "candidate_set_hash, context_hash, playlist_count, song_count, created_at"
)


class SqliteMatchStore(BaseMatchStore):
    """SQLite-backed persistent match store."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)

    # --- Contexts ---

    async def get_context_by_hash(
        self, context_hash: str, account_id: str
    ) -> MatchContext | None:
        row = self._fetchone(
            f"SELECT {_CONTEXT_COLUMNS} FROM match_context "
            "WHERE context_hash = ? AND account_id = ?",
            (context_hash, account_id),
        )
        return _row_to_context(row) if row else None

    async def get_context(self, context_id: str) -> MatchContext | None:
        row = self._fetchone(
            f"SELECT {_CONTEXT_COLUMNS} FROM match_context WHERE id = ?",
            (context_id,),
        )
        return _row_to_context(row) if row else None

    async def get_latest_context(self, account_id: str) -> MatchContext | None:
        row = self._fetchone(
            f"SELECT {_CONTEXT_COLUMNS} FROM match_context WHERE account_id = ? "
            "ORDER BY created_at DESC, rowid DESC LIMIT 1",
            (account_id,),
        )
        return _row_to_context(row) if row else None

    async def create_context(self, data: NewMatchContext) -> MatchContext:
        context = MatchContext(
            **data.model_dump(),
            id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
        )
        try:
            with self._conn:
                self._conn.execute(
                    f"INSERT INTO match_context ({_CONTEXT_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        context.id,
                        context.account_id,
                        context.algorithm_version,
                        context.embedding_model,
                        context.embedding_version,
                        context.analysis_model,
                        context.analysis_version,
                        json.dumps(context.weights),
                        context.config_hash,
                        context.playlist_set_hash,
                        context.candidate_set_hash,
                        context.context_hash,
                        context.playlist_count,
                        context.song_count,
                        context.created_at.isoformat(),
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                f"Context {data.context_hash} already exists for account {data.account_id}"
            ) from e
        except sqlite3.Error as e:
            raise StorageError(f"Failed to create match context: {e}") from e
        return context

    # --- Results ---

    async def get_results(self, context_id: str) -> list[StoredMatchResult]:
        rows = self._fetchall(
            "SELECT context_id, song_id, playlist_id, score, rank, factors "
            "FROM match_result WHERE context_id = ? ORDER BY score DESC",
            (context_id,),
        )
        return [_row_to_result(r) for r in rows]

    async def get_results_for_songs(
        self, context_id: str, song_ids: Sequence[str]
    ) -> dict[str, list[StoredMatchResult]]:
        if not song_ids:
            return {}
        placeholders = ", ".join("?" for _ in song_ids)
        rows = self._fetchall(
            "SELECT context_id, song_id, playlist_id, score, rank, factors "
            f"FROM match_result WHERE context_id = ? AND song_id IN ({placeholders}) "
            "ORDER BY score DESC",
            (context_id, *song_ids),
        )
        grouped: dict[str, list[StoredMatchResult]] = {}
        for row in rows:
            result = _row_to_result(row)
            grouped.setdefault(result.song_id, []).append(result)
        return grouped

    async def insert_results(self, rows: Sequence[StoredMatchResult]) -> None:
        if not rows:
            return
        try:
            with self._conn:
                self._conn.executemany(
                    "INSERT INTO match_result "
                    "(context_id, song_id, playlist_id, score, rank, factors) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    [
                        (
                            r.context_id,
                            r.song_id,
                            r.playlist_id,
                            r.score,
                            r.rank,
                            r.factors.model_dump_json(),
                        )
                        for r in rows
                    ],
                )
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Duplicate match result: {e}") from e
        except sqlite3.Error as e:
            raise StorageError(f"Failed to insert match results: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- Helpers ---

    def _fetchone(self, sql: str, params: tuple) -> sqlite3.Row | None:
        try:
            return self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Match store read failed: {e}") from e

    def _fetchall(self, sql: str, params: tuple) -> list[sqlite3.Row]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Match store read failed: {e}") from e


def _row_to_context(row: sqlite3.Row) -> MatchContext:
    data = dict(row)
    data["weights"] = json.loads(data["weights"] or "{}")
    data["created_at"] = datetime.fromisoformat(data["created_at"])
    return MatchContext(**data)


def _row_to_result(row: sqlite3.Row) -> StoredMatchResult:
    data = dict(row)
    try:
        factors = ScoreFactors(**json.loads(data["factors"] or "{}"))
    except (ValueError, TypeError):
        logger.warning(
            "Unreadable factors for %s/%s, using zeros",
            data["song_id"], data["playlist_id"],
        )
        factors = ScoreFactors()
    data["factors"] = factors
    return StoredMatchResult(**data)
