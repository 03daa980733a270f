# src/cache/hashing.py — v3
"""Deterministic content hashing for match-cache keys.

Hashes are the first 16 hex chars of SHA-256 over a key-sorted JSON
serialisation, prefixed with their type (and version where one applies):

    te_v<n>_   track content          pp_v<n>_   playlist profile
    mc_<algo>_ matching config        cs_        candidate set
    ps_        playlist set           ctx_       match context
    tg_        track genre            mb_        model bundle

Set hashes sort their inputs first, so the same songs or playlists in any
order produce the same hash.
"""

from __future__ import annotations

import hashlib
import json
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from songmatch.core.models import PlaylistProfile, Song
from songmatch.version import (
    EXTRACTOR_VERSION,
    MATCHING_ALGO_VERSION,
    PLAYLIST_PROFILE_VERSION,
)

SHORT_HASH_LENGTH = 16


# === Primitives ===


def stable_stringify(obj: Any) -> str:
    """JSON with sorted keys and no whitespace; ``None`` becomes ``null``."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
    )


def stable_hash(content: str) -> str:
    """Full SHA-256 hex digest of a UTF-8 string."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def short_hash(content: str) -> str:
    return stable_hash(content)[:SHORT_HASH_LENGTH]


# === Fingerprints ===


def song_fingerprint(song: Song) -> str:
    """Content fingerprint of a song: name, artists, genres."""
    return "|".join(
        [song.name, ",".join(song.artists), ",".join(song.genres or [])]
    )


def profile_fingerprint(profile: PlaylistProfile) -> str:
    """Shape fingerprint of a profile: id, genre keys, centroid keys."""
    return "|".join(
        [
            profile.playlist_id,
            ",".join(profile.genre_distribution),
            ",".join(profile.audio_centroid),
        ]
    )


# === Domain hashes ===


def hash_track_content(text: str) -> str:
    return f"te_v{EXTRACTOR_VERSION}_{short_hash(text)}"


def hash_playlist_profile(
    playlist_id: str,
    song_ids: Iterable[str],
    audio_centroid: Mapping[str, float] | None = None,
) -> str:
    """Hash a profile's inputs. Centroid values are rounded to 4 decimals."""
    rounded = {k: round(v, 4) for k, v in (audio_centroid or {}).items()}
    content = stable_stringify(
        {
            "playlistId": playlist_id,
            "songIds": sorted(song_ids),
            "audioCentroid": rounded,
        }
    )
    return f"pp_v{PLAYLIST_PROFILE_VERSION}_{short_hash(content)}"


def hash_matching_config(config_subset: Mapping[str, Any]) -> str:
    return f"mc_{MATCHING_ALGO_VERSION}_{short_hash(stable_stringify(config_subset))}"


def hash_candidate_set(song_ids: Iterable[str], content_hashes: Iterable[str]) -> str:
    content = stable_stringify(
        {"songIds": sorted(song_ids), "contentHashes": sorted(content_hashes)}
    )
    return f"cs_{short_hash(content)}"


def hash_playlist_set(playlist_ids: Iterable[str], profile_hashes: Iterable[str]) -> str:
    content = stable_stringify(
        {"playlistIds": sorted(playlist_ids), "profileHashes": sorted(profile_hashes)}
    )
    return f"ps_{short_hash(content)}"


def hash_match_context(
    candidate_set_hash: str,
    playlist_set_hash: str,
    config_hash: str,
    model_bundle_hash: str | None = None,
) -> str:
    content = stable_stringify(
        {
            "candidateSetHash": candidate_set_hash,
            "playlistSetHash": playlist_set_hash,
            "configHash": config_hash,
            "modelBundleHash": model_bundle_hash,
        }
    )
    return f"ctx_{short_hash(content)}"


def hash_track_genre(artist: str, album: str | None = None) -> str:
    content = stable_stringify(
        {
            "artist": artist.lower().strip(),
            "album": (album or "").lower().strip(),
        }
    )
    return f"tg_{short_hash(content)}"


def hash_model_bundle(version_payload: Mapping[str, Any]) -> str:
    """Hash the version-relevant fields of a model bundle."""
    return f"mb_{short_hash(stable_stringify(version_payload))}"


def hash_songs(songs: Sequence[Song]) -> str:
    return hash_candidate_set(
        [s.id for s in songs], [song_fingerprint(s) for s in songs]
    )


def hash_profiles(profiles: Sequence[PlaylistProfile]) -> str:
    return hash_playlist_set(
        [p.playlist_id for p in profiles], [profile_fingerprint(p) for p in profiles]
    )


# === Prefix parsing ===

_PREFIX_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(te)_v(\d+)_(.+)$"),
    re.compile(r"^(pp)_v(\d+)_(.+)$"),
    re.compile(r"^(mc)_(.+)_([0-9a-f]{16})$"),
    re.compile(r"^(cs)_(.+)$"),
    re.compile(r"^(ps)_(.+)$"),
    re.compile(r"^(ctx)_(.+)$"),
    re.compile(r"^(tg)_(.+)$"),
    re.compile(r"^(mb)_(.+)$"),
)


def parse_hash_prefix(value: str) -> dict[str, str | None] | None:
    """Split a prefixed hash into ``type``, ``version`` and ``hash``.

    Returns None when the prefix is not recognised.
    """
    for pattern in _PREFIX_PATTERNS:
        match = pattern.match(value)
        if match is None:
            continue
        groups = match.groups()
        if len(groups) == 3:
            return {"type": groups[0], "version": groups[1], "hash": groups[2]}
        return {"type": groups[0], "version": None, "hash": groups[1]}
    return None


def is_current_version(value: str) -> bool:
    """True when a versioned hash was produced by the current algorithm.

    Unversioned hash types are always current.
    """
    parsed = parse_hash_prefix(value)
    if parsed is None:
        return False
    kind, version = parsed["type"], parsed["version"]
    if kind == "te":
        return version == str(EXTRACTOR_VERSION)
    if kind == "pp":
        return version == str(PLAYLIST_PROFILE_VERSION)
    if kind == "mc":
        return version == MATCHING_ALGO_VERSION
    return True
