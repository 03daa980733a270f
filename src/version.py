# src/version.py — v1
"""Package and algorithm versions.

Bump an algorithm version when its output changes; every hash that embeds
it changes with it, so dependent caches miss instead of serving stale data.
"""

from __future__ import annotations

__version__ = "0.4.0"

# Text extraction used to build track embeddings.
EXTRACTOR_VERSION = 1
# Embedding schema / dimensions.
EMBEDDING_SCHEMA_VERSION = 1
# Playlist profile computation.
PLAYLIST_PROFILE_VERSION = 1
# Matching algorithm (scoring + ranking).
MATCHING_ALGO_VERSION = "matching_v2"

MODEL_BUNDLE_VERSION = (
    f"e{EXTRACTOR_VERSION}_s{EMBEDDING_SCHEMA_VERSION}"
    f"_p{PLAYLIST_PROFILE_VERSION}_{MATCHING_ALGO_VERSION}"
)
