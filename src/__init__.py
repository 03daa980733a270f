# src/__init__.py — v1
"""songmatch — song-to-playlist matching engine with a two-tier match cache."""

from songmatch.version import __version__

__all__ = ["__version__"]
