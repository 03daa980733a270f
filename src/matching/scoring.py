# src/matching/scoring.py — v2
"""Pure factor-scoring functions for song-to-playlist matching.

Every function here is stateless and returns a score in [0, 1] except
``cosine_similarity`` (re-exported from core.similarity), which is in
[-1, 1] and must be remapped by callers that need a unit score.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from songmatch.core.models import AUDIO_FEATURE_NAMES, AudioFeatures, RecentSong
from songmatch.core.similarity import cosine_similarity
from songmatch.matching.config import AudioFeatureWeights

__all__ = [
    "GOOD_MOOD_TRANSITIONS",
    "RELATED_MOODS",
    "compute_audio_feature_score",
    "compute_context_score",
    "compute_flow_score",
    "compute_genre_score",
    "compute_thematic_score",
    "cosine_similarity",
    "score_mood_transition",
]

# Maximum differences considered for the two unbounded features.
TEMPO_RANGE_BPM = 100.0
LOUDNESS_RANGE_DB = 60.0

FLOW_WINDOW = 3

GOOD_MOOD_TRANSITIONS: dict[str, frozenset[str]] = {
    "happy": frozenset({"euphoric", "nostalgic", "empowered", "relaxed", "cheerful"}),
    "sad": frozenset({"melancholic", "nostalgic", "anxious", "contemplative", "bittersweet"}),
    "angry": frozenset({"empowered", "anxious", "aggressive", "intense", "defiant"}),
    "anxious": frozenset({"relaxed", "sad", "contemplative", "hopeful", "reflective"}),
    "nostalgic": frozenset({"happy", "sad", "melancholic", "contemplative", "wistful"}),
    "melancholic": frozenset({"sad", "nostalgic", "contemplative", "peaceful", "reflective"}),
    "euphoric": frozenset({"happy", "empowered", "energetic", "celebratory", "joyful"}),
    "relaxed": frozenset({"peaceful", "contemplative", "happy", "nostalgic", "calm"}),
    "empowered": frozenset({"happy", "euphoric", "angry", "confident", "triumphant"}),
    "contemplative": frozenset({"relaxed", "nostalgic", "melancholic", "peaceful", "thoughtful"}),
    "peaceful": frozenset({"relaxed", "contemplative", "happy", "calm", "serene"}),
    "energetic": frozenset({"euphoric", "empowered", "happy", "intense", "uplifting"}),
}

RELATED_MOODS: dict[str, frozenset[str]] = {
    "happy": frozenset({"joyful", "cheerful", "upbeat", "positive", "bright"}),
    "sad": frozenset({"sorrowful", "mournful", "heartbroken", "gloomy", "downbeat"}),
    "angry": frozenset({"furious", "frustrated", "aggressive", "intense", "fierce"}),
    "anxious": frozenset({"nervous", "tense", "worried", "uneasy", "restless"}),
    "nostalgic": frozenset({"reminiscent", "sentimental", "wistful", "longing", "yearning"}),
    "melancholic": frozenset({"somber", "pensive", "mournful", "wistful", "bittersweet"}),
    "euphoric": frozenset({"ecstatic", "elated", "blissful", "exuberant", "jubilant"}),
    "relaxed": frozenset({"calm", "tranquil", "serene", "mellow", "laid-back"}),
    "empowered": frozenset({"confident", "strong", "triumphant", "bold", "assertive"}),
}


def _normalize(value: str) -> str:
    return value.lower().strip()


def _overlaps(a: str, b: str) -> bool:
    """Equal, or either string contains the other."""
    return a == b or a in b or b in a


# === Audio features ===


def compute_audio_feature_score(
    song_features: AudioFeatures,
    centroid: Mapping[str, float],
    weights: AudioFeatureWeights,
) -> float:
    """Weighted closeness of a song's audio features to a playlist centroid.

    Only features present on both sides with a non-zero weight contribute.
    Tempo is normalized by 100 BPM and loudness by 60 dB; the other
    features are already unit-scaled.

    Returns:
        Weighted mean of ``max(0, 1 - diff)``, or 0.0 when nothing was
        comparable.
    """
    score = 0.0
    total_weight = 0.0

    for feature in AUDIO_FEATURE_NAMES:
        song_value = song_features.get(feature)
        centroid_value = centroid.get(feature)
        weight = getattr(weights, feature)
        if song_value is None or centroid_value is None or weight == 0:
            continue

        diff = abs(song_value - centroid_value)
        if feature == "tempo":
            diff /= TEMPO_RANGE_BPM
        elif feature == "loudness":
            diff /= LOUDNESS_RANGE_DB

        score += weight * max(0.0, 1.0 - diff)
        total_weight += weight

    if total_weight == 0:
        return 0.0
    return score / total_weight


# === Genre ===


def compute_genre_score(
    song_genres: Sequence[str] | None,
    genre_distribution: Mapping[str, float],
) -> float:
    """Share of the playlist's genre mass that the song's genres cover.

    A playlist genre is covered when any song genre equals it or one
    contains the other (case-insensitive).
    """
    if not song_genres or not genre_distribution:
        return 0.0

    normalized_song = [_normalize(g) for g in song_genres]
    matched = 0.0
    total = 0.0
    for genre, count in genre_distribution.items():
        total += count
        playlist_genre = _normalize(genre)
        if any(_overlaps(sg, playlist_genre) for sg in normalized_song):
            matched += count

    if total == 0:
        return 0.0
    return matched / total


# === Context ===


def compute_context_score(
    song_contexts: Mapping[str, float] | None,
    playlist_contexts: Mapping[str, float] | None,
) -> float:
    """Conservative listening-context alignment.

    For each playlist context the song also scores positively on, take the
    smaller of the two values; average over matched contexts.
    """
    if not song_contexts or not playlist_contexts:
        return 0.0

    total = 0.0
    matched = 0
    for context, playlist_value in playlist_contexts.items():
        song_value = song_contexts.get(context)
        if song_value is not None and song_value > 0:
            total += min(song_value, playlist_value)
            matched += 1

    if matched == 0:
        return 0.0
    return min(1.0, total / matched)


# === Themes ===


def compute_thematic_score(
    song_themes: Sequence[str] | None,
    playlist_themes: Sequence[str] | None,
    theme_weight: float = 0.25,
) -> float:
    """Count song themes echoed by the playlist, ``theme_weight`` each, capped at 1."""
    if not song_themes or not playlist_themes:
        return 0.0

    normalized_playlist = [_normalize(t) for t in playlist_themes]
    match_count = 0
    for theme in song_themes:
        song_theme = _normalize(theme)
        if any(_overlaps(song_theme, pt) for pt in normalized_playlist):
            match_count += 1

    return min(1.0, match_count * theme_weight)


# === Flow ===


def score_mood_transition(source_mood: str, target_mood: str) -> float:
    """Quality of moving from ``source_mood`` to ``target_mood``.

    1.0 same mood, 0.8 curated good transition, 0.6 related mood, else 0.3.
    """
    source = _normalize(source_mood)
    target = _normalize(target_mood)

    if source == target:
        return 1.0
    if target in GOOD_MOOD_TRANSITIONS.get(source, ()):
        return 0.8
    if target in RELATED_MOODS.get(source, ()):
        return 0.6
    return 0.3


def compute_flow_score(
    song_mood: str | None,
    song_energy: float | None,
    song_valence: float | None,
    recent_songs: Sequence[RecentSong],
) -> float:
    """How smoothly a candidate follows the playlist's last few songs.

    Each of the last three entries is scored from the signals present on
    both sides (mood transition 0.5, energy 0.3, valence 0.2), normalized
    by the weights used, and the per-entry scores are averaged. Returns 0.5
    when there is nothing to compare.
    """
    if not recent_songs:
        return 0.5

    scores: list[float] = []
    for recent in list(recent_songs)[-FLOW_WINDOW:]:
        combined = 0.0
        weight_sum = 0.0

        if song_mood and recent.dominant_mood:
            combined += score_mood_transition(recent.dominant_mood, song_mood) * 0.5
            weight_sum += 0.5

        if song_energy is not None and recent.energy is not None:
            energy_diff = abs(recent.energy - song_energy)
            combined += max(0.0, 1.0 - energy_diff * 0.5) * 0.3
            weight_sum += 0.3

        if song_valence is not None and recent.valence is not None:
            valence_diff = abs(recent.valence - song_valence)
            combined += max(0.0, 1.0 - valence_diff * 0.3) * 0.2
            weight_sum += 0.2

        if weight_sum > 0:
            scores.append(combined / weight_sum)

    if not scores:
        return 0.5
    return sum(scores) / len(scores)
