"""Name heuristics that keep live, remix and filler recordings out of the catalog."""
from __future__ import annotations

import re
from typing import Iterable, TypeVar

from app.integrations.spotify import SpotifyAlbum, SpotifyTrack

EXCLUDED_ALBUM_GROUPS = {"compilation", "appears_on"}
EXCLUDED_ALBUM_MARKERS = ("live", "greatest hits", "best of", "collection", "soundtrack")

NON_STUDIO_TRACK_PATTERNS = (
    r"\(live\b",
    r"\[live\b",
    r" - live\b",
    r"\blive at\b",
    r"\blive from\b",
    r"\bremix\b",
    r"\brmx\b",
    r"\bdemo\b",
    r"\binstrumental\b",
    r"\bkaraoke\b",
)
_NON_STUDIO_RE = re.compile("|".join(NON_STUDIO_TRACK_PATTERNS), re.IGNORECASE)
_FILLER_RE = re.compile(r"^\s*(intro|outro|interlude|skit)\s*$", re.IGNORECASE)
_BRACKETED_RE = re.compile(r"[\(\[].*?[\)\]]")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")

MAX_TITLE_LENGTH = 100
ALBUM_TYPE_WEIGHT = {"album": 3, "single": 2, "compilation": 1}

T = TypeVar("T", bound=SpotifyTrack)


def is_studio_album(album: SpotifyAlbum) -> bool:
    if (album.album_group or "").lower() in EXCLUDED_ALBUM_GROUPS:
        return False
    if album.album_type.lower() == "compilation":
        return False
    lowered = album.name.lower()
    return not any(marker in lowered for marker in EXCLUDED_ALBUM_MARKERS)


def is_studio_song(title: str | None) -> bool:
    """True for titles that look like a studio recording worth listing."""

    if not title:
        return False
    stripped = title.strip()
    if not 1 <= len(stripped) <= MAX_TITLE_LENGTH:
        return False
    if _FILLER_RE.match(stripped):
        return False
    return _NON_STUDIO_RE.search(stripped) is None


def normalize_track_title(title: str) -> str:
    """Lowercased title without bracketed qualifiers or punctuation."""

    without_brackets = _BRACKETED_RE.sub(" ", title.lower())
    without_punctuation = _PUNCTUATION_RE.sub(" ", without_brackets)
    return _WHITESPACE_RE.sub(" ", without_punctuation).strip()


def version_score(track: SpotifyTrack) -> int:
    score = ALBUM_TYPE_WEIGHT.get(track.album_type.lower(), 0) * 1000
    if "deluxe" not in track.album_name.lower():
        score += 500
    return score + track.popularity


def select_best_versions(tracks: Iterable[T]) -> list[T]:
    """Keep one track per normalized title, preferring album, non-deluxe, popular."""

    best: dict[str, T] = {}
    for track in tracks:
        key = normalize_track_title(track.name)
        if not key:
            continue
        current = best.get(key)
        if current is None or version_score(track) > version_score(current):
            best[key] = track
    return list(best.values())


__all__ = [
    "is_studio_album",
    "is_studio_song",
    "normalize_track_title",
    "version_score",
    "select_best_versions",
]
