"""Heuristics separating large touring acts from theatre, tribute and niche entries.

Everything here is pure: no database, no I/O.
"""
from __future__ import annotations

import math
import re
from typing import Any, Iterable

NON_CONCERT_NAME_PATTERNS = (
    r"\btribute\b",
    r"\bexperience\b",
    r"\borchestra\b",
    r"\bsymphony\b",
    r"\bphilharmonic\b",
    r"\bchamber\b",
    r"\bballet\b",
    r"\bopera\b",
    r"\bbroadway\b",
    r"\bmusical\b",
    r"\bplayhouse\b",
    r"\bcirque\b",
    r"\bcomedy\b",
    r"\bpodcast\b",
    r"\besports\b",
    r"\bfilm with\b",
    r"- film\b",
    r"\bin concert\b",
)
_NON_CONCERT_NAME_RE = re.compile("|".join(NON_CONCERT_NAME_PATTERNS), re.IGNORECASE)

NON_CONCERT_GENRES = (
    "classical",
    "chamber music",
    "opera",
    "medieval",
    "musical theater",
    "musical theatre",
    "broadway",
    "kids",
    "children's music",
    "podcast",
    "comedy",
)

MAJOR_VENUE_KEYWORDS = (
    "arena",
    "stadium",
    "center",
    "centre",
    "amphitheatre",
    "amphitheater",
    "sphere",
    "bowl",
    "pavilion",
    "garden",
    "coliseum",
    "forum",
)
MAJOR_VENUE_MIN_CAPACITY = 8_000

# (min popularity, min followers, min upcoming events); any tier accepts.
ARTIST_TIERS = (
    (70, 0, 0),
    (0, 5_000_000, 0),
    (60, 1_000_000, 0),
    (55, 500_000, 3),
)


def _number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def has_non_concert_name(name: str | None) -> bool:
    return bool(name) and _NON_CONCERT_NAME_RE.search(name.lower()) is not None


def has_non_concert_genre(genres: Iterable[str] | None) -> bool:
    return any(str(genre).strip().lower() in NON_CONCERT_GENRES for genre in genres or ())


def is_non_concert_entry(name: str | None, genres: Iterable[str] | None = None) -> bool:
    """The reject step of :func:`is_massive_artist`, usable before metrics exist."""

    return has_non_concert_name(name) or has_non_concert_genre(genres)


def is_massive_artist(
    name: str | None,
    popularity: Any,
    followers: Any,
    upcoming_events: Any,
    genres: Iterable[str] | None = None,
) -> bool:
    """Whether an artist is big enough to surface on trending/home lists.

    Name and genre rejects short-circuit the popularity tiers.
    """

    if not name or is_non_concert_entry(name, genres):
        return False
    pop = _number(popularity)
    fans = _number(followers)
    upcoming = _number(upcoming_events)
    for min_pop, min_fans, min_upcoming in ARTIST_TIERS:
        if pop >= min_pop and fans >= min_fans and upcoming >= min_upcoming:
            return True
    return False


def is_major_venue(venue_name: str | None, capacity: Any) -> bool:
    if _number(capacity) >= MAJOR_VENUE_MIN_CAPACITY:
        return True
    lowered = (venue_name or "").lower()
    return any(keyword in lowered for keyword in MAJOR_VENUE_KEYWORDS)


def is_massive_show(
    *,
    status: str | None,
    artist_name: str | None,
    image_url: str | None,
    venue_name: str | None,
    venue_capacity: Any,
    popularity: Any,
    followers: Any,
    upcoming_events: Any,
    genres: Iterable[str] | None = None,
) -> bool:
    if status != "upcoming":
        return False
    if not artist_name or "unknown" in artist_name.lower():
        return False
    if not image_url:
        return False
    if not is_major_venue(venue_name, venue_capacity):
        return False
    return is_massive_artist(artist_name, popularity, followers, upcoming_events, genres)


def venue_weight(capacity: Any) -> float:
    seats = _number(capacity)
    if seats >= 30_000:
        return 1.0
    if seats >= 15_000:
        return 0.8
    if seats >= MAJOR_VENUE_MIN_CAPACITY:
        return 0.6
    return 0.2


def compute_massiveness_score(
    *, followers: Any, popularity: Any, venue_capacity: Any = None, upcoming_events: Any = 0
) -> float:
    """Continuous score for secondary sorting; log-scaled followers dominate."""

    fans = max(1.0, _number(followers))
    return (
        math.log10(fans) * 0.40
        + (_number(popularity) / 100.0) * 0.35
        + venue_weight(venue_capacity) * 0.20
        + min(1.0, _number(upcoming_events) / 20.0) * 0.05
    )


__all__ = [
    "has_non_concert_name",
    "has_non_concert_genre",
    "is_non_concert_entry",
    "is_massive_artist",
    "is_major_venue",
    "is_massive_show",
    "venue_weight",
    "compute_massiveness_score",
]
