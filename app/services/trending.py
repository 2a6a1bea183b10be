"""Trending scores and dense ranks for artists and shows.

Scores are recomputed wholesale on every run. The top ``TOP_N`` entities get
ranks ``1..N``; every other entity gets rank ``0`` ("not trending"), never a
continued ordinal.
"""
from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import date
from typing import Any, Hashable, Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from app.models.artist import Artist
from app.models.show import Show, ShowStatus
from app.services.massiveness import compute_massiveness_score, is_massive_artist, is_massive_show
from app.integrations.ticketmaster import best_image_url
from app.utils.time import parse_show_date

logger = logging.getLogger(__name__)

ARTIST_TOP_N = 100
SHOW_TOP_N = 200
RECENCY_WINDOW_DAYS = 30


def _finite(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def artist_score(upcoming_shows: Any, followers: Any, popularity: Any) -> float:
    """``max(1, upcoming + floor(followers / 1e6) + floor(popularity / 10))``; always finite."""

    raw = (
        _finite(upcoming_shows)
        + math.floor(_finite(followers) / 1_000_000)
        + math.floor(_finite(popularity) / 10)
    )
    return float(max(1.0, raw))


def recency_score(show_date: date, today: date) -> float:
    """1.0 for today, decaying linearly to 0 over thirty days."""

    days_until = (show_date - today).days
    return min(1.0, max(0.0, 1.0 - days_until / RECENCY_WINDOW_DAYS))


def show_score(show_date: str | None, today: date, vote_count: Any, setlist_count: Any) -> float | None:
    """``recency * (1 + engagement / 10)`` or ``None`` when the show cannot be scored."""

    parsed = parse_show_date(show_date)
    if parsed is None:
        return None
    engagement = _finite(vote_count) + 2 * _finite(setlist_count)
    score = recency_score(parsed, today) * (1 + engagement / 10)
    return score if math.isfinite(score) else None


def dense_rank(keys_in_order: Sequence[Hashable], top_n: int) -> dict[Hashable, int]:
    """Map the first ``top_n`` keys to ``1..top_n`` and the rest to ``0``."""

    return {key: (position + 1 if position < top_n else 0) for position, key in enumerate(keys_in_order)}


def update_artist_trending(db: Session, *, top_n: int = ARTIST_TOP_N) -> dict[str, int]:
    """Rescore and rerank every artist. Ties break on id so reruns are stable."""

    artists = list(db.scalars(select(Artist)))
    scored = [
        (artist, artist_score(artist.upcoming_shows_count, artist.followers, artist.popularity))
        for artist in artists
    ]
    scored.sort(key=lambda item: (-item[1], item[0].id))
    ranks = dense_rank([artist.id for artist, _ in scored], top_n)
    for artist, score in scored:
        artist.trending_score = score
        artist.trending_rank = ranks[artist.id]
    db.flush()
    ranked = sum(1 for rank in ranks.values() if rank > 0)
    logger.info("Artist trending recomputed", extra={"scored": len(scored), "ranked": ranked})
    return {"scored": len(scored), "ranked": ranked}


def update_show_trending(db: Session, *, today: date, top_n: int = SHOW_TOP_N) -> dict[str, int]:
    """Rescore upcoming shows; others and unscorable ones are cleared to rank 0."""

    shows = list(db.scalars(select(Show)))
    scored: list[tuple[Show, float, date]] = []
    excluded = 0
    for show in shows:
        score = show_score(show.date, today, show.vote_count, show.setlist_count)
        if show.status != ShowStatus.UPCOMING or score is None:
            if show.status == ShowStatus.UPCOMING:
                excluded += 1
            show.trending_score = None
            show.trending_rank = 0
            continue
        scored.append((show, score, parse_show_date(show.date)))

    scored.sort(key=lambda item: (-item[1], item[2], item[0].id))
    ranks = dense_rank([show.id for show, _, _ in scored], top_n)
    for show, score, _ in scored:
        show.trending_score = score
        show.trending_rank = ranks[show.id]
    db.flush()
    ranked = sum(1 for rank in ranks.values() if rank > 0)
    logger.info(
        "Show trending recomputed",
        extra={"scored": len(scored), "ranked": ranked, "excluded": excluded},
    )
    return {"scored": len(scored), "ranked": ranked, "excluded": excluded}


def recompute_trending(db: Session, *, today: date) -> dict[str, dict[str, int]]:
    return {
        "artists": update_artist_trending(db),
        "shows": update_show_trending(db, today=today),
    }


def update_artist_show_counts(db: Session, *, today: date) -> dict[str, int]:
    """Set ``upcoming_shows_count`` from the upcoming, not-yet-past shows."""

    counts: Counter[int] = Counter()
    for artist_id, show_date in db.execute(
        select(Show.artist_id, Show.date).where(Show.status == ShowStatus.UPCOMING)
    ):
        parsed = parse_show_date(show_date)
        if parsed is not None and parsed >= today:
            counts[artist_id] += 1

    updated = 0
    for artist in db.scalars(select(Artist)):
        count = counts.get(artist.id, 0)
        if artist.upcoming_shows_count != count:
            artist.upcoming_shows_count = count
            updated += 1
    db.flush()
    return {"updated": updated, "artists_with_shows": len(counts)}


def count_upcoming_shows(db: Session, artist_id: int, *, today: date) -> int:
    dates = db.scalars(
        select(Show.date).where(Show.artist_id == artist_id, Show.status == ShowStatus.UPCOMING)
    )
    return sum(1 for value in dates if (parsed := parse_show_date(value)) is not None and parsed >= today)


def auto_transition_shows(db: Session, *, today: date) -> dict[str, int]:
    """Mark past upcoming shows completed; malformed dates are counted, not touched."""

    transitioned = 0
    errors = 0
    for show in db.scalars(select(Show).where(Show.status == ShowStatus.UPCOMING)):
        parsed = parse_show_date(show.date)
        if parsed is None:
            errors += 1
            continue
        if parsed < today:
            show.status = ShowStatus.COMPLETED
            show.trending_rank = 0
            show.trending_score = None
            transitioned += 1
    db.flush()
    if errors:
        logger.warning("Shows with malformed dates skipped", extra={"count": errors})
    return {"transitioned": transitioned, "errors": errors}


def list_trending_artists(db: Session, *, limit: int = 20) -> list[Artist]:
    stmt = (
        select(Artist)
        .where(Artist.trending_rank > 0)
        .order_by(Artist.trending_rank)
        .limit(limit)
    )
    return list(db.scalars(stmt))


def list_trending_shows(db: Session, *, limit: int = 20) -> list[Show]:
    stmt = (
        select(Show)
        .options(joinedload(Show.artist), joinedload(Show.venue))
        .where(Show.trending_rank > 0)
        .order_by(Show.trending_rank)
        .limit(limit)
    )
    return list(db.scalars(stmt).unique())


def _artist_image(artist: Artist) -> str | None:
    return best_image_url(artist.images or [])


def list_home_artists(db: Session, *, limit: int = 20) -> list[Artist]:
    """Ranked artists that pass the massiveness filter, biggest first."""

    candidates: Iterable[Artist] = list_trending_artists(db, limit=ARTIST_TOP_N)
    massive = [
        artist
        for artist in candidates
        if is_massive_artist(
            artist.name, artist.popularity, artist.followers, artist.upcoming_shows_count, artist.genres
        )
    ]
    massive.sort(
        key=lambda artist: (
            -compute_massiveness_score(
                followers=artist.followers,
                popularity=artist.popularity,
                upcoming_events=artist.upcoming_shows_count,
            ),
            artist.trending_rank,
        )
    )
    return massive[:limit]


def list_home_shows(db: Session, *, limit: int = 20) -> list[Show]:
    """Ranked shows at major venues by massive artists, biggest first."""

    massive: list[tuple[float, int, Show]] = []
    for show in list_trending_shows(db, limit=SHOW_TOP_N):
        artist, venue = show.artist, show.venue
        if not is_massive_show(
            status=show.status.value,
            artist_name=artist.name,
            image_url=_artist_image(artist),
            venue_name=venue.name,
            venue_capacity=venue.capacity,
            popularity=artist.popularity,
            followers=artist.followers,
            upcoming_events=artist.upcoming_shows_count,
            genres=artist.genres,
        ):
            continue
        score = compute_massiveness_score(
            followers=artist.followers,
            popularity=artist.popularity,
            venue_capacity=venue.capacity,
            upcoming_events=artist.upcoming_shows_count,
        )
        massive.append((score, show.trending_rank, show))
    massive.sort(key=lambda item: (-item[0], item[1]))
    return [show for _, _, show in massive[:limit]]


__all__ = [
    "ARTIST_TOP_N",
    "SHOW_TOP_N",
    "artist_score",
    "recency_score",
    "show_score",
    "dense_rank",
    "update_artist_trending",
    "update_show_trending",
    "recompute_trending",
    "update_artist_show_counts",
    "count_upcoming_shows",
    "auto_transition_shows",
    "list_trending_artists",
    "list_trending_shows",
    "list_home_artists",
    "list_home_shows",
]
