"""Idempotent catalog writes fed by the external clients.

Every write is an upsert keyed by the external id (Ticketmaster attraction,
event and venue ids, Spotify artist and track ids), so a phase that is
delivered twice converges instead of duplicating rows.
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.integrations.base import as_dict, as_int, as_list, as_str
from app.integrations.spotify import SpotifyArtist, SpotifyClient
from app.integrations.ticketmaster import Attraction, TicketmasterClient
from app.models.artist import Artist
from app.models.show import Show, ShowStatus
from app.models.song import ArtistSong, Song
from app.models.venue import Venue
from app.services.catalog_filters import is_studio_album, is_studio_song, select_best_versions
from app.utils.slug import slugify, unique_slug
from app.utils.time import parse_show_date, utcnow

logger = logging.getLogger(__name__)

MAX_EVENT_PAGES = 5
EVENTS_PAGE_SIZE = 200
TRACK_ALBUM_BATCH = 10
TRACK_BATCH_PAUSE_MS = 2_000
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})")


def normalize_name(name: str) -> str:
    return (name or "").strip().lower()


def find_artist_by_name(db: Session, name: str) -> Artist | None:
    lowered = normalize_name(name)
    if not lowered:
        return None
    return db.scalars(select(Artist).where(Artist.lower_name == lowered).order_by(Artist.id)).first()


def find_artist_by_ticketmaster_id(db: Session, ticketmaster_id: str) -> Artist | None:
    return db.execute(select(Artist).where(Artist.ticketmaster_id == ticketmaster_id)).scalar_one_or_none()


def _slug_exists(db: Session, model: type, slug: str) -> bool:
    return db.scalar(select(func.count()).select_from(model).where(model.slug == slug)) > 0


def upsert_artist_from_attraction(db: Session, attraction: Attraction) -> tuple[Artist, bool]:
    """Create or refresh the root artist record; ``True`` when newly created."""

    artist = find_artist_by_ticketmaster_id(db, attraction.id)
    if artist is None:
        artist = find_artist_by_name(db, attraction.name)
        if artist is not None and artist.ticketmaster_id is None:
            artist.ticketmaster_id = attraction.id
    if artist is not None:
        if attraction.genres and not artist.genres:
            artist.genres = list(attraction.genres)
        if attraction.images and not artist.images:
            artist.images = list(attraction.images)
        db.flush()
        return artist, False

    artist = Artist(
        slug=unique_slug(slugify(attraction.name), lambda candidate: _slug_exists(db, Artist, candidate)),
        name=attraction.name,
        lower_name=normalize_name(attraction.name),
        ticketmaster_id=attraction.id,
        genres=list(attraction.genres),
        images=list(attraction.images),
        upcoming_shows_count=attraction.upcoming_events,
        trending_rank=0,
        sync_status={},
    )
    db.add(artist)
    db.flush()
    logger.info("Artist created", extra={"artist_id": artist.id, "ticketmaster_id": attraction.id})
    return artist, True


def merge_sync_status(artist: Artist, **changes: Any) -> dict[str, Any]:
    """Merge ``changes`` into the artist's sync status object."""

    status = dict(artist.sync_status or {})
    status.update(changes)
    status["lastSync"] = utcnow().isoformat()
    artist.sync_status = status
    return status


# --- Shows --------------------------------------------------------------------


def normalize_start_time(value: Any) -> str | None:
    """``"19:30:00"`` → ``"19:30"``; anything unparseable → ``None``."""

    text = as_str(value)
    if not text:
        return None
    match = _TIME_RE.match(text)
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


def format_price_range(event: dict[str, Any]) -> str | None:
    ranges = as_list(event.get("priceRanges"))
    if not ranges:
        return None
    first = as_dict(ranges[0])
    low, high = as_int(first.get("min")), as_int(first.get("max"))
    if low is None and high is None:
        return None
    if high is None or high == low:
        return f"${low}"
    if low is None:
        return f"${high}"
    return f"${low}-{high}"


def _float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def upsert_venue(db: Session, raw: dict[str, Any]) -> Venue | None:
    ticketmaster_id = as_str(raw.get("id"))
    if not ticketmaster_id:
        return None
    venue = db.execute(select(Venue).where(Venue.ticketmaster_id == ticketmaster_id)).scalar_one_or_none()
    if venue is None:
        venue = Venue(ticketmaster_id=ticketmaster_id, name="Unknown Venue", city="Unknown City", country="US")
        db.add(venue)
    venue.name = as_str(raw.get("name")) or venue.name
    venue.city = as_str(as_dict(raw.get("city")).get("name")) or venue.city
    state = as_dict(raw.get("state"))
    venue.state = as_str(state.get("stateCode")) or as_str(state.get("name")) or venue.state
    venue.country = as_str(as_dict(raw.get("country")).get("countryCode")) or venue.country
    venue.address = as_str(as_dict(raw.get("address")).get("line1")) or venue.address
    capacity = as_int(as_dict(raw.get("generalInfo")).get("generalRule")) or as_int(raw.get("capacity"))
    if capacity:
        venue.capacity = capacity
    location = as_dict(raw.get("location"))
    venue.lat = _float(location.get("latitude")) if location else venue.lat
    venue.lng = _float(location.get("longitude")) if location else venue.lng
    db.flush()
    return venue


def upsert_show_from_event(db: Session, artist: Artist, event: dict[str, Any], *, today: date) -> Show | None:
    """Upsert one Ticketmaster event; events without an id, date or venue are skipped."""

    ticketmaster_id = as_str(event.get("id"))
    start = as_dict(as_dict(event.get("dates")).get("start"))
    show_date = as_str(start.get("localDate"))
    parsed_date = parse_show_date(show_date)
    venues = as_list(as_dict(event.get("_embedded")).get("venues"))
    if not ticketmaster_id or parsed_date is None or not venues:
        return None
    venue = upsert_venue(db, as_dict(venues[0]))
    if venue is None:
        return None

    status_code = as_str(as_dict(as_dict(event.get("dates")).get("status")).get("code"))
    if status_code == "cancelled":
        status = ShowStatus.CANCELLED
    elif parsed_date < today:
        status = ShowStatus.COMPLETED
    else:
        status = ShowStatus.UPCOMING

    show = db.execute(select(Show).where(Show.ticketmaster_id == ticketmaster_id)).scalar_one_or_none()
    if show is None:
        base = slugify(f"{artist.slug}-{venue.city}-{show_date}")
        show = Show(
            slug=unique_slug(base, lambda candidate: _slug_exists(db, Show, candidate)),
            artist_id=artist.id,
            venue_id=venue.id,
            ticketmaster_id=ticketmaster_id,
            date=show_date,
            trending_rank=0,
        )
        db.add(show)
    show.venue_id = venue.id
    show.date = show_date
    show.start_time = normalize_start_time(start.get("localTime"))
    show.status = status
    show.ticket_url = as_str(event.get("url")) or show.ticket_url
    show.price_range = format_price_range(event) or show.price_range
    db.flush()
    return show


def sync_artist_shows(
    db: Session, client: TicketmasterClient, artist: Artist, *, today: date, max_pages: int = MAX_EVENT_PAGES
) -> int:
    """Fetch the artist's events page by page and upsert venues and shows."""

    if not artist.ticketmaster_id:
        return 0
    synced = 0
    page = 0
    while page < max_pages:
        result = client.list_events(artist.ticketmaster_id, page=page, size=EVENTS_PAGE_SIZE)
        for event in result.events:
            if upsert_show_from_event(db, artist, event, today=today) is not None:
                synced += 1
        db.commit()
        if not result.has_next:
            break
        page += 1
        client.pause()
    return synced


# --- Music catalog --------------------------------------------------------------


def _resolve_spotify_artist(client: SpotifyClient, artist: Artist) -> SpotifyArtist | None:
    if artist.spotify_id:
        return client.get_artist(artist.spotify_id)
    return client.search_artist(artist.name)


def _claim_spotify_id(db: Session, artist: Artist, spotify_id: str) -> bool:
    """Attach ``spotify_id`` unless another artist already owns it."""

    if artist.spotify_id == spotify_id:
        return True
    owner = db.execute(select(Artist.id).where(Artist.spotify_id == spotify_id)).scalar_one_or_none()
    if owner is not None and owner != artist.id:
        logger.warning(
            "Spotify id already linked to another artist",
            extra={"artist_id": artist.id, "spotify_id": spotify_id, "owner_id": owner},
        )
        return False
    artist.spotify_id = spotify_id
    return True


def enrich_artist_basics(db: Session, client: SpotifyClient, artist: Artist, *, now: datetime | None = None) -> bool:
    """Backfill popularity, followers, genres and images; ``False`` when not found."""

    found = _resolve_spotify_artist(client, artist)
    if found is None or not _claim_spotify_id(db, artist, found.id):
        return False
    if found.popularity is not None:
        artist.popularity = found.popularity
    if found.followers is not None:
        artist.followers = found.followers
    if found.genres:
        artist.genres = list(found.genres)
    if found.images:
        artist.images = list(found.images)
    artist.last_synced_at = now or utcnow()
    db.commit()
    return True


def sync_artist_catalog(db: Session, client: SpotifyClient, artist: Artist) -> int:
    """Import studio songs; returns how many songs are linked to the artist."""

    if not artist.spotify_id:
        found = client.search_artist(artist.name)
        if found is None or not _claim_spotify_id(db, artist, found.id):
            return 0
        db.commit()

    albums = [album for album in client.list_albums(artist.spotify_id) if is_studio_album(album)]
    tracks = []
    for index in range(0, len(albums), TRACK_ALBUM_BATCH):
        if index:
            client.pause(TRACK_BATCH_PAUSE_MS)
        for album in albums[index : index + TRACK_ALBUM_BATCH]:
            tracks.extend(track for track in client.list_album_tracks(album) if is_studio_song(track.name))

    linked = 0
    for track in select_best_versions(tracks):
        song = db.execute(select(Song).where(Song.spotify_id == track.id)).scalar_one_or_none()
        if song is None:
            song = Song(spotify_id=track.id, title=track.name)
            db.add(song)
        song.title = track.name
        song.album = track.album_name
        song.album_type = track.album_type
        song.popularity = track.popularity
        song.duration_ms = track.duration_ms
        db.flush()
        link = db.execute(
            select(ArtistSong).where(ArtistSong.artist_id == artist.id, ArtistSong.song_id == song.id)
        ).scalar_one_or_none()
        if link is None:
            db.add(ArtistSong(artist_id=artist.id, song_id=song.id))
        linked += 1
    db.commit()
    return linked


__all__ = [
    "normalize_name",
    "find_artist_by_name",
    "find_artist_by_ticketmaster_id",
    "upsert_artist_from_attraction",
    "merge_sync_status",
    "normalize_start_time",
    "format_price_range",
    "upsert_venue",
    "upsert_show_from_event",
    "sync_artist_shows",
    "enrich_artist_basics",
    "sync_artist_catalog",
]
