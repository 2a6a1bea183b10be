"""The registered maintenance jobs and the task handlers they feed."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session, joinedload

from app.config import Settings
from app.integrations import Integrations, build_integrations
from app.integrations.base import IntegrationError, IntegrationNotConfigured, RateLimitedError
from app.models.artist import Artist
from app.models.setlist import Setlist
from app.models.show import SetlistImportStatus, Show, ShowStatus
from app.services import artist_import, lineup_import, run_history, trending
from app.services.catalog_sync import enrich_artist_basics
from app.services.job_registry import (
    DAY_MS,
    HOUR_MS,
    JobContext,
    JobDefinition,
    JobKind,
    JobSkipped,
    build_registry,
)
from app.services.massiveness import is_non_concert_entry
from app.services.task_queue import TaskHandler

logger = logging.getLogger(__name__)

TRENDING_CANDIDATES = 50
SETLIST_LOCK_STALE_MS = 2 * HOUR_MS


def import_trending_artists(ctx: JobContext) -> dict[str, Any]:
    """Trigger staged imports for trending Ticketmaster attractions we do not know yet."""

    limit = ctx.settings.TRENDING_IMPORT_LIMIT
    attractions = ctx.clients().ticketmaster.trending_attractions(size=TRENDING_CANDIDATES)
    known = set(
        ctx.db.scalars(select(Artist.ticketmaster_id).where(Artist.ticketmaster_id.is_not(None)))
    )
    triggered = filtered = 0
    for attraction in attractions:
        if triggered >= limit:
            break
        if attraction.id in known:
            continue
        if is_non_concert_entry(attraction.name, attraction.genres):
            filtered += 1
            continue
        artist_import.trigger_artist_import(ctx.db, attraction=attraction, settings=ctx.settings, now=ctx.now)
        known.add(attraction.id)
        triggered += 1
    return {"candidates": len(attractions), "triggered": triggered, "filtered": filtered}


def update_artist_trending(ctx: JobContext) -> dict[str, Any]:
    return trending.update_artist_trending(ctx.db)


def update_show_trending(ctx: JobContext) -> dict[str, Any]:
    return trending.update_show_trending(ctx.db, today=ctx.now.date())


def update_artist_show_counts(ctx: JobContext) -> dict[str, Any]:
    return trending.update_artist_show_counts(ctx.db, today=ctx.now.date())


def auto_transition_shows(ctx: JobContext) -> dict[str, Any]:
    return trending.auto_transition_shows(ctx.db, today=ctx.now.date())


def populate_missing_fields(ctx: JobContext) -> dict[str, Any]:
    """Backfill Spotify data for artists that have never been matched."""

    artists = list(
        ctx.db.scalars(
            select(Artist)
            .where(Artist.spotify_id.is_(None), Artist.is_active.is_(True))
            .order_by(Artist.trending_rank == 0, Artist.trending_rank, Artist.id)
            .limit(ctx.settings.ENRICHMENT_BATCH_SIZE)
        )
    )
    client = ctx.clients().spotify
    enriched = missing = failed = 0
    for artist in artists:
        try:
            if enrich_artist_basics(ctx.db, client, artist, now=ctx.now):
                enriched += 1
            else:
                missing += 1
        except IntegrationNotConfigured:
            raise
        except RateLimitedError:
            ctx.db.rollback()
            if not enriched:
                raise JobSkipped("Spotify rate limited")
            break
        except IntegrationError:
            ctx.db.rollback()
            logger.exception("Artist enrichment failed", extra={"artist_id": artist.id})
            failed += 1
    return {"candidates": len(artists), "enriched": enriched, "not_found": missing, "failed": failed}


def _store_setlist(db: Session, show: Show, setlistfm_id: str, songs: list[dict[str, Any]]) -> None:
    setlist = db.execute(select(Setlist).where(Setlist.setlistfm_id == setlistfm_id)).scalar_one_or_none()
    if setlist is None:
        setlist = Setlist(show_id=show.id, setlistfm_id=setlistfm_id, source="setlistfm")
        db.add(setlist)
    setlist.songs = songs
    db.flush()
    show.setlistfm_id = setlistfm_id
    show.setlist_count = db.scalar(select(func.count()).select_from(Setlist).where(Setlist.show_id == show.id))


def import_setlists(ctx: JobContext) -> dict[str, Any]:
    """Look up setlists for completed shows that do not have one yet.

    A show left ``IMPORTING`` by a run that died mid-lookup is picked up again
    once it is older than the job lock staleness.
    """

    abandoned_before = ctx.now - timedelta(milliseconds=SETLIST_LOCK_STALE_MS)
    shows = list(
        ctx.db.scalars(
            select(Show)
            .options(joinedload(Show.artist), joinedload(Show.venue))
            .where(
                Show.status == ShowStatus.COMPLETED,
                or_(
                    Show.import_status.is_(None),
                    Show.import_status.in_([SetlistImportStatus.PENDING, SetlistImportStatus.FAILED]),
                    and_(
                        Show.import_status == SetlistImportStatus.IMPORTING,
                        Show.updated_at < abandoned_before,
                    ),
                ),
            )
            .order_by(Show.date.desc(), Show.id)
            .limit(ctx.settings.SETLIST_IMPORT_BATCH_SIZE)
        ).unique()
    )
    client = ctx.clients().setlistfm
    stats = {"candidates": len(shows), "imported": 0, "no_setlist": 0, "failed": 0}
    for show in shows:
        show.import_status = SetlistImportStatus.IMPORTING
        ctx.db.commit()
        try:
            found = client.search_setlist(show.artist.name, show.venue.city, show.date)
        except RateLimitedError as exc:
            show.import_status = SetlistImportStatus.PENDING
            ctx.db.commit()
            raise JobSkipped(f"setlist.fm rate limited: {exc}") from exc
        except IntegrationNotConfigured:
            show.import_status = SetlistImportStatus.PENDING
            ctx.db.commit()
            raise
        except Exception:  # noqa: BLE001
            ctx.db.rollback()
            logger.exception("Setlist lookup failed", extra={"show_id": show.id})
            show.import_status = SetlistImportStatus.FAILED
            ctx.db.commit()
            stats["failed"] += 1
            continue
        if found is None:
            show.import_status = SetlistImportStatus.NO_SETLIST
            stats["no_setlist"] += 1
        else:
            _store_setlist(
                ctx.db,
                show,
                found.id,
                [{"title": song.title, "encore": song.encore} for song in found.songs],
            )
            show.import_status = SetlistImportStatus.COMPLETED
            stats["imported"] += 1
        ctx.db.commit()
    return stats


def purge_run_history(ctx: JobContext) -> dict[str, Any]:
    cutoff = ctx.now - timedelta(days=ctx.settings.RUN_HISTORY_RETENTION_DAYS)
    return {"deleted": run_history.purge_runs(ctx.db, older_than=cutoff)}


JOB_DEFINITIONS: tuple[JobDefinition, ...] = (
    JobDefinition("import-trending-artists", JobKind.ACTION, import_trending_artists, 6 * HOUR_MS, HOUR_MS, DAY_MS),
    JobDefinition("update-artist-trending", JobKind.MUTATION, update_artist_trending, 6 * HOUR_MS, HOUR_MS, DAY_MS),
    JobDefinition("update-show-trending", JobKind.MUTATION, update_show_trending, 6 * HOUR_MS, HOUR_MS, DAY_MS),
    JobDefinition(
        "update-artist-show-counts", JobKind.MUTATION, update_artist_show_counts, 6 * HOUR_MS, HOUR_MS, DAY_MS
    ),
    JobDefinition("auto-transition-shows", JobKind.MUTATION, auto_transition_shows, 4 * HOUR_MS, HOUR_MS, DAY_MS),
    JobDefinition(
        "populate-missing-fields",
        JobKind.ACTION,
        populate_missing_fields,
        8 * HOUR_MS,
        2 * HOUR_MS,
        2 * DAY_MS,
        lock_stale_ms=2 * HOUR_MS,
    ),
    JobDefinition(
        "import-setlists",
        JobKind.ACTION,
        import_setlists,
        6 * HOUR_MS,
        HOUR_MS,
        DAY_MS,
        lock_stale_ms=SETLIST_LOCK_STALE_MS,
    ),
    JobDefinition("purge-run-history", JobKind.MUTATION, purge_run_history, DAY_MS, 6 * HOUR_MS, 7 * DAY_MS),
)

TASK_HANDLERS: dict[str, TaskHandler] = {**artist_import.TASK_HANDLERS, **lineup_import.TASK_HANDLERS}


def build_default_registry() -> dict[str, JobDefinition]:
    return build_registry(JOB_DEFINITIONS)


def make_context_factory(settings: Settings, integrations: Integrations | None = None):
    """Context factory for the live scheduler; one set of HTTP clients per process."""

    integrations = integrations or build_integrations(settings)

    def factory(db: Session, now) -> JobContext:
        return JobContext(db=db, settings=settings, now=now, integrations=integrations)

    return factory


__all__ = [
    "JOB_DEFINITIONS",
    "TASK_HANDLERS",
    "build_default_registry",
    "make_context_factory",
    "import_trending_artists",
    "update_artist_trending",
    "update_show_trending",
    "update_artist_show_counts",
    "auto_transition_shows",
    "populate_missing_fields",
    "import_setlists",
    "purge_run_history",
]
