"""Staged artist import.

Triggering an import creates the artist record right away, then schedules
four phases as delayed tasks: shows, catalog, enrichment and counts. The
delays only spread external API load. Each phase catches its own failure,
records it on the artist's sync status and reports to the sync job, so a
failed phase never blocks the others and phases may finish in any order.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import Settings
from app.integrations.ticketmaster import Attraction
from app.models.artist import Artist
from app.models.sync_job import SyncJob, SyncJobStatus, SyncJobType
from app.services import task_queue
from app.services.catalog_sync import (
    enrich_artist_basics,
    merge_sync_status,
    normalize_name,
    sync_artist_catalog,
    sync_artist_shows,
    upsert_artist_from_attraction,
)
from app.services.job_registry import JobContext
from app.services.sync_jobs import TERMINAL_STATUSES, PermanentSyncError, complete_phase, create_sync_job
from app.services.trending import count_upcoming_shows
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

PHASES = ("shows", "catalog", "enrichment", "counts")
TASK_PREFIX = "artist_import."
ARTIST_IMPORT_PRIORITY = 5


@dataclass(frozen=True)
class ImportTicket:
    job_id: int
    total: int
    source: str
    entity_id: int

    def as_dict(self) -> dict[str, Any]:
        return {"job_id": self.job_id, "total": self.total, "source": self.source, "entity_id": self.entity_id}


@dataclass(frozen=True)
class PhasePayload:
    artist_id: int
    sync_job_id: int

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "PhasePayload":
        try:
            return cls(artist_id=int(payload["artist_id"]), sync_job_id=int(payload["sync_job_id"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise PermanentSyncError(f"Malformed artist phase payload: {payload!r}") from exc

    def as_dict(self) -> dict[str, int]:
        return {"artist_id": self.artist_id, "sync_job_id": self.sync_job_id}


def task_name(phase: str) -> str:
    return f"{TASK_PREFIX}{phase}"


def pick_attraction(name: str, candidates: Iterable[Attraction]) -> Attraction | None:
    """Exact case-insensitive name match first, else the first result."""

    candidates = list(candidates)
    wanted = normalize_name(name)
    for candidate in candidates:
        if normalize_name(candidate.name) == wanted:
            return candidate
    return candidates[0] if candidates else None


def _active_import(db: Session, artist_id: int) -> SyncJob | None:
    return db.scalars(
        select(SyncJob)
        .where(
            SyncJob.type == SyncJobType.ARTIST_IMPORT,
            SyncJob.entity_id == artist_id,
            SyncJob.status.in_([SyncJobStatus.PENDING, SyncJobStatus.RUNNING]),
        )
        .order_by(SyncJob.id.desc())
    ).first()


def trigger_artist_import(
    db: Session, *, attraction: Attraction, settings: Settings, now: datetime | None = None
) -> ImportTicket:
    """Create the artist root record and schedule the four phases.

    Returns the in-flight job instead of starting a second one for the same
    artist.
    """

    now = now or utcnow()
    artist, created = upsert_artist_from_attraction(db, attraction)
    running = _active_import(db, artist.id)
    if running is not None:
        db.commit()
        return ImportTicket(running.id, running.total_steps, "ticketmaster", artist.id)

    merge_sync_status(
        artist,
        phase="queued",
        showsImported=False,
        showCount=0,
        catalogImported=False,
        songCount=0,
        basicsEnriched=False,
        error=None,
    )
    job = create_sync_job(
        db,
        job_type=SyncJobType.ARTIST_IMPORT,
        entity_id=artist.id,
        total_steps=len(PHASES),
        priority=ARTIST_IMPORT_PRIORITY,
        max_retries=settings.SYNC_MAX_RETRIES,
        payload={"ticketmaster_id": attraction.id, "created": created},
        now=now,
    )
    payload = PhasePayload(artist_id=artist.id, sync_job_id=job.id).as_dict()
    for phase, delay_ms in zip(PHASES, settings.ARTIST_PHASE_DELAYS_MS):
        task_queue.enqueue(db, task_name(phase), payload, delay_ms=delay_ms, now=now)
    db.commit()
    logger.info(
        "Artist import triggered",
        extra={"artist_id": artist.id, "sync_job_id": job.id, "created": created},
    )
    return ImportTicket(job.id, len(PHASES), "ticketmaster", artist.id)


def _load(ctx: JobContext, payload: dict[str, Any]) -> tuple[Artist, SyncJob] | None:
    data = PhasePayload.from_dict(payload)
    job = ctx.db.get(SyncJob, data.sync_job_id)
    if job is None:
        raise PermanentSyncError(f"Sync job {data.sync_job_id} no longer exists")
    if job.status in TERMINAL_STATUSES:
        return None
    artist = ctx.db.get(Artist, data.artist_id)
    if artist is None:
        raise PermanentSyncError(f"Artist {data.artist_id} no longer exists")
    return artist, job


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


def _finish_phase(ctx: JobContext, artist: Artist, job: SyncJob, phase: str) -> None:
    if complete_phase(job, phase, now=ctx.now):
        merge_sync_status(artist, phase="completed")
    ctx.db.commit()


def run_shows_phase(ctx: JobContext, payload: dict[str, Any]) -> None:
    loaded = _load(ctx, payload)
    if loaded is None:
        return
    artist, job = loaded
    try:
        count = sync_artist_shows(ctx.db, ctx.clients().ticketmaster, artist, today=ctx.now.date())
    except Exception as exc:  # noqa: BLE001
        ctx.db.rollback()
        logger.exception("Shows phase failed", extra={"artist_id": artist.id})
        merge_sync_status(artist, phase="shows", showsImported=False, error=f"shows: {_describe(exc)}")
    else:
        merge_sync_status(artist, phase="shows", showsImported=True, showCount=count)
    _finish_phase(ctx, artist, job, "shows")


def run_catalog_phase(ctx: JobContext, payload: dict[str, Any]) -> None:
    loaded = _load(ctx, payload)
    if loaded is None:
        return
    artist, job = loaded
    try:
        songs = sync_artist_catalog(ctx.db, ctx.clients().spotify, artist)
    except Exception as exc:  # noqa: BLE001
        ctx.db.rollback()
        logger.exception("Catalog phase failed", extra={"artist_id": artist.id})
        merge_sync_status(artist, phase="catalog", catalogImported=False, error=f"catalog: {_describe(exc)}")
    else:
        merge_sync_status(artist, phase="catalog", catalogImported=songs > 0, songCount=songs)
    _finish_phase(ctx, artist, job, "catalog")


def run_enrichment_phase(ctx: JobContext, payload: dict[str, Any]) -> None:
    loaded = _load(ctx, payload)
    if loaded is None:
        return
    artist, job = loaded
    try:
        enriched = enrich_artist_basics(ctx.db, ctx.clients().spotify, artist, now=ctx.now)
    except Exception as exc:  # noqa: BLE001
        ctx.db.rollback()
        logger.exception("Enrichment phase failed", extra={"artist_id": artist.id})
        merge_sync_status(artist, phase="enrichment", basicsEnriched=False, error=f"enrichment: {_describe(exc)}")
    else:
        merge_sync_status(artist, phase="enrichment", basicsEnriched=enriched)
    _finish_phase(ctx, artist, job, "enrichment")


def run_counts_phase(ctx: JobContext, payload: dict[str, Any]) -> None:
    loaded = _load(ctx, payload)
    if loaded is None:
        return
    artist, job = loaded
    try:
        artist.upcoming_shows_count = count_upcoming_shows(ctx.db, artist.id, today=ctx.now.date())
        ctx.db.flush()
    except Exception:  # noqa: BLE001
        ctx.db.rollback()
        logger.exception("Counts phase failed", extra={"artist_id": artist.id})
    merge_sync_status(artist, phase="counts")
    _finish_phase(ctx, artist, job, "counts")


TASK_HANDLERS = {
    task_name("shows"): run_shows_phase,
    task_name("catalog"): run_catalog_phase,
    task_name("enrichment"): run_enrichment_phase,
    task_name("counts"): run_counts_phase,
}


__all__ = [
    "PHASES",
    "ImportTicket",
    "PhasePayload",
    "TASK_HANDLERS",
    "pick_attraction",
    "task_name",
    "trigger_artist_import",
    "run_shows_phase",
    "run_catalog_phase",
    "run_enrichment_phase",
    "run_counts_phase",
]
