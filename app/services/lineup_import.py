"""Cursor-driven festival lineup import.

A lineup is processed in fixed-size batches. Each batch runs under the lock
``lineup_import:<job id>``, resolves and links its names, then either
schedules the next cursor as a short-delay continuation or completes the
sync job. The cursor is persisted on the job so a redelivered batch that was
already processed is dropped.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Iterable

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import Settings
from app.integrations.base import IntegrationError
from app.integrations.ticketmaster import TicketmasterClient
from app.models.artist import Artist
from app.models.festival import Festival, FestivalArtist
from app.models.sync_job import SyncJob, SyncJobType
from app.services import task_queue
from app.services.artist_import import ImportTicket, pick_attraction, trigger_artist_import
from app.services.catalog_sync import find_artist_by_name, find_artist_by_ticketmaster_id, normalize_name
from app.services.job_registry import JobContext
from app.services.locks import held_lock
from app.services.sync_jobs import (
    TERMINAL_STATUSES,
    PermanentSyncError,
    create_sync_job,
    mark_completed,
    update_progress,
)
from app.utils.errors import error_response
from app.utils.slug import slugify

logger = logging.getLogger(__name__)

LINEUP_TASK = "lineup_import.batch"
LINEUP_PRIORITY = 8
LINEUP_TOTAL_STEPS = 3
MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 25
BATCH_LOCK_STALE_MS = 10 * 60 * 1000
SEARCH_RESULTS = 5

SOURCE_TICKETMASTER = "ticketmaster"
SOURCE_PROVIDED = "provided"

_FESTIVAL_WORD_RE = re.compile(r"\b(festival|fest)\b")
_PLACEHOLDER_NAMES = {"tba", "tbd"}


def is_probably_festival_name(name: str) -> bool:
    """Blank names, placeholders and names containing festival/fest are not artists."""

    lowered = normalize_name(name)
    if not lowered:
        return True
    return lowered in _PLACEHOLDER_NAMES or _FESTIVAL_WORD_RE.search(lowered) is not None


def dedupe_names(names: Iterable[Any]) -> list[str]:
    """Trimmed names, first occurrence wins, non-artist tokens dropped."""

    seen: set[str] = set()
    result: list[str] = []
    for raw in names:
        if not isinstance(raw, str):
            continue
        name = raw.strip()
        key = normalize_name(name)
        if key in seen or is_probably_festival_name(name):
            continue
        seen.add(key)
        result.append(name)
    return result


def clamp_batch_size(value: Any, default: int) -> int:
    try:
        size = int(value) if value is not None else default
    except (TypeError, ValueError):
        size = default
    return max(MIN_BATCH_SIZE, min(MAX_BATCH_SIZE, size))


def choose_source(
    ticketmaster_names: list[str],
    provided_names: list[str],
    *,
    min_results: int,
    prefer_source: str | None = None,
) -> tuple[str, list[str]]:
    """Pick the lineup source.

    Ticketmaster wins when it returned at least ``min_results`` names; a
    non-empty preferred source overrides that.
    """

    if prefer_source == SOURCE_TICKETMASTER and ticketmaster_names:
        return SOURCE_TICKETMASTER, ticketmaster_names
    if prefer_source == SOURCE_PROVIDED and provided_names:
        return SOURCE_PROVIDED, provided_names
    if len(ticketmaster_names) >= min_results:
        return SOURCE_TICKETMASTER, ticketmaster_names
    if provided_names:
        return SOURCE_PROVIDED, provided_names
    return SOURCE_TICKETMASTER, ticketmaster_names


def upsert_festival(db: Session, name: str, *, year: int | None = None) -> Festival:
    base = slugify(f"{name} {year}" if year else name)
    festival = db.execute(select(Festival).where(Festival.slug == base)).scalar_one_or_none()
    if festival is None:
        festival = Festival(slug=base, name=name.strip(), year=year)
        db.add(festival)
        db.flush()
    return festival


def start_lineup_import(
    db: Session,
    *,
    festival: Festival,
    provided_names: Iterable[Any],
    ticketmaster: TicketmasterClient | None,
    settings: Settings,
    batch_size: Any = None,
    prefer_source: str | None = None,
    now: datetime | None = None,
) -> ImportTicket:
    """Resolve the lineup, create the sync job and schedule batch 0."""

    ticketmaster_names: list[str] = []
    if ticketmaster is not None and prefer_source != SOURCE_PROVIDED:
        try:
            ticketmaster_names = dedupe_names(ticketmaster.festival_lineup(festival.name))
        except IntegrationError as exc:
            logger.warning(
                "Ticketmaster lineup lookup failed; using provided names",
                extra={"festival_id": festival.id, "error": str(exc)},
            )
    provided = dedupe_names(provided_names)
    source, names = choose_source(
        ticketmaster_names,
        provided,
        min_results=settings.LINEUP_MIN_SOURCE_RESULTS,
        prefer_source=prefer_source,
    )
    if not names:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=error_response("LINEUP_EMPTY", "No artist names found for this lineup."),
        )

    size = clamp_batch_size(batch_size, settings.LINEUP_BATCH_SIZE)
    job = create_sync_job(
        db,
        job_type=SyncJobType.FESTIVAL_LINEUP_IMPORT,
        entity_id=festival.id,
        total_steps=LINEUP_TOTAL_STEPS,
        priority=LINEUP_PRIORITY,
        max_retries=settings.SYNC_MAX_RETRIES,
        total_items=len(names),
        payload={
            "festival_id": festival.id,
            "names": names,
            "batch_size": size,
            "source": source,
            "cursor": 0,
            "batches": 0,
            "counts": {"processed": 0, "linked": 0, "imported": 0, "skipped": 0, "failed": 0},
        },
        now=now,
    )
    job.completed_steps = 1
    update_progress(job, phase="importing", current_step=f"processed 0/{len(names)}", items_processed=0)
    task_queue.enqueue(db, LINEUP_TASK, {"sync_job_id": job.id, "cursor": 0}, delay_ms=0, now=now)
    db.commit()
    logger.info(
        "Lineup import started",
        extra={"sync_job_id": job.id, "festival_id": festival.id, "total": len(names), "source": source},
    )
    return ImportTicket(job.id, len(names), source, festival.id)


def _resolve_artist(ctx: JobContext, name: str) -> tuple[Artist, bool] | None:
    """Local exact match, else Ticketmaster search and a staged import."""

    artist = find_artist_by_name(ctx.db, name)
    if artist is not None:
        return artist, False
    match = pick_attraction(name, ctx.clients().ticketmaster.search_attractions(name, size=SEARCH_RESULTS))
    if match is None:
        return None
    existing = find_artist_by_ticketmaster_id(ctx.db, match.id)
    if existing is not None:
        return existing, False
    ticket = trigger_artist_import(ctx.db, attraction=match, settings=ctx.settings, now=ctx.now)
    return ctx.db.get(Artist, ticket.entity_id), True


def _link_name(ctx: JobContext, festival_id: int, source: str, name: str, linked_ids: set[int]) -> str:
    resolved = _resolve_artist(ctx, name)
    if resolved is None:
        return "skipped"
    artist, imported = resolved
    if artist.id in linked_ids:
        ctx.db.commit()
        return "imported" if imported else "skipped"
    ctx.db.add(FestivalArtist(festival_id=festival_id, artist_id=artist.id, source=source))
    ctx.db.commit()
    linked_ids.add(artist.id)
    return "imported" if imported else "linked"


def process_lineup_batch(ctx: JobContext, payload: dict[str, Any]) -> None:
    """Process one batch of a lineup import and schedule the next one."""

    try:
        job_id = int(payload["sync_job_id"])
        cursor = int(payload["cursor"])
    except (KeyError, TypeError, ValueError) as exc:
        raise PermanentSyncError(f"Malformed lineup batch payload: {payload!r}") from exc

    db = ctx.db
    with held_lock(db, f"lineup_import:{job_id}", stale_ms=BATCH_LOCK_STALE_MS, now=ctx.now) as acquired:
        if not acquired:
            logger.info("Lineup batch skipped; lock held", extra={"sync_job_id": job_id, "cursor": cursor})
            return
        job = db.get(SyncJob, job_id)
        if job is None:
            raise PermanentSyncError(f"Sync job {job_id} no longer exists")
        if job.status in TERMINAL_STATUSES:
            return
        state = dict(job.payload or {})
        if cursor != state.get("cursor", 0):
            logger.info(
                "Stale lineup batch dropped",
                extra={"sync_job_id": job_id, "cursor": cursor, "expected": state.get("cursor")},
            )
            return
        festival_id = state.get("festival_id")
        if db.get(Festival, festival_id) is None:
            raise PermanentSyncError(f"Festival {festival_id} no longer exists")

        names: list[str] = list(state.get("names", []))
        batch_size = clamp_batch_size(state.get("batch_size"), MAX_BATCH_SIZE)
        source = state.get("source", SOURCE_PROVIDED)
        linked_ids = set(
            db.scalars(select(FestivalArtist.artist_id).where(FestivalArtist.festival_id == festival_id))
        )
        counts = dict(state.get("counts") or {})
        for key in ("processed", "linked", "imported", "skipped", "failed"):
            counts.setdefault(key, 0)

        for name in names[cursor : cursor + batch_size]:
            counts["processed"] += 1
            try:
                outcome = _link_name(ctx, festival_id, source, name, linked_ids)
            except Exception:  # noqa: BLE001
                db.rollback()
                logger.exception("Lineup name failed", extra={"sync_job_id": job_id, "artist_name": name})
                counts["failed"] += 1
                continue
            counts[outcome] += 1
            if outcome == "imported":
                counts["linked"] += 1

        total = len(names)
        next_cursor = min(cursor + batch_size, total)
        job = db.get(SyncJob, job_id)
        state = dict(job.payload or {})
        state.update(cursor=next_cursor, counts=counts, batches=int(state.get("batches", 0)) + 1)
        job.payload = state
        update_progress(job, current_step=f"processed {next_cursor}/{total}", items_processed=next_cursor)
        if next_cursor < total:
            task_queue.enqueue(
                db,
                LINEUP_TASK,
                {"sync_job_id": job_id, "cursor": next_cursor},
                delay_ms=ctx.settings.LINEUP_CONTINUATION_DELAY_MS,
                now=ctx.now,
            )
        else:
            mark_completed(job, now=ctx.now)
        db.commit()
        logger.info(
            "Lineup batch processed",
            extra={"sync_job_id": job_id, "cursor": cursor, "next_cursor": next_cursor, **counts},
        )


TASK_HANDLERS = {LINEUP_TASK: process_lineup_batch}


__all__ = [
    "LINEUP_TASK",
    "SOURCE_TICKETMASTER",
    "SOURCE_PROVIDED",
    "TASK_HANDLERS",
    "is_probably_festival_name",
    "dedupe_names",
    "clamp_batch_size",
    "choose_source",
    "upsert_festival",
    "start_lineup_import",
    "process_lineup_batch",
]
