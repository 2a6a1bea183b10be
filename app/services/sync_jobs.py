"""Lifecycle of staged-import tracking rows (``SyncJob``)."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.models.sync_job import SyncJob, SyncJobStatus, SyncJobType
from app.utils.errors import error_response
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {SyncJobStatus.COMPLETED, SyncJobStatus.FAILED}


class PermanentSyncError(Exception):
    """A failure that retrying cannot fix (missing entity, malformed input)."""


def create_sync_job(
    db: Session,
    *,
    job_type: SyncJobType,
    entity_id: int | None,
    total_steps: int,
    priority: int = 5,
    max_retries: int = 3,
    total_items: int = 0,
    payload: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> SyncJob:
    job = SyncJob(
        type=job_type,
        entity_id=entity_id,
        priority=priority,
        status=SyncJobStatus.RUNNING,
        max_retries=max_retries,
        total_steps=total_steps,
        total_items=total_items,
        current_phase="queued",
        started_at=now or utcnow(),
        payload=payload or {},
    )
    db.add(job)
    db.flush()
    return job


def get_sync_job(db: Session, job_id: int) -> SyncJob:
    job = db.get(SyncJob, job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_response("SYNC_JOB_NOT_FOUND", "Sync job not found."),
        )
    return job


def _percentage(done: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(min(100.0, done * 100.0 / total), 2)


def update_progress(
    job: SyncJob,
    *,
    phase: str | None = None,
    current_step: str | None = None,
    items_processed: int | None = None,
) -> None:
    """Patch progress fields for item-driven jobs (percentage follows items)."""

    if phase is not None:
        job.current_phase = phase
    if current_step is not None:
        job.current_step = current_step
    if items_processed is not None:
        job.items_processed = items_processed
        job.progress_percentage = _percentage(items_processed, job.total_items)


def complete_phase(job: SyncJob, phase: str, *, now: datetime | None = None) -> bool:
    """Record ``phase`` as done once; completes the job when every phase reported.

    Redelivered phases are ignored so completed_steps never over-counts.
    Returns ``True`` when this call completed the job.
    """

    payload = dict(job.payload or {})
    done = list(payload.get("phases_done", []))
    if phase in done or job.status in TERMINAL_STATUSES:
        return False
    done.append(phase)
    payload["phases_done"] = done
    job.payload = payload
    job.completed_steps = len(done)
    job.current_phase = phase
    job.current_step = f"{phase} finished"
    job.progress_percentage = _percentage(job.completed_steps, job.total_steps)
    if job.completed_steps >= job.total_steps:
        mark_completed(job, now=now)
        return True
    return False


def mark_completed(job: SyncJob, *, now: datetime | None = None) -> None:
    job.status = SyncJobStatus.COMPLETED
    job.completed_steps = job.total_steps
    job.progress_percentage = 100.0
    job.current_phase = "completed"
    job.completed_at = now or utcnow()
    logger.info("Sync job completed", extra={"sync_job_id": job.id, "type": job.type.value})


def mark_failed(job: SyncJob, error: str, *, now: datetime | None = None) -> None:
    job.status = SyncJobStatus.FAILED
    job.error_message = error
    job.current_phase = "failed"
    job.completed_at = now or utcnow()
    logger.warning("Sync job failed", extra={"sync_job_id": job.id, "error": error})


def record_failure(job: SyncJob, error: str, *, now: datetime | None = None) -> bool:
    """Apply the retry policy; ``True`` means the caller should schedule a retry.

    While ``retry_count < max_retries`` the count is bumped and the error kept;
    afterwards the job is failed terminally.
    """

    if job.status in TERMINAL_STATUSES:
        return False
    job.error_message = error
    if job.retry_count < job.max_retries:
        job.retry_count += 1
        job.current_step = f"retry {job.retry_count}/{job.max_retries} scheduled"
        logger.info(
            "Sync job retry scheduled",
            extra={"sync_job_id": job.id, "retry_count": job.retry_count, "error": error},
        )
        return True
    mark_failed(job, error, now=now)
    return False


__all__ = [
    "PermanentSyncError",
    "TERMINAL_STATUSES",
    "create_sync_job",
    "get_sync_job",
    "update_progress",
    "complete_phase",
    "mark_completed",
    "mark_failed",
    "record_failure",
]
