"""Append-only run history for orchestrated jobs."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.models.job_run import JobRun, RunStatus
from app.utils.time import millis_between, utcnow

DEFAULT_RECENT_LIMIT = 50
MAX_RECENT_LIMIT = 500


def start_run(db: Session, name: str, *, now: datetime | None = None) -> JobRun:
    run = JobRun(name=name, started_at=now or utcnow(), status=RunStatus.RUNNING)
    db.add(run)
    db.commit()
    return run


def finish_run(
    db: Session,
    run: JobRun,
    *,
    status: RunStatus,
    error: str | None = None,
    stats: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> JobRun:
    """Close ``run``; a finished record is never patched again."""

    if run.finished_at is not None:
        raise ValueError(f"Run {run.id} is already finished")
    finished_at = now or utcnow()
    run.finished_at = finished_at
    run.status = status
    run.error = error
    run.stats = stats
    run.duration_ms = max(0, millis_between(run.started_at, finished_at))
    db.commit()
    return run


def get_recent_runs(db: Session, name: str | None = None, limit: int = DEFAULT_RECENT_LIMIT) -> list[JobRun]:
    """Newest runs first, optionally for a single job."""

    limit = max(1, min(MAX_RECENT_LIMIT, int(limit)))
    stmt = select(JobRun)
    if name:
        stmt = stmt.where(JobRun.name == name)
    stmt = stmt.order_by(JobRun.started_at.desc(), JobRun.id.desc()).limit(limit)
    return list(db.scalars(stmt))


def purge_runs(db: Session, *, older_than: datetime) -> int:
    """Delete finished runs started before ``older_than``; returns the count."""

    result = db.execute(
        delete(JobRun)
        .where(JobRun.started_at < older_than, JobRun.finished_at.is_not(None))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


__all__ = [
    "DEFAULT_RECENT_LIMIT",
    "MAX_RECENT_LIMIT",
    "start_run",
    "finish_run",
    "get_recent_runs",
    "purge_runs",
]
