"""Durable delayed-task queue backing pipeline continuations.

Delivery is at-least-once: a task claimed by a worker that died is handed out
again once its claim is older than the visibility timeout, so every handler
must be safe to re-run (upserts keyed by natural ids).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Mapping

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from app.models.scheduled_task import ScheduledTask, TaskStatus
from app.models.sync_job import SyncJob
from app.services import sync_jobs
from app.services.job_registry import JobContext
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

TaskHandler = Callable[[JobContext, dict[str, Any]], None]

DEFAULT_VISIBILITY_TIMEOUT_S = 600
DEFAULT_RETRY_DELAY_MS = 60_000


@dataclass
class DrainResult:
    claimed: int = 0
    done: int = 0
    failed: int = 0
    retried: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"claimed": self.claimed, "done": self.done, "failed": self.failed, "retried": self.retried}


def enqueue(
    db: Session,
    task_name: str,
    payload: Mapping[str, Any],
    *,
    delay_ms: int = 0,
    now: datetime | None = None,
) -> ScheduledTask:
    """Add a task to run after ``delay_ms``. The caller commits."""

    now = now or utcnow()
    task = ScheduledTask(
        task_name=task_name,
        payload=dict(payload),
        run_after=now + timedelta(milliseconds=max(0, delay_ms)),
        status=TaskStatus.PENDING,
    )
    db.add(task)
    db.flush()
    logger.debug("Task enqueued", extra={"task": task_name, "task_id": task.id, "delay_ms": delay_ms})
    return task


def claim_due(
    db: Session,
    names: Iterable[str],
    *,
    now: datetime | None = None,
    limit: int = 20,
    visibility_timeout_s: int = DEFAULT_VISIBILITY_TIMEOUT_S,
) -> list[ScheduledTask]:
    """Claim up to ``limit`` runnable tasks, oldest ``run_after`` first."""

    now = now or utcnow()
    names = list(names)
    if not names:
        return []
    reclaim_before = now - timedelta(seconds=visibility_timeout_s)
    runnable = or_(
        and_(ScheduledTask.status == TaskStatus.PENDING, ScheduledTask.run_after <= now),
        and_(ScheduledTask.status == TaskStatus.CLAIMED, ScheduledTask.claimed_at < reclaim_before),
    )
    candidate_ids = list(
        db.scalars(
            select(ScheduledTask.id)
            .where(ScheduledTask.task_name.in_(names), runnable)
            .order_by(ScheduledTask.run_after, ScheduledTask.id)
            .limit(limit)
        )
    )

    claimed_ids: list[int] = []
    for task_id in candidate_ids:
        # Conditional claim: loses cleanly if another worker got there first.
        result = db.execute(
            update(ScheduledTask)
            .where(ScheduledTask.id == task_id, runnable)
            .values(
                status=TaskStatus.CLAIMED,
                claimed_at=now,
                attempts=ScheduledTask.attempts + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            claimed_ids.append(task_id)
    db.commit()
    if not claimed_ids:
        return []
    tasks = db.scalars(select(ScheduledTask).where(ScheduledTask.id.in_(claimed_ids))).all()
    by_id = {task.id: task for task in tasks}
    for task in tasks:
        db.refresh(task)
    return [by_id[task_id] for task_id in claimed_ids]


def _finish(db: Session, task_id: int, status: TaskStatus, *, error: str | None, now: datetime) -> None:
    db.execute(
        update(ScheduledTask)
        .where(ScheduledTask.id == task_id)
        .values(status=status, finished_at=now, last_error=error)
        .execution_options(synchronize_session=False)
    )


def _apply_sync_job_policy(
    db: Session,
    task_name: str,
    payload: dict[str, Any],
    exc: Exception,
    *,
    now: datetime,
    retry_delay_ms: int,
) -> bool:
    """Route a task failure to its SyncJob; ``True`` when a retry was enqueued."""

    job_id = payload.get("sync_job_id")
    if job_id is None:
        return False
    job = db.get(SyncJob, job_id)
    if job is None:
        logger.warning("Failed task references a missing sync job", extra={"sync_job_id": job_id})
        return False
    error = str(exc) or type(exc).__name__
    if isinstance(exc, sync_jobs.PermanentSyncError):
        sync_jobs.mark_failed(job, error, now=now)
        return False
    if sync_jobs.record_failure(job, error, now=now):
        enqueue(db, task_name, payload, delay_ms=retry_delay_ms, now=now)
        return True
    return False


def run_due_tasks(
    db: Session,
    ctx: JobContext,
    handlers: Mapping[str, TaskHandler],
    *,
    now: datetime | None = None,
    limit: int = 20,
    visibility_timeout_s: int = DEFAULT_VISIBILITY_TIMEOUT_S,
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
) -> DrainResult:
    """Claim and execute due tasks whose names have a handler.

    A handler failure never stops the drain: the task is marked failed and,
    when it belongs to a sync job, that job's retry policy decides whether a
    fresh copy is enqueued.
    """

    now = now or utcnow()
    result = DrainResult()
    for task in claim_due(db, handlers, now=now, limit=limit, visibility_timeout_s=visibility_timeout_s):
        result.claimed += 1
        task_id, task_name, payload = task.id, task.task_name, dict(task.payload or {})
        handler = handlers[task_name]
        try:
            handler(ctx, payload)
            db.commit()
        except Exception as exc:  # noqa: BLE001
            db.rollback()
            logger.exception("Task failed", extra={"task": task_name, "task_id": task_id})
            result.failed += 1
            _finish(db, task_id, TaskStatus.FAILED, error=str(exc) or type(exc).__name__, now=now)
            if _apply_sync_job_policy(db, task_name, payload, exc, now=now, retry_delay_ms=retry_delay_ms):
                result.retried += 1
            db.commit()
            continue
        _finish(db, task_id, TaskStatus.DONE, error=None, now=now)
        db.commit()
        result.done += 1
    if result.claimed:
        logger.info("Task queue drained", extra=result.as_dict())
    return result


def pending_tasks(db: Session, task_name: str | None = None) -> list[ScheduledTask]:
    stmt = select(ScheduledTask).where(ScheduledTask.status == TaskStatus.PENDING)
    if task_name:
        stmt = stmt.where(ScheduledTask.task_name == task_name)
    return list(db.scalars(stmt.order_by(ScheduledTask.run_after, ScheduledTask.id)))


__all__ = [
    "TaskHandler",
    "DrainResult",
    "enqueue",
    "claim_due",
    "run_due_tasks",
    "pending_tasks",
]
